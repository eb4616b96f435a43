"""Configuration management for the iFLUX provisioning client."""

import os
from typing import Any, Final

# Load environment variables
IFLUX_URL: Final[str] = os.getenv("IFLUX_URL", "http://localhost:3000/v1")
IFLUX_USER: Final[str] = os.getenv("IFLUX_USER", "")
IFLUX_PASSWORD: Final[str] = os.getenv("IFLUX_PASSWORD", "")
IFLUX_ORGANIZATION: Final[str] = os.getenv("IFLUX_ORGANIZATION", "")
IFLUX_SLACK_ACTIVE: Final[bool] = os.getenv("IFLUX_SLACK_ACTIVE", "false").lower() == "true"
API_TIMEOUT: Final[int] = int(os.getenv("API_TIMEOUT", "30"))
MAX_RETRIES: Final[int] = int(os.getenv("MAX_RETRIES", "1"))
CREATE_FAILURE_POLICY: Final[str] = os.getenv("CREATE_FAILURE_POLICY", "halt").lower()

# Parameter names the runner looks up by default
BASE_URL_PARAM: Final[str] = "iflux_url"
USER_PARAM: Final[str] = "iflux_user"
PASSWORD_PARAM: Final[str] = "iflux_password"
SLACK_ACTIVE_PARAM: Final[str] = "slack_active"

CREATE_FAILURE_POLICIES: Final[tuple[str, ...]] = ("halt", "skip")


def default_params() -> dict[str, Any]:
    """Build the run parameters derived from the environment.

    Empty credentials are left out so that a parameter file or the command
    line can provide them.
    """
    params: dict[str, Any] = {
        BASE_URL_PARAM: IFLUX_URL,
        SLACK_ACTIVE_PARAM: IFLUX_SLACK_ACTIVE,
    }
    if IFLUX_USER:
        params[USER_PARAM] = IFLUX_USER
    if IFLUX_PASSWORD:
        params[PASSWORD_PARAM] = IFLUX_PASSWORD
    return params


def validate_config() -> None:
    """Validate configuration values.

    Raises:
        ValueError: If any configuration value is invalid.
    """
    if not IFLUX_URL:
        raise ValueError("IFLUX_URL must be set")

    if API_TIMEOUT <= 0:
        raise ValueError(f"API_TIMEOUT must be positive, got {API_TIMEOUT}")

    if MAX_RETRIES < 0:
        raise ValueError(f"MAX_RETRIES must be non-negative, got {MAX_RETRIES}")

    if CREATE_FAILURE_POLICY not in CREATE_FAILURE_POLICIES:
        raise ValueError(
            f"CREATE_FAILURE_POLICY must be one of {', '.join(CREATE_FAILURE_POLICIES)}, "
            f"got {CREATE_FAILURE_POLICY}"
        )
