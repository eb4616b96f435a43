"""iFLUX client: provision organizations, event sources, action targets and rules."""

from typing import Any

__version__ = "0.1.0"

from .runner import Runner, RunReport  # noqa: E402


def create_runner(**options: Any) -> Runner:
    """Build a Runner, forwarding options to its scenario and API client."""
    return Runner(**options)


__all__ = ["Runner", "RunReport", "create_runner", "__version__"]
