"""Exceptions raised by the iFLUX provisioning client."""


class IfluxError(Exception):
    """Base exception for the iFLUX client."""

    pass


class IfluxAPIError(IfluxError):
    """Base exception for iFLUX API errors."""

    pass


class IfluxConnectionError(IfluxAPIError):
    """Exception raised when connection to iFLUX fails."""

    pass


class IfluxHTTPError(IfluxAPIError):
    """Exception raised when iFLUX answers with an unexpected status code."""

    def __init__(self, message: str, status_code: int, response_text: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class ConfigurationError(IfluxError):
    """Exception raised when a run parameter is missing or invalid."""

    pass


class LoaderError(IfluxError):
    """Exception raised when a provisioning file cannot be loaded."""

    pass


class ProvisioningError(IfluxError):
    """Base exception for failures while provisioning entities."""

    pass


class ProvisioningHalted(ProvisioningError):
    """Exception raised when an entity could not be created and the run stops."""

    def __init__(self, message: str, item_name: str, status_code: int):
        super().__init__(message)
        self.item_name = item_name
        self.status_code = status_code


class RetryExhaustedError(ProvisioningError):
    """Exception raised when the remote keeps failing to configure an action target."""

    def __init__(self, message: str, item_name: str, attempts: int):
        super().__init__(message)
        self.item_name = item_name
        self.attempts = attempts
