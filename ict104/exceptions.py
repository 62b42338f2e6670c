"""
Custom exceptions for the bill acceptor driver.

Protocol traffic never raises; these cover the controller surface
where a caller has to be told that an operation could not complete.
"""

from typing import Any, Optional


class BillAcceptorError(Exception):
    """Base exception for all bill acceptor errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            code: Optional error code for programmatic handling.
            details: Optional additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Device Errors
# =============================================================================


class DeviceError(BillAcceptorError):
    """Base exception for device-related errors."""

    def __init__(
        self,
        message: str,
        device_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.device_name = device_name
        if device_name:
            self.details["device"] = device_name


class DeviceTimeoutError(DeviceError):
    """Device operation timed out."""

    pass


class StatusTimeoutError(DeviceTimeoutError):
    """The acceptor never answered a status request."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.details["attempts"] = attempts


# =============================================================================
# Configuration Errors
# =============================================================================


class NotConfiguredError(BillAcceptorError):
    """Port or bill type table has not been set."""

    pass
