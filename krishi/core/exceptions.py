"""
Core exceptions for the Krishi Assistant.
Custom exception classes for structured error handling.
"""

from typing import Optional, Dict, Any


class AssistantException(Exception):
    """Base exception for Krishi Assistant errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "ASSISTANT_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class UnsupportedCapabilityException(AssistantException):
    """Raised when a client capability is absent in this environment."""

    def __init__(self, capability: str):
        super().__init__(
            message=f"Capability '{capability}' is not supported in this environment",
            error_code="UNSUPPORTED_CAPABILITY",
            status_code=501,
            details={"capability": capability}
        )


# =========================
# Capture Exceptions
# =========================

class CaptureException(AssistantException):
    """Base exception for speech capture errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        super().__init__(
            message=message,
            error_code="CAPTURE_ERROR",
            status_code=status_code,
            details=details
        )


class AlreadyActiveException(CaptureException):
    """Raised when a capture is started while another one is listening."""

    def __init__(self):
        super().__init__(
            message="Already listening",
            details={"error_type": "already_active"},
            status_code=409
        )


class NoSpeechDetectedException(CaptureException):
    """Raised when a capture ends with an empty final transcript."""

    def __init__(self):
        super().__init__(
            message="No speech detected",
            details={"error_type": "no_speech"},
            status_code=422
        )


class CaptureFailedException(CaptureException):
    """Raised when the recognition capability reports a failure."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(
            message=f"Speech recognition error: {code}",
            details={"error_type": "capability_error", "code": code}
        )


class CaptureAbortedException(CaptureException):
    """Raised when the user aborts a capture."""

    def __init__(self):
        super().__init__(
            message="Speech capture aborted",
            details={"error_type": "aborted"},
            status_code=499
        )


# =========================
# Location Exceptions
# =========================

class LocationException(AssistantException):
    """Base exception for geolocation errors."""

    user_message = "स्थान मिळवता आले नाही / Location access failed."

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(
            message=self.user_message,
            error_code="LOCATION_ERROR",
            status_code=503,
            details={"reason": reason, **(details or {})}
        )


class LocationDeniedException(LocationException):
    """Raised when the user refuses location access."""

    user_message = (
        "स्थान प्रवेश नाकारला गेला / Location access denied. "
        "Please enable location permissions."
    )

    def __init__(self):
        super().__init__("permission_denied")


class LocationUnavailableException(LocationException):
    """Raised when no position can be determined."""

    user_message = "स्थान उपलब्ध नाही / Location information is unavailable."

    def __init__(self):
        super().__init__("position_unavailable")


class LocationTimeoutException(LocationException):
    """Raised when the position request times out."""

    user_message = "स्थान विनंती वेळ संपली / Location request timed out."

    def __init__(self):
        super().__init__("timeout")


# W3C GeolocationPositionError codes
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3


def location_exception_for_code(code: int) -> LocationException:
    """Map a geolocation error code to the matching exception."""
    if code == PERMISSION_DENIED:
        return LocationDeniedException()
    if code == POSITION_UNAVAILABLE:
        return LocationUnavailableException()
    if code == TIMEOUT:
        return LocationTimeoutException()
    return LocationException("unknown", details={"code": code})


class GeocodingException(AssistantException):
    """Raised when reverse geocoding fails. Never fatal to a fix."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Reverse geocoding failed: {error}",
            error_code="GEOCODING_ERROR",
            status_code=502,
            details={"error": error}
        )
