"""Core module initialization."""

from krishi.core.exceptions import (
    AssistantException,
    UnsupportedCapabilityException,
    CaptureException,
    AlreadyActiveException,
    NoSpeechDetectedException,
    CaptureFailedException,
    CaptureAbortedException,
    LocationException,
    LocationDeniedException,
    LocationUnavailableException,
    LocationTimeoutException,
    GeocodingException
)

__all__ = [
    "AssistantException",
    "UnsupportedCapabilityException",
    "CaptureException",
    "AlreadyActiveException",
    "NoSpeechDetectedException",
    "CaptureFailedException",
    "CaptureAbortedException",
    "LocationException",
    "LocationDeniedException",
    "LocationUnavailableException",
    "LocationTimeoutException",
    "GeocodingException"
]
