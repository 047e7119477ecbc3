"""
Defines custom exceptions for the application to allow for more specific error handling.

Every exception carries an explicit ``kind`` tag so failures can be classified
without inspecting exception types.
"""

from enum import Enum


class FailureKind(Enum):
    """Closed set of failure categories reported by an update cycle."""

    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    UNEXPECTED = "unexpected"


class TrackerUpdaterError(Exception):
    """Base exception for all application-specific errors."""

    kind: FailureKind = FailureKind.UNEXPECTED


class ConfigurationError(TrackerUpdaterError):
    """Raised when required configuration is missing or invalid."""

    kind = FailureKind.CONFIGURATION


class AuthenticationError(TrackerUpdaterError):
    """Raised when the login response does not carry a session cookie."""

    kind = FailureKind.AUTHENTICATION


class TransportError(TrackerUpdaterError):
    """Raised when a request never produced a server response (timeout, refused connection)."""

    kind = FailureKind.TRANSPORT


class HttpStatusError(TrackerUpdaterError):
    """Raised when the server kept answering with an error status."""

    kind = FailureKind.HTTP_STATUS

    def __init__(self, status: int, method: str = "", url: str = ""):
        self.status = status
        self.method = method
        self.url = url
        target = f" for {method} {url}" if method else ""
        super().__init__(f"HTTP {status}{target}")


def classify(error: BaseException) -> FailureKind:
    """Returns the failure kind tagged on an error, UNEXPECTED for foreign errors."""
    if isinstance(error, TrackerUpdaterError):
        return error.kind
    return FailureKind.UNEXPECTED
