"""
Errors raised by the speech client.
"""
from typing import Optional


class SpeechClientError(Exception):
    """Base class for every error raised by the client."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self):
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code})"
        return self.message


class ServiceError(SpeechClientError):
    """The remote call failed, returned malformed data or an explicit failure."""


class NotFoundError(ServiceError):
    """The referenced model or session does not exist."""


class InvalidArgumentError(SpeechClientError, ValueError):
    """The caller supplied an empty audio source, bad options or a deleted session."""


class SessionBusyError(InvalidArgumentError):
    """A streaming exchange is already running on the session."""


class DisconnectionError(SpeechClientError):
    """The streaming channel closed before a terminal result arrived."""
