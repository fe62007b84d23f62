"""Errors raised by the Graph directory client."""

from typing import Any


class DirectoryError(Exception):
    """Non-2xx response (or transport failure) from the remote directory API.

    ``status`` is the HTTP status code when a response was received; ``body`` is
    the provider-shaped error payload (usually ``{"error": {"code", "message"}}``).
    """

    retryable = False

    def __init__(self, message: str, status: int | None = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body

    @property
    def code(self) -> str | None:
        """Provider error code (e.g. ``Request_ResourceNotFound``), if present."""
        if isinstance(self.body, dict):
            error = self.body.get("error")
            if isinstance(error, dict):
                return error.get("code")
        return None


class DirectoryTimeout(DirectoryError):
    """The request did not complete within the configured timeout."""

    retryable = True


class DirectoryUnavailable(DirectoryError):
    """Connection-level failure before a response was received."""

    retryable = True
