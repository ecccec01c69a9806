"""
Exceptions raised by the tracker API client and the viewer state holders.

Every failure of a backend call is normalized to a ``RequestError`` whose
message is human-readable: the server-supplied message when the response
carried one, otherwise the transport error text.
"""
from typing import Any


class ViewerError(Exception):
    """Base class for all viewer errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class RequestError(ViewerError):
    """A call to the tracking backend failed."""

    def __init__(self, message: str, operation: str = '') -> None:
        super().__init__(message)
        self.operation = operation


class TransportError(RequestError):
    """The backend could not be reached; no response was received."""


class RequestTimeout(TransportError):
    """The backend did not answer within the client timeout."""


class ServerError(RequestError):
    """The backend answered with a non-2xx status or an unreadable body."""

    def __init__(
        self,
        message: str,
        operation: str = '',
        status_code: int = 0,
        body: Any = None,
    ) -> None:
        super().__init__(message, operation)
        self.status_code = status_code
        self.body = body


class ValidationError(ViewerError):
    """Client-side input was rejected before reaching the backend."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
