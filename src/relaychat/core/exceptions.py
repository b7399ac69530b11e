"""Relay error taxonomy.

Every error that can end a request before streaming starts derives from
``RelayError`` and carries the HTTP status it is reported with.  Failures
after the first byte was sent never reach the exception handlers; the SSE
boundary turns them into an in-band error frame instead.
"""


class RelayError(Exception):
    """Base class for errors reported as ``{"error": message}``."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(RelayError):
    """No credential was supplied with the request."""

    status_code = 401


class InvalidRequestError(RelayError):
    """The request body could not be understood."""

    status_code = 400


class UpstreamRejection(RelayError):
    """The provider refused the request before any data was streamed."""


class MidStreamFailure(RelayError):
    """The provider stream broke after streaming began."""
