"""Core exceptions for the proxy."""

from ..types.chat import ErrorEnvelope


class ProxyError(Exception):
    """Base exception for proxy errors.

    Every subclass knows the HTTP status and error ``type`` it surfaces as,
    so routes can render the standard envelope without special cases.
    """

    status_code = 500
    error_type = "server_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_envelope(self) -> ErrorEnvelope:
        return build_error_envelope(self.message, self.error_type, self.status_code)


class InvalidRequestError(ProxyError):
    """Raised when an incoming request is missing or has malformed fields."""

    status_code = 400
    error_type = "invalid_request_error"


class ServerMisconfiguredError(ProxyError):
    """Raised when a required process credential is absent."""

    status_code = 500
    error_type = "server_error"


class UpstreamTransportError(ProxyError):
    """Raised when the upstream could not be reached at all."""

    status_code = 500
    error_type = "transport_error"


class UpstreamTimeoutError(UpstreamTransportError):
    """Raised when the upstream call exceeds its configured timeout."""

    status_code = 504
    error_type = "upstream_timeout"


def build_error_envelope(message: str, error_type: str, code: int) -> ErrorEnvelope:
    """Build the ``{"error": {message, type, code}}`` envelope."""
    return {
        "error": {
            "message": message,
            "type": error_type,
            "code": code,
        }
    }
