"""Error taxonomy for the gateway.

Every error that crosses a module boundary derives from GatewayError so the
API layer can map it onto an OpenAI-style error body in one place.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for gateway errors.

    Attributes:
        message: Human readable description.
        code: Machine readable error type placed in the error body.
        http_status: Status code used when the error reaches the HTTP layer.
    """

    code = "internal_error"
    http_status = 500

    def __init__(self, message: str, code: Optional[str] = None, http_status: Optional[int] = None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        super().__init__(message)


class InvalidRequestError(GatewayError):
    """Client input error (bad model name, empty messages, malformed body)."""

    code = "invalid_request"
    http_status = 400


class RateLimitExceeded(GatewayError):
    code = "rate_limit_exceeded"
    http_status = 429


class TransportError(GatewayError):
    """Remote backend unreachable, non-2xx, or returned an undecodable body."""

    code = "upstream_error"
    http_status = 502


class ToolExecutionError(GatewayError):
    """A tool failed. Fed back to the model instead of ending the turn."""

    code = "tool_error"


class ProtocolError(GatewayError):
    """Turn-ending state error."""

    code = "protocol_error"


class MalformedToolArguments(ProtocolError):
    pass


class IterationLimitExceeded(ProtocolError):
    pass
