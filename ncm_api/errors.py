"""Error taxonomy shared by the gateway, the session layer and the routes.

Every error carries the HTTP status it should surface as, so the server
only needs a single translation point.
"""

from typing import Optional


class BridgeError(Exception):
    """Base class for failures that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BridgeError):
    """A request parameter is missing or malformed."""

    status_code = 400


class AuthRequired(BridgeError):
    """The user id could not be resolved from the current session."""

    status_code = 401


class NotFound(BridgeError):
    status_code = 404


class UpstreamError(BridgeError):
    """The upstream client failed or broke its call contract."""

    status_code = 502


class UnknownOperation(UpstreamError):
    def __init__(self, operation: str):
        super().__init__(f"upstream operation not found: {operation}")
        self.operation = operation


class InvalidUpstreamResponse(UpstreamError):
    def __init__(self, operation: str):
        super().__init__(f"invalid response from operation: {operation}")
        self.operation = operation


class UpstreamRejected(UpstreamError):
    """The upstream answered with a status code outside the allowed set."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
