"""Error types raised or reported by the RouterOS API client."""

__all__ = [
    "ApiError",
    "ProtocolError",
    "TransportError",
    "TransportClosedError",
    "AuthenticationError",
    "AlreadyConnectedError",
    "LengthTooLargeError",
    "IllegalStateError",
]


class ApiError(Exception):
    """Base class for RouterOS API errors"""

    pass


class ProtocolError(ApiError):
    """Malformed data received from the peer."""

    pass


class TransportError(ApiError):
    """The underlying connection failed."""

    pass


class TransportClosedError(TransportError):
    """The peer closed the connection in the middle of a sentence."""

    pass


class AuthenticationError(ApiError):
    """The router rejected the supplied credentials."""

    pass


class AlreadyConnectedError(ApiError):
    """connect() was called on a connection that is not idle."""

    pass


class LengthTooLargeError(ApiError, ValueError):
    """A word is too long to be encoded on the wire."""

    pass


class IllegalStateError(ApiError):
    """An operation was attempted in a state that does not allow it."""

    pass
