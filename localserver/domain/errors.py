"""Error taxonomy for parsing, decoding and server lifecycle failures."""


class LocalServerError(Exception):
    """Base class for errors raised by the local server package."""


class ProtocolMalformed(LocalServerError, ValueError):
    """Raised when HTTP text cannot be interpreted."""


class MalformedResponse(ProtocolMalformed):
    """Raised when a raw HTTP response cannot be decoded."""


class BindFailure(LocalServerError, OSError):
    """Raised when no listening port could be bound."""


class ServerStartError(LocalServerError, RuntimeError):
    """Raised when a server implementation cannot be created."""
