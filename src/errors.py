"""Exception types shared across the arr-mcp modules."""


class ArrMcpError(Exception):
    """Base class for errors raised by arr-mcp."""


class ConfigError(ArrMcpError):
    """The configuration file is missing, unreadable, or invalid."""


class FetchError(ArrMcpError):
    """An interface description document could not be retrieved."""

    def __init__(self, url: str, cause: str):
        self.url = url
        self.cause = cause
        super().__init__(f"fetching spec from {url}: {cause}")


class ParseError(ArrMcpError):
    """A document is malformed beyond recovery."""


class NotConfigured(ArrMcpError):
    """A service, or its documentation URL, is not configured."""


class NotFound(ArrMcpError):
    """No endpoint matches a detail lookup, even loosely."""


class TransportError(ArrMcpError):
    """A request against a configured service failed at the network level."""
