from __future__ import annotations


class RconError(Exception):
    """Base class for everything this package raises on purpose."""


class ConfigurationError(RconError):
    pass


class ResolutionError(RconError):
    """The server host could not be turned into an IPv4 address."""


class TransportError(RconError):
    """Socket creation, send or receive failed."""


class MalformedPacket(RconError, ValueError):
    pass


class EncodeError(RconError, ValueError):
    """A password or field cannot be written into a request."""
