"""
errors.py — exception types raised by the rndc client.

Every failure the library knows about is a subclass of RndcError, so callers
can catch the whole family in one place. A command the daemon refuses is not
an error here: it comes back as a CommandResult with succeeded=False.
"""


class RndcError(Exception):
    """Base class for all rndc client errors."""


class InvalidAlgorithm(RndcError):
    """The algorithm name is not one of the supported HMAC variants."""


class Base64DecodeError(RndcError):
    """The secret key is not valid base64."""


class NetworkError(RndcError):
    """Connecting, reading, writing or shutting down the stream failed."""


class EncodingError(RndcError):
    """A message could not be serialized or signed."""


class DecodingError(RndcError):
    """The received bytes are malformed or miss a required field."""


class UnknownError(RndcError):
    """Anything that does not fit the categories above."""


class SessionStateError(RndcError):
    """An operation was attempted in the wrong session state."""


class ConfigError(RndcError):
    """A key file is missing, unreadable or does not define the key."""
