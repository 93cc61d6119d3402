"""Typed errors raised by the decoding pipeline."""


class DexParserError(Exception):
    """Base class for all dexparser errors."""


class DecodeError(DexParserError):
    """Payload cannot be parsed into instructions/accounts (corrupt, truncated, unresolvable)."""


class UnsupportedEncodingError(DecodeError):
    """Transaction encoding or message version is not recognized."""


class InternalInvariantError(DexParserError):
    """A decoder produced an intent that references an out-of-range account index."""
