# file: src/raptorq_suppa/errors.py

"""
Suppa-specific exception hierarchy.

All exceptions inherit from SuppaError for unified handling.

Caller mistakes (bad strategy, non-representable values, OTI misuse,
transfer-length trim overflow) are PayloadError subclasses. A packet that is
merely corrupt is not an error for the caller: the decoder drops it.
"""


class SuppaError(Exception):
    """Base exception for all Suppa codec errors."""
    pass


class PayloadError(SuppaError):
    """Raised when caller-provided data or configuration cannot be processed."""
    pass


class StrategyConfigurationError(PayloadError):
    """Raised when a strategy is malformed or violates a bit-width bound."""
    pass


class OTIMismatchError(PayloadError):
    """Raised when per-packet OTI differs between valid packets of one stream."""

    def __init__(self, message: str, expected: bytes = None, received: bytes = None):
        super().__init__(message)
        self.expected = expected
        self.received = received


class TrimLengthError(PayloadError):
    """Raised when a recovered transfer-length trim exceeds the decoded data."""

    def __init__(self, message: str, trim_length: int = None, available: int = None):
        super().__init__(message)
        self.trim_length = trim_length
        self.available = available


class MalformedPacketError(SuppaError):
    """Raised when an encoding packet is too short to hold its header."""
    pass


class EngineError(SuppaError):
    """Raised when the raw RaptorQ engine fails or misbehaves."""
    pass


class TruncatedStreamError(SuppaError):
    """Raised when a framed packet stream ends in the middle of a record."""
    pass
