"""
Exceptions raised when a requested bit span cannot be extracted.
"""


class BitSpanError(ValueError):
    """Base class for invalid bit span requests."""


class InvalidRangeError(BitSpanError):
    """Raised when the span start lies after its end."""


class WidthExceededError(BitSpanError):
    """Raised when the span is wider than the supported output width."""


class OutOfBoundsError(BitSpanError):
    """Raised when a span endpoint addresses a bit outside the buffer."""
