"""
Extraction of arbitrary, not necessarily byte-aligned, bit spans from a byte buffer.

Bits are numbered in network order: position 0 is the most significant bit of
byte 0, and increasing positions move left to right across the buffer.
"""

from .constants import BYTE_SIZE, MAX_SPAN_WIDTH
from .errors import InvalidRangeError, OutOfBoundsError, WidthExceededError
from .utils import ByteBuffer, as_byte_buffer, bit_length


def _mask(width: int) -> int:
    return (1 << width) - 1


def check_span(start: int, end: int) -> None:
    """
    Validates the shape of an inclusive bit span, independent of any buffer.

    Args:
        start: First bit position of the span (inclusive).
        end: Last bit position of the span (inclusive).

    Raises:
        TypeError: If either position is not an integer.
        InvalidRangeError: If start is greater than end.
        WidthExceededError: If the span covers more than 32 bits.
    """
    for label, position in (("start", start), ("end", end)):
        if isinstance(position, bool) or not isinstance(position, int):
            raise TypeError(
                f"Bit position '{label}' must be an int, got {type(position).__name__}"
            )
    if start > end:
        raise InvalidRangeError(
            f"Start position {start} must not be greater than end position {end}"
        )
    width = end - start + 1
    if width > MAX_SPAN_WIDTH:
        raise WidthExceededError(
            f"Span {start}..{end} is {width} bits wide, max is {MAX_SPAN_WIDTH}"
        )


def check_bounds(bit_length: int, start: int, end: int) -> None:
    """
    Validates that both endpoints of a span address bits inside the buffer.

    Raises:
        OutOfBoundsError: If either position is negative or >= bit_length.
    """
    for position in (start, end):
        if not 0 <= position < bit_length:
            raise OutOfBoundsError(
                f"Bit position {position} out of range for a {bit_length}-bit buffer"
            )


def extract(buffer: ByteBuffer, start: int, end: int) -> int:
    """
    Extracts the inclusive bit span start..end as an unsigned integer.

    The bit at start becomes the most significant bit of the result and the
    bit at end the least significant. The span is assembled byte chunk by byte
    chunk, walking from the byte holding end toward the byte holding start, so
    the chunk nearest end lands in the lowest output byte.

    Args:
        buffer: Source bytes; never modified.
        start: First bit position (inclusive, zero based).
        end: Last bit position (inclusive).

    Returns:
        The span value, in the range 0 to 2**32 - 1.

    Raises:
        InvalidRangeError: If start > end.
        WidthExceededError: If end - start + 1 > 32.
        OutOfBoundsError: If start or end lies outside the buffer.
    """
    data = as_byte_buffer(buffer)
    check_span(start, end)
    check_bounds(bit_length(data), start, end)

    result = 0
    chunks_done = 0
    cursor = end
    # At most five iterations: a 32-bit span touches at most five bytes.
    while True:
        byte_index = cursor // BYTE_SIZE
        valid_bits = cursor % BYTE_SIZE + 1
        pad_bits = BYTE_SIZE - valid_bits
        end_byte = data[byte_index]

        # Bits of the cursor byte up to and including the cursor, right aligned.
        low = (end_byte >> pad_bits) & _mask(valid_bits)

        if cursor - start + 1 <= BYTE_SIZE:
            start_byte_index = start // BYTE_SIZE
            if start_byte_index == byte_index:
                low = (end_byte >> pad_bits) & _mask(cursor - start + 1)
                high = 0
            else:
                top_bits = BYTE_SIZE - start % BYTE_SIZE
                high = (data[start_byte_index] & _mask(top_bits)) << valid_bits
            return result + ((low + high) << (BYTE_SIZE * chunks_done))

        # Fill the chunk up to a full byte from the tail of the previous byte.
        high = 0
        if pad_bits:
            high = (data[byte_index - 1] & _mask(pad_bits)) << valid_bits
        result += (low + high) << (BYTE_SIZE * chunks_done)

        chunks_done += 1
        cursor -= BYTE_SIZE
