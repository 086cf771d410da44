"""
Utility functions for normalising and inspecting byte buffers.
"""

from typing import List, Union

from .constants import BYTE_SIZE, UINT8_MAX

ByteBuffer = Union[bytes, bytearray, memoryview, List[int]]


def as_byte_buffer(data: ByteBuffer) -> bytes:
    """Returns the buffer as immutable bytes, validating list items."""
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, (list, tuple)):
        for value in data:
            if not isinstance(value, int) or not 0 <= value <= UINT8_MAX:
                raise ValueError(f"Value {value} out of uint8 range (0 to 255)")
        return bytes(data)
    raise TypeError(f"Unsupported buffer type: {type(data).__name__}")


def bit_length(data: ByteBuffer) -> int:
    """Returns the total number of bits held by the buffer."""
    return len(data) * BYTE_SIZE


def format_hex(data: ByteBuffer) -> str:
    """Renders the buffer as space separated hex bytes, e.g. '0x94 0xe0'."""
    return " ".join(hex(b) for b in as_byte_buffer(data))
