from typing import Final, List

# Bits per byte of the source buffer.
BYTE_SIZE: Final[int] = 8

# Widest span a single extraction may return (inclusive bit count).
MAX_SPAN_WIDTH: Final[int] = 32

UINT8_MAX: Final[int] = 0xFF

# Leading columns written before the layout fields in a CSV record log.
DEFAULT_RECORD_COLUMNS: Final[List[str]] = [
    "timestamp",
    "arbitration_id",
    "layout",
]

# Frames a listener keeps for the next drain; older frames are dropped first.
DEFAULT_MAX_PENDING_FRAMES: Final[int] = 1024
