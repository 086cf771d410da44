from .extractor import extract, check_span, check_bounds
from .errors import BitSpanError, InvalidRangeError, WidthExceededError, OutOfBoundsError
from .layout import FieldSpec, FrameLayout, get_frame_layout
from .frame_decoder import DecodedFrame, FrameListener, FrameDecoder

__all__ = [
    "extract",
    "check_span",
    "check_bounds",
    "BitSpanError",
    "InvalidRangeError",
    "WidthExceededError",
    "OutOfBoundsError",
    "FieldSpec",
    "FrameLayout",
    "get_frame_layout",
    "DecodedFrame",
    "FrameListener",
    "FrameDecoder",
]
