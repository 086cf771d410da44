from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import BYTE_SIZE
from .extractor import check_bounds, check_span, extract
from .utils import ByteBuffer, as_byte_buffer


@dataclass(frozen=True)
class FieldSpec:
    """
    A named, inclusive bit span inside a frame.
    Positions use network bit order (bit 0 is the MSB of byte 0).
    """

    name: str
    start: int
    end: int

    def __post_init__(self) -> None:
        check_span(self.start, self.end)

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def extract(self, data: ByteBuffer) -> int:
        """Returns this field's raw unsigned value from data."""
        return extract(data, self.start, self.end)


@dataclass
class FrameLayout:
    """
    Description of a packed binary record.
    All fields are mandatory so a layout can never decode a partial record.
    """

    # Layout name, used as the key in DEFAULTS and in decoded frames.
    name: str

    # Minimum frame length in bytes. Every field must fit inside size * 8 bits.
    size: int

    # Fields in declaration order.
    fields: List[FieldSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"Frame layout '{self.name}' size must be >= 1 byte")

        seen = set()
        for spec in self.fields:
            if spec.name in seen:
                raise ValueError(
                    f"Duplicate field '{spec.name}' in frame layout '{self.name}'"
                )
            seen.add(spec.name)
            check_bounds(self.size * BYTE_SIZE, spec.start, spec.end)

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "FrameLayout":
        """
        Create a layout from a dictionary of the form
        {"size": 6, "fields": {"apid": (5, 15), ...}}.
        Raises ValueError if required keys are missing or malformed.
        """
        missing = [key for key in ("size", "fields") if key not in data]
        if missing:
            raise ValueError(
                f"Invalid frame layout '{name}'. Missing required fields: {missing}"
            )

        fields = data["fields"]
        if not isinstance(fields, Mapping):
            raise ValueError(
                f"Invalid frame layout '{name}'. 'fields' must map names to (start, end)"
            )

        specs = []
        for field_name, span in fields.items():
            if not isinstance(span, (list, tuple)) or len(span) != 2:
                raise ValueError(
                    f"Invalid frame layout '{name}'. Field '{field_name}' span must be "
                    f"a (start, end) pair, got {span!r}"
                )
            try:
                start, end = int(span[0]), int(span[1])
            except (TypeError, ValueError) as e:
                raise ValueError(
                    f"Invalid frame layout '{name}'. Field '{field_name}' span {span!r} "
                    f"is not a pair of integers"
                ) from e
            specs.append(FieldSpec(field_name, start, end))

        try:
            size = int(data["size"])
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Invalid frame layout '{name}'. 'size' must be an integer, "
                f"got {data['size']!r}"
            ) from e
        return cls(name=name, size=size, fields=specs)

    def field_names(self) -> List[str]:
        return [spec.name for spec in self.fields]

    def decode(self, data: ByteBuffer) -> Dict[str, int]:
        """
        Decode every field of the layout from data.

        Args:
            data: The frame bytes. Extra trailing bytes (payload) are ignored.

        Returns:
            A dictionary of field name to raw unsigned value, in field order.

        Raises:
            ValueError: If data is shorter than the layout size.
        """
        buffer = as_byte_buffer(data)
        if len(buffer) < self.size:
            raise ValueError(
                f"Frame layout '{self.name}' needs at least {self.size} bytes, "
                f"got {len(buffer)}"
            )
        return {spec.name: spec.extract(buffer) for spec in self.fields}


# Built-in layouts. Field values are raw unsigned integers; scaling and sign
# handling belong to the caller.
DEFAULTS: Dict[str, Dict[str, Any]] = {
    "ccsds_primary_header": {
        "size": 6,
        "fields": {
            "version": (0, 2),
            "packet_type": (3, 3),
            "secondary_header_flag": (4, 4),
            "apid": (5, 15),
            "sequence_flags": (16, 17),
            "sequence_count": (18, 31),
            "data_length": (32, 47),  # packet data length - 1
        },
    },
    "servo_status": {
        "size": 8,
        "fields": {
            "position": (0, 15),  # int16, 0.1 deg electrical
            "speed": (16, 31),  # int16, 10 ERPM
            "current": (32, 47),  # int16, 0.01 A
            "temperature": (48, 55),  # degrees C
            "error": (56, 63),
        },
    },
}


def get_frame_layout(
    name: str, custom_config: Optional[Dict[str, Any]] = None
) -> FrameLayout:
    """
    Retrieve a frame layout.

    Args:
        name: The layout name (e.g., 'ccsds_primary_header').
        custom_config: Overrides. "size" replaces the default size, and
                       "fields" entries are merged into the default fields.

    Returns:
        A FrameLayout object.

    Raises:
        ValueError: If the layout is unknown and no custom config is provided,
                    or if the resulting layout is incomplete or invalid.
    """
    if name in DEFAULTS:
        default = DEFAULTS[name]
        base_data: Dict[str, Any] = {
            "size": default["size"],
            "fields": dict(default["fields"]),
        }
    elif custom_config:
        # New layout: custom_config must provide every key.
        base_data = {}
    else:
        raise ValueError(f"Unknown frame layout '{name}' and no custom config provided.")

    if custom_config:
        if "size" in custom_config:
            base_data["size"] = custom_config["size"]
        if "fields" in custom_config:
            if not isinstance(custom_config["fields"], Mapping):
                raise ValueError(
                    f"Invalid frame layout '{name}'. 'fields' must map names to (start, end)"
                )
            fields: Dict[str, Tuple[int, int]] = dict(base_data.get("fields", {}))
            fields.update(custom_config["fields"])
            base_data["fields"] = fields

    return FrameLayout.from_dict(name, base_data)
