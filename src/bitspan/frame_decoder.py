import can
import csv
import threading
import warnings
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, TextIO, Union

from .constants import DEFAULT_MAX_PENDING_FRAMES, DEFAULT_RECORD_COLUMNS
from .layout import FrameLayout, get_frame_layout
from .utils import format_hex


class DecodedFrame:
    """
    Data structure holding the raw field values decoded from one CAN frame.
    """

    def __init__(
        self,
        arbitration_id: int,
        layout_name: str,
        fields: Dict[str, int],
        timestamp: float,
    ) -> None:
        """
        Args:
            arbitration_id: CAN ID the frame was received on
            layout_name: Name of the layout used to decode the frame
            fields: Field name to raw unsigned value
            timestamp: Reception time reported by python-can, in seconds
        """
        self.arbitration_id = arbitration_id
        self.layout_name = layout_name
        self.fields = fields
        self.timestamp = timestamp

    def __getitem__(self, name: str) -> int:
        return self.fields[name]

    def __str__(self) -> str:
        values = " | ".join(f"{name}: {value}" for name, value in self.fields.items())
        return f"{self.layout_name} ({hex(self.arbitration_id)}) | {values}"


FrameCallback = Callable[[DecodedFrame], None]


class FrameListener(can.Listener):
    """
    Python-can listener that decodes every frame whose arbitration ID has a layout.
    """

    debug: bool = False
    """
    Set to true to print every decoded frame.
    """

    def __init__(
        self,
        layouts: Dict[int, FrameLayout],
        callback: Optional[FrameCallback] = None,
        max_pending: int = DEFAULT_MAX_PENDING_FRAMES,
    ) -> None:
        """
        Args:
            layouts: Arbitration ID to the layout used to decode its frames
            callback: Called from the notifier thread with each decoded frame
            max_pending: Frames kept for drain(). When full, the oldest frame is dropped.
        """
        if max_pending < 1:
            raise ValueError("max_pending must be >= 1")
        self.layouts = dict(layouts)
        self.callback = callback
        self._latest: Dict[int, DecodedFrame] = {}
        self._pending: Deque[DecodedFrame] = deque(maxlen=max_pending)
        self._lock = threading.Lock()
        self._error: Optional[RuntimeError] = None

    def decode_message(self, msg: can.Message) -> DecodedFrame:
        """
        Decode msg with the layout registered for its arbitration ID.

        Raises:
            KeyError: If no layout is registered for the arbitration ID.
            ValueError: If the frame is shorter than the layout.
        """
        layout = self.layouts[msg.arbitration_id]
        fields = layout.decode(bytes(msg.data))
        return DecodedFrame(msg.arbitration_id, layout.name, fields, msg.timestamp)

    def on_message_received(self, msg: can.Message) -> None:
        """
        Decodes msg if a layout is registered for its arbitration ID.

        Args:
            msg: A python-can CAN message
        """
        layout = self.layouts.get(msg.arbitration_id)
        if layout is None:
            return

        if len(msg.data) < layout.size:
            warnings.warn(
                f"Dropped {len(msg.data)}-byte frame on ID {hex(msg.arbitration_id)}: "
                f"layout '{layout.name}' needs {layout.size} bytes",
                RuntimeWarning,
            )
            return

        try:
            frame = self.decode_message(msg)
            if self.debug:
                print(f"ID: {hex(msg.arbitration_id)}   Data: [{format_hex(msg.data)}]")
                print(f"  {frame}")
            with self._lock:
                self._latest[frame.arbitration_id] = frame
                self._pending.append(frame)
            if self.callback is not None:
                self.callback(frame)
        except Exception as exc:
            # Keep the notifier thread alive and surface the error on poll().
            # The first unreported error wins.
            with self._lock:
                if self._error is None:
                    self._error = RuntimeError(
                        f"Frame listener error on ID {hex(msg.arbitration_id)}: {exc}"
                    )

    def poll(self) -> None:
        """
        Re-raise, on the caller's thread, the first unreported error caught on the notifier thread.
        """
        with self._lock:
            error, self._error = self._error, None
        if error is not None:
            raise error

    def latest(self, arbitration_id: int) -> Optional[DecodedFrame]:
        with self._lock:
            return self._latest.get(arbitration_id)

    def drain(self) -> List[DecodedFrame]:
        """Return and forget the frames decoded since the previous drain."""
        with self._lock:
            frames = list(self._pending)
            self._pending.clear()
        return frames


class FrameDecoder:
    """
    Owns a CAN bus connection and decodes its frames through frame layouts.
    This class should be used in a with block so the bus and the record log
    are closed deterministically.
    """

    def __init__(
        self,
        layouts: Dict[int, Union[str, FrameLayout]],
        channel: str = "can0",
        interface: str = "socketcan",
        CSV_file: Optional[str] = None,
        callback: Optional[FrameCallback] = None,
        max_pending: int = DEFAULT_MAX_PENDING_FRAMES,
    ) -> None:
        """
        Args:
            layouts: Arbitration ID to a FrameLayout or the name of a default layout.
            channel: The CAN channel name (e.g. 'can0', 'vcan0')
            interface: The python-can interface name
            CSV_file: A CSV file to log decoded frames to. If None, nothing is recorded.
            callback: Called from the notifier thread with each decoded frame
            max_pending: Frames buffered between update() calls before the oldest is dropped
        """
        resolved: Dict[int, FrameLayout] = {}
        for arbitration_id, layout in layouts.items():
            if isinstance(layout, str):
                layout = get_frame_layout(layout)
            resolved[arbitration_id] = layout

        self.channel = channel
        self.interface = interface
        self.csv_file_name = CSV_file
        self.listener = FrameListener(resolved, callback, max_pending)
        self.bus: Optional[can.BusABC] = None
        self.notifier: Optional[can.Notifier] = None
        self.csv_file: Optional[TextIO] = None
        self._columns = self._record_columns(resolved.values())

    @staticmethod
    def _record_columns(layouts) -> List[str]:
        columns = list(DEFAULT_RECORD_COLUMNS)
        for layout in layouts:
            for name in layout.field_names():
                if name not in columns:
                    columns.append(name)
        return columns

    def __enter__(self) -> "FrameDecoder":
        self.open()
        return self

    def __exit__(self, etype, value, tb) -> None:
        self.close()

    def open(self) -> None:
        """
        Opens the bus, starts the notifier and begins the record log.

        Raises:
            RuntimeError: If the CAN interface or its notifier cannot be started.
        """
        if self.bus is not None:
            return

        try:
            self.bus = can.interface.Bus(channel=self.channel, interface=self.interface)
        except Exception as e:
            self.bus = None
            raise RuntimeError(
                f"Failed to open CAN interface '{self.channel}'. "
                f"Ensure the interface exists and is UP before decoding."
            ) from e

        try:
            self.notifier = can.Notifier(self.bus, [self.listener])
        except Exception as e:
            self._shutdown_bus()
            raise RuntimeError(
                f"Failed to start CAN listener on interface '{self.channel}'."
            ) from e

        try:
            if self.csv_file_name is not None:
                with open(self.csv_file_name, "w", newline="") as fd:
                    writer = csv.writer(fd)
                    writer.writerow(self._columns)
                self.csv_file = open(self.csv_file_name, "a", newline="")
                self.csv_writer = csv.writer(self.csv_file)
        except Exception:
            # Roll back so a failed entry never leaves the bus or notifier running.
            self.close()
            raise

    def _shutdown_bus(self) -> None:
        if self.bus is not None:
            try:
                self.bus.shutdown()
            except Exception as exc:
                warnings.warn(
                    f"CAN bus shutdown failed on '{self.channel}': {exc}",
                    RuntimeWarning,
                    stacklevel=2,
                )
            self.bus = None

    def close(self) -> None:
        """
        Stop the notifier, shut down the bus and close the record log. Safe to call twice.
        """
        if self.notifier is not None:
            self.notifier.stop()
            self.notifier = None
        self._shutdown_bus()
        if self.csv_file is not None:
            self.csv_file.close()
            self.csv_file = None

    def update(self) -> List[DecodedFrame]:
        """
        Collect the frames decoded since the last update and append them to the record log.

        Returns:
            The newly decoded frames, oldest first.

        Raises:
            RuntimeError: If the decoder is not open, or the listener failed.
        """
        if self.bus is None:
            raise RuntimeError(
                f"Tried to update before opening the decoder on '{self.channel}'"
            )

        self.listener.poll()
        frames = self.listener.drain()

        if self.csv_file is not None:
            for frame in frames:
                row = [frame.timestamp, hex(frame.arbitration_id), frame.layout_name]
                row += [frame.fields.get(name, "") for name in self._columns[len(row):]]
                self.csv_writer.writerow(row)
        return frames

    def latest(self, arbitration_id: int) -> Optional[DecodedFrame]:
        """Most recent frame decoded on arbitration_id, or None."""
        return self.listener.latest(arbitration_id)
