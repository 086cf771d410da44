import pytest
from typing import Generator, Dict, Any
from unittest.mock import MagicMock, patch


# Bit stream: 10010100 11100000 11110101 10101000 00000011
SAMPLE_BYTES = bytes([0x94, 0xE0, 0xF5, 0xA8, 0x03])


@pytest.fixture
def sample_buffer() -> bytes:
    """Five-byte buffer used by the worked extraction examples."""
    return SAMPLE_BYTES


@pytest.fixture
def mock_can() -> Generator[Dict[str, Any], None, None]:
    """Fixture that mocks python-can bus and notifier primitives."""
    with patch("bitspan.frame_decoder.can") as mock_can_lib:
        mock_bus: MagicMock = MagicMock()
        mock_notifier: MagicMock = MagicMock()

        mock_can_lib.interface.Bus.return_value = mock_bus
        mock_can_lib.Notifier.return_value = mock_notifier

        yield {"can": mock_can_lib, "bus": mock_bus, "notifier": mock_notifier}
