"""
Serial Console Port
===================

Runs the LC-3 console over a serial line instead of the local terminal,
for example to drive a program from a hardware terminal or a second
machine through a USB-serial adapter.

The line is configured 8N1 with no flow control. Reads block until a byte
arrives; KBSR polling uses the driver's input count and never blocks.

Example:
    >>> port = SerialPort(open_serial_port("/dev/ttyUSB0", baud_rate=115200))
    >>> emu = Emulator(port=port)
"""

import logging
from typing import Final

import serial

from lc3_vm.errors import EndOfInputError, PortError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_BAUD_RATE: Final[int] = 9600

VALID_BAUD_RATES: Final[tuple[int, ...]] = (
    1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200,
)


# =============================================================================
# Port Configuration
# =============================================================================

def open_serial_port(device: str, baud_rate: int = DEFAULT_BAUD_RATE) -> serial.Serial:
    """
    Open and configure a serial port for use as the VM console.

    Args:
        device: Serial port device path (e.g., '/dev/ttyUSB0', 'COM3').
        baud_rate: Line speed, one of VALID_BAUD_RATES.

    Returns:
        Configured and opened serial.Serial object with blocking reads.

    Raises:
        PortError: If the port cannot be opened or configured.
        ValueError: If baud_rate is not a valid value.
    """
    if baud_rate not in VALID_BAUD_RATES:
        valid_str = ", ".join(str(b) for b in VALID_BAUD_RATES)
        raise ValueError(
            f"Invalid baud rate: {baud_rate}. Valid rates: {valid_str}"
        )

    logger.info("Opening serial port: %s at %d baud", device, baud_rate)

    try:
        port = serial.Serial(
            port=device,
            baudrate=baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=None,       # Blocking reads
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
        port.reset_input_buffer()
        return port

    except serial.SerialException as e:
        error_msg = str(e)

        if "Permission denied" in error_msg:
            raise PortError(
                f"Permission denied accessing {device}. "
                "You may need to add your user to the 'dialout' group."
            ) from e
        elif "No such file" in error_msg or "not found" in error_msg.lower():
            raise PortError(f"Serial port not found: {device}") from e
        elif "busy" in error_msg.lower() or "in use" in error_msg.lower():
            raise PortError(
                f"Serial port {device} is busy. "
                "Close any other programs using the port."
            ) from e
        else:
            raise PortError(f"Cannot open {device}: {e}") from e


def close_serial_port(port: serial.Serial) -> None:
    """
    Close a serial port, flushing pending output first.

    Errors during close are logged, not raised.
    """
    if port is None:
        return

    try:
        if port.is_open:
            port.flush()
            port.close()
            logger.debug("Serial port closed")
    except serial.SerialException as e:
        logger.warning("Error closing serial port: %s", e)


# =============================================================================
# I/O Port
# =============================================================================

class SerialPort:
    """
    I/O port backed by a pyserial connection.

    Attributes:
        serial: The underlying serial.Serial object
    """

    def __init__(self, connection: serial.Serial):
        self.serial = connection

    def poll(self) -> bool:
        return self.serial.in_waiting > 0

    def read_byte(self) -> int:
        data = self.serial.read(1)
        if not data:
            raise EndOfInputError(f"no data from {self.serial.port}")
        return data[0]

    def write_byte(self, value: int) -> None:
        self.serial.write(bytes([value & 0xFF]))

    def flush(self) -> None:
        self.serial.flush()

    def close(self) -> None:
        close_serial_port(self.serial)
