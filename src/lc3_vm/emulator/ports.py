"""
Character I/O Ports
===================

The LC-3 talks to the outside world one byte at a time: the keyboard
registers poll for input, and the trap routines read and write characters.
Everything the machine needs from its environment goes through the
IOPort interface defined here, so the core never touches stdin, stdout or
a terminal directly.

Implementations:
    BufferedPort  - in-memory input and output (tests, scripted runs)
    StreamPort    - any pair of binary streams (files, pipes without an fd)
    ConsolePort   - the process's stdin/stdout file descriptors
    SerialPort    - a serial line (see serial_port.py)
"""

import logging
import os
import select
import sys
from typing import BinaryIO, Optional, Protocol

from lc3_vm.errors import EndOfInputError

logger = logging.getLogger(__name__)


class IOPort(Protocol):
    """
    Protocol defining the character I/O interface.

    The memory-mapped keyboard registers and the trap routines interact
    with the outside world through this interface.
    """

    def poll(self) -> bool:
        """Return True if a byte can be read without blocking."""
        ...

    def read_byte(self) -> int:
        """Read one byte, blocking until it arrives."""
        ...

    def write_byte(self, value: int) -> None:
        """Write one byte."""
        ...

    def flush(self) -> None:
        """Flush any buffered output."""
        ...


# =============================================================================
# In-Memory Port
# =============================================================================

class BufferedPort:
    """
    In-memory I/O port.

    Input is a queue of bytes supplied up front or with feed(); output is
    collected and can be inspected after the program runs. A blocking read
    on an empty queue raises EndOfInputError since no more input can ever
    arrive.

    Example:
        >>> port = BufferedPort(b"y")
        >>> emu = Emulator(port=port)
        >>> emu.load_image("prompt.obj")
        >>> emu.run()
        >>> port.text
        'Continue? y\\nHALT\\n'
    """

    def __init__(self, input: bytes | str = b""):
        self._input = bytearray(_to_bytes(input))
        self._output = bytearray()
        self.flush_count = 0

    def feed(self, data: bytes | str) -> None:
        """Append bytes to the pending input."""
        self._input.extend(_to_bytes(data))

    def poll(self) -> bool:
        return len(self._input) > 0

    def read_byte(self) -> int:
        if not self._input:
            raise EndOfInputError("no more input")
        return self._input.pop(0)

    def write_byte(self, value: int) -> None:
        self._output.append(value & 0xFF)

    def flush(self) -> None:
        self.flush_count += 1

    @property
    def pending_input(self) -> bytes:
        """Bytes fed but not yet read by the machine."""
        return bytes(self._input)

    @property
    def output(self) -> bytes:
        """All bytes written so far."""
        return bytes(self._output)

    @property
    def text(self) -> str:
        """Output decoded as latin-1 (one character per byte)."""
        return self._output.decode("latin-1")

    def clear_output(self) -> None:
        self._output.clear()


def _to_bytes(data: bytes | str) -> bytes:
    if isinstance(data, str):
        return data.encode("latin-1")
    return bytes(data)


# =============================================================================
# Stream Port
# =============================================================================

class StreamPort:
    """
    I/O port over arbitrary binary streams.

    Meant for non-interactive input such as files and in-memory buffers,
    where a read returns immediately. poll() reads one byte ahead and
    holds it until read_byte() takes it.
    """

    def __init__(self, instream: BinaryIO, outstream: BinaryIO):
        self.instream = instream
        self.outstream = outstream
        self._lookahead: Optional[int] = None
        self._eof = False

    def poll(self) -> bool:
        if self._lookahead is None and not self._eof:
            data = self.instream.read(1)
            if data:
                self._lookahead = data[0]
            else:
                self._eof = True
        return self._lookahead is not None

    def read_byte(self) -> int:
        if not self.poll():
            raise EndOfInputError("input stream closed")
        value = self._lookahead
        self._lookahead = None
        return value

    def write_byte(self, value: int) -> None:
        self.outstream.write(bytes([value & 0xFF]))

    def flush(self) -> None:
        self.outstream.flush()


# =============================================================================
# Console Port
# =============================================================================

class ConsolePort:
    """
    I/O port bound to the process's standard streams.

    Input is read straight from the stdin file descriptor so that select()
    and the reads agree on what is pending; Python's buffered sys.stdin
    would hide bytes from select(). Output goes to a binary stream.

    select() also reports a descriptor at end of file as readable, so
    poll() reads the pending byte ahead and only reports True when one
    actually arrived. Once input has ended poll() stays False.

    Attributes:
        stdin_fd: File descriptor used for input
        stdout: Binary stream used for output
    """

    def __init__(self, stdin_fd: Optional[int] = None,
                 stdout: Optional[BinaryIO] = None):
        self.stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self.stdout = sys.stdout.buffer if stdout is None else stdout
        self._lookahead: Optional[int] = None
        self._eof = False

    def poll(self) -> bool:
        if self._lookahead is None and not self._eof:
            readable, _, _ = select.select([self.stdin_fd], [], [], 0)
            if readable:
                self._read_ahead()
        return self._lookahead is not None

    def read_byte(self) -> int:
        if self._lookahead is None and not self._eof:
            self._read_ahead()
        if self._lookahead is None:
            raise EndOfInputError("standard input closed")
        value = self._lookahead
        self._lookahead = None
        return value

    def _read_ahead(self) -> None:
        data = os.read(self.stdin_fd, 1)
        if data:
            self._lookahead = data[0]
        else:
            logger.debug("stdin closed")
            self._eof = True

    def write_byte(self, value: int) -> None:
        self.stdout.write(bytes([value & 0xFF]))

    def flush(self) -> None:
        self.stdout.flush()
