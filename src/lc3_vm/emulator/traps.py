"""
Trap Routines
=============

On real hardware TRAP jumps through the vector table at x0000-x00FF into
operating-system code. This VM has no operating system image; instead the
six standard service routines are implemented natively and selected by
the low byte of the TRAP instruction:

    x20  GETC   read one character into R0 (no echo)
    x21  OUT    write the character in R0
    x22  PUTS   write the string at R0, one character per word
    x23  IN     prompt, read one character into R0 and echo it
    x24  PUTSP  write the string at R0, two characters per word
    x25  HALT   stop the machine

Native routines leave R7 and PC untouched. Any other vector is a fatal
fault, raised by the CPU when dispatch() reports it as unhandled.
"""

import logging
from enum import IntEnum
from typing import TYPE_CHECKING

from .ports import IOPort

if TYPE_CHECKING:
    from .cpu import LC3
    from .memory import Memory

logger = logging.getLogger(__name__)


class TrapVector(IntEnum):
    """Trap vectors with a native routine."""
    GETC = 0x20
    OUT = 0x21
    PUTS = 0x22
    IN = 0x23
    PUTSP = 0x24
    HALT = 0x25


DEFAULT_IN_PROMPT = "Enter a character: "
DEFAULT_HALT_MESSAGE = "HALT\n"


class TrapDispatcher:
    """
    Runs the native trap routines against a CPU, its memory and an I/O port.

    Attributes:
        halt_requested: Set by HALT; the run loop stops after the current
                        instruction when it sees this.
        in_prompt: Text written by IN before reading
        halt_message: Text written by HALT
    """

    def __init__(
        self,
        cpu: "LC3",
        memory: "Memory",
        port: IOPort,
        in_prompt: str = DEFAULT_IN_PROMPT,
        halt_message: str = DEFAULT_HALT_MESSAGE,
    ):
        self.cpu = cpu
        self.memory = memory
        self.port = port
        self.in_prompt = in_prompt
        self.halt_message = halt_message
        self.halt_requested = False

        self._routines = {
            TrapVector.GETC: self.trap_getc,
            TrapVector.OUT: self.trap_out,
            TrapVector.PUTS: self.trap_puts,
            TrapVector.IN: self.trap_in,
            TrapVector.PUTSP: self.trap_putsp,
            TrapVector.HALT: self.trap_halt,
        }

    def dispatch(self, vector: int) -> bool:
        """
        Run the routine for a trap vector.

        Args:
            vector: Zero-extended trapvect8

        Returns:
            True if the vector was handled, False if it has no routine
        """
        try:
            routine = self._routines[TrapVector(vector)]
        except ValueError:
            logger.debug("No routine for trap vector x%02X", vector)
            return False
        routine()
        return True

    def reset(self) -> None:
        self.halt_requested = False

    # ========================================
    # Routines
    # ========================================

    def trap_getc(self) -> None:
        """Read one character into R0 without echo."""
        self.cpu.set_register(0, self.port.read_byte())

    def trap_out(self) -> None:
        """Write the low byte of R0."""
        self.port.write_byte(self.cpu.get_register(0) & 0xFF)
        self.port.flush()

    def trap_puts(self) -> None:
        """Write the zero-terminated string at R0, one character per word."""
        address = self.cpu.get_register(0)
        while word := self.memory.peek(address):
            self.port.write_byte(word & 0xFF)
            address = (address + 1) & 0xFFFF
        self.port.flush()

    def trap_in(self) -> None:
        """Prompt, read one character into R0 and echo it."""
        self._write_text(self.in_prompt)
        self.port.flush()
        char = self.port.read_byte()
        self.cpu.set_register(0, char)
        self.port.write_byte(char)
        self.port.flush()

    def trap_putsp(self) -> None:
        """
        Write the zero-terminated string at R0, two characters per word.

        The low byte holds the first character. A word whose high byte is
        zero ends the string after its low byte.
        """
        address = self.cpu.get_register(0)
        while word := self.memory.peek(address):
            self.port.write_byte(word & 0xFF)
            high = word >> 8
            if high == 0:
                break
            self.port.write_byte(high)
            address = (address + 1) & 0xFFFF
        self.port.flush()

    def trap_halt(self) -> None:
        """Write the halt notice and request a halt."""
        self._write_text(self.halt_message)
        self.port.flush()
        self.halt_requested = True

    def _write_text(self, text: str) -> None:
        for byte in text.encode("latin-1"):
            self.port.write_byte(byte)
