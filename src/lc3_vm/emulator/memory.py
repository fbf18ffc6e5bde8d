"""
Memory Subsystem for the LC-3 VM
================================

The LC-3 has a flat, word-addressed memory: 65536 locations of 16 bits
each. Two addresses are memory-mapped device registers:

    xFE00  KBSR  Keyboard status register (bit 15 = character ready)
    xFE02  KBDR  Keyboard data register (last character polled)

Reading KBSR polls the I/O port. When a character is pending it is moved
into KBDR and KBSR reads x8000; otherwise KBSR reads zero. Every other
address is plain storage.

Memory map used by typical programs:
    x0000-x00FF  Trap vector table
    x0100-x01FF  Interrupt vector table
    x0200-x2FFF  Operating system and supervisor stack
    x3000-xFDFF  User programs
    xFE00-xFFFF  Device registers
"""

from typing import Iterable

from .ports import IOPort


# Memory-mapped registers
KBSR = 0xFE00
KBDR = 0xFE02

MEMORY_SIZE = 0x10000


class Memory:
    """
    65536-word memory with memory-mapped keyboard registers.

    Addresses are expected to be 16-bit; the CPU masks every address it
    computes. Values are masked to 16 bits on write.

    Attributes:
        port: I/O port polled when KBSR is read
    """

    def __init__(self, port: IOPort):
        self.port = port
        self._data = [0] * MEMORY_SIZE

    def read(self, address: int) -> int:
        """
        Read word from memory.

        Reading KBSR polls the I/O port and refreshes KBSR and KBDR.

        Args:
            address: 16-bit address

        Returns:
            16-bit word at address
        """
        if address == KBSR:
            if self.port.poll():
                self._data[KBSR] = 0x8000
                self._data[KBDR] = self.port.read_byte() & 0xFFFF
            else:
                self._data[KBSR] = 0
        return self._data[address]

    def write(self, address: int, value: int) -> None:
        """
        Write word to memory.

        Args:
            address: 16-bit address
            value: Word value to write
        """
        self._data[address] = value & 0xFFFF

    def peek(self, address: int) -> int:
        """Read word without device side effects."""
        return self._data[address & 0xFFFF]

    def load_words(self, origin: int, words: Iterable[int]) -> int:
        """
        Store consecutive words starting at origin.

        Stops at the end of memory.

        Returns:
            Number of words stored
        """
        address = origin
        for word in words:
            if address >= MEMORY_SIZE:
                break
            self._data[address] = word & 0xFFFF
            address += 1
        return address - origin

    def clear(self) -> None:
        """Zero all of memory."""
        self._data = [0] * MEMORY_SIZE

    def __len__(self) -> int:
        return MEMORY_SIZE
