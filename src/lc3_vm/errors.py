"""
LC-3 VM Error Hierarchy
=======================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from LC3Error, allowing callers to catch every
VM-related error with a single except clause if desired.

Exception Hierarchy
-------------------
LC3Error (base)
├── ImageError (program image handling)
│   ├── ImageLoadError - image file missing or unreadable
│   └── ImageFormatError - image too short or too large
├── MachineFault (fatal faults raised by the executing program)
│   ├── InvalidOpcodeError - RTI or the reserved opcode
│   └── InvalidTrapError - TRAP vector with no routine
├── MachineStateError - operation not valid in the current machine state
└── IOPortError (character I/O)
    ├── EndOfInputError - input closed during a blocking read
    └── PortError - an I/O port cannot be opened or configured

Machine faults carry the address of the faulting instruction and the raw
instruction word so the CLI can report exactly where a program went wrong:

    fault at x3002: reserved opcode (instruction xD000)
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class LC3Error(Exception):
    """
    Base exception for all LC-3 VM errors.

        try:
            emu.load_images(paths)
        except LC3Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Image Exceptions
# =============================================================================

class ImageError(LC3Error):
    """Base exception for program image errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        if path:
            super().__init__(f"{path}: {message}")
        else:
            super().__init__(message)


class ImageLoadError(ImageError):
    """
    The image could not be opened or read.

    Raised for missing files, permission problems and other I/O failures.
    The underlying OSError is chained as __cause__.
    """
    pass


class ImageFormatError(ImageError):
    """
    The image contents are not usable.

    Raised when the image has no origin word, or when a strict load finds
    that the image runs past the end of memory.
    """
    pass


# =============================================================================
# Machine Faults
# =============================================================================

class MachineFault(LC3Error):
    """
    Fatal fault caused by the program being executed.

    Faults are never retried: the machine moves to the FAULTED state and
    execution stops.

    Attributes:
        message: The fault description
        pc: Address of the faulting instruction (if known)
        instruction: The raw 16-bit instruction word (if known)
    """

    def __init__(
        self,
        message: str,
        pc: Optional[int] = None,
        instruction: Optional[int] = None,
    ):
        self.message = message
        self.pc = pc
        self.instruction = instruction
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []
        if self.pc is not None:
            parts.append(f"fault at x{self.pc:04X}: {self.message}")
        else:
            parts.append(self.message)
        if self.instruction is not None:
            parts.append(f"(instruction x{self.instruction:04X})")
        return " ".join(parts)


class InvalidOpcodeError(MachineFault):
    """RTI or the reserved opcode was executed."""

    def __init__(self, opcode_name: str, pc: Optional[int] = None,
                 instruction: Optional[int] = None):
        self.opcode_name = opcode_name
        super().__init__(f"invalid opcode {opcode_name}", pc, instruction)


class InvalidTrapError(MachineFault):
    """TRAP was executed with a vector that has no routine."""

    def __init__(self, vector: int, pc: Optional[int] = None,
                 instruction: Optional[int] = None):
        self.vector = vector
        super().__init__(f"invalid trap vector x{vector:02X}", pc, instruction)


class MachineStateError(LC3Error):
    """
    Operation attempted in the wrong machine state.

    For example stepping a machine that has already halted.
    """
    pass


# =============================================================================
# I/O Exceptions
# =============================================================================

class IOPortError(LC3Error):
    """Base exception for character I/O errors."""
    pass


class EndOfInputError(IOPortError):
    """
    Input ended while the machine was waiting for a character.

    GETC and IN block until a character arrives. When the input stream is
    closed (a pipe or file reaching EOF) there is nothing left to wait for.
    """
    pass


class PortError(IOPortError):
    """An I/O port could not be opened or configured."""
    pass
