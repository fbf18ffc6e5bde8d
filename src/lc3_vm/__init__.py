"""
LC-3 VM - A Virtual Machine for the LC-3 Educational Computer
=============================================================

The LC-3 is a 16-bit teaching architecture: 65536 words of memory, eight
general-purpose registers, fifteen live opcodes and a handful of trap
routines for character I/O. This package loads LC-3 object images and
runs them.

Main Components
---------------
- **emulator**: Memory, CPU, trap routines, image loader and run loop
- **cli**: The `lc3run` command

Quick Start
-----------
Run a program from Python:
    >>> from lc3_vm import Emulator, BufferedPort
    >>> port = BufferedPort()
    >>> emu = Emulator(port=port)
    >>> emu.load_image("hello.obj")
    >>> emu.run()
    >>> print(port.text)

Or from the shell:
    $ lc3run hello.obj
    $ lc3run os.obj game.obj --trace -v

Reference Documentation
-----------------------
- LC-3 ISA: Patt & Patel, "Introduction to Computing Systems", Appendix A
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from lc3_vm.emulator import (
    Emulator,
    EmulatorConfig,
    MachineState,
    RunResult,
    BufferedPort,
    ConsolePort,
    IOPort,
)
from lc3_vm.errors import (
    LC3Error,
    ImageError,
    ImageLoadError,
    ImageFormatError,
    MachineFault,
    InvalidOpcodeError,
    InvalidTrapError,
    MachineStateError,
    IOPortError,
    EndOfInputError,
    PortError,
)

__all__ = [
    "__version__",
    # Emulator
    "Emulator",
    "EmulatorConfig",
    "MachineState",
    "RunResult",
    "BufferedPort",
    "ConsolePort",
    "IOPort",
    # Exception hierarchy
    "LC3Error",
    "ImageError",
    "ImageLoadError",
    "ImageFormatError",
    "MachineFault",
    "InvalidOpcodeError",
    "InvalidTrapError",
    "MachineStateError",
    "IOPortError",
    "EndOfInputError",
    "PortError",
]
