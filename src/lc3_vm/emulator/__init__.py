"""
LC-3 Emulator
=============

A virtual machine for the LC-3 educational computer.

This package provides:

- **CPU**: All fifteen live opcodes with exact flag behavior
- **Memory**: 65536 words with the KBSR/KBDR keyboard registers
- **Traps**: Native GETC, OUT, PUTS, IN, PUTSP and HALT routines
- **Loader**: Big-endian object images, several per run
- **I/O Ports**: Console, in-memory and serial-line character I/O

Quick Start
-----------

Run a program headless with scripted input::

    >>> from lc3_vm.emulator import Emulator, BufferedPort
    >>> port = BufferedPort(b"q")
    >>> emu = Emulator(port=port)
    >>> emu.load_image("game.obj")
    >>> result = emu.run()
    >>> print(result)
    Halted after 5123 instructions
    >>> print(port.text)

Module Structure
----------------

- `emulator.py`: Emulator class and run loop
- `cpu.py`: Decoder and instruction executor
- `memory.py`: Memory with mapped keyboard registers
- `traps.py`: Native trap routines
- `loader.py`: Object image parsing and loading
- `ports.py`: I/O port protocol, console and buffered ports
- `serial_port.py`: Serial-line I/O port
- `terminal.py`: Terminal raw-mode context manager
"""

from .emulator import Emulator, EmulatorConfig, MachineState, RunResult, parse_address

from .cpu import LC3, CPUState, Flags, Opcode, Instruction, decode, sign_extend, PC_START

from .memory import Memory, KBSR, KBDR, MEMORY_SIZE

from .traps import TrapDispatcher, TrapVector

from .loader import Image, load_image, parse_image

from .ports import IOPort, BufferedPort, StreamPort, ConsolePort

__all__ = [
    # Main API
    "Emulator",
    "EmulatorConfig",
    "MachineState",
    "RunResult",
    "parse_address",

    # CPU
    "LC3",
    "CPUState",
    "Flags",
    "Opcode",
    "Instruction",
    "decode",
    "sign_extend",
    "PC_START",

    # Memory
    "Memory",
    "KBSR",
    "KBDR",
    "MEMORY_SIZE",

    # Traps
    "TrapDispatcher",
    "TrapVector",

    # Loader
    "Image",
    "load_image",
    "parse_image",

    # I/O
    "IOPort",
    "BufferedPort",
    "StreamPort",
    "ConsolePort",
]
