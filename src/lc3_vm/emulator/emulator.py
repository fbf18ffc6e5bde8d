"""
LC-3 Emulator - Main Orchestrator
=================================

This module provides the main `Emulator` class that wires memory, CPU,
trap routines and an I/O port together and drives the fetch-execute loop.

The machine is always in one of three states:

    RUNNING  - executing instructions
    HALTED   - the program executed TRAP x25
    FAULTED  - the program executed RTI, the reserved opcode, or a TRAP
               with an unknown vector

Only HALT leads to HALTED and only a fault leads to FAULTED. The loop has
no other exit: infinite loops and wild jumps are program bugs, not VM
faults. run() takes an optional instruction budget for callers that need
to bound execution (tests, tooling).

Example usage:
    >>> from lc3_vm.emulator import Emulator, BufferedPort
    >>> port = BufferedPort()
    >>> emu = Emulator(port=port)
    >>> emu.load_image("hello.obj")
    >>> result = emu.run()
    >>> result.state
    <MachineState.HALTED: 2>
    >>> port.text
    'Hello, World!\\nHALT\\n'
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Union

from lc3_vm.errors import MachineFault, MachineStateError
from .cpu import LC3, PC_START, Flags, Instruction
from .loader import Image, load_image
from .memory import Memory
from .ports import BufferedPort, IOPort
from .traps import DEFAULT_HALT_MESSAGE, DEFAULT_IN_PROMPT, TrapDispatcher

logger = logging.getLogger(__name__)


class MachineState(Enum):
    """Execution state of the machine."""
    RUNNING = auto()
    HALTED = auto()
    FAULTED = auto()


@dataclass(frozen=True)
class EmulatorConfig:
    """
    Configuration for emulator initialization.

    Attributes:
        start_address: Initial PC after reset (default x3000)
        in_prompt: Text written by the IN trap before reading
        halt_message: Text written by the HALT trap
        strict_images: Reject images that run past the end of memory
                       instead of truncating them
        trace: Log every instruction at DEBUG level

    Example:
        >>> config = EmulatorConfig(start_address=0x4000, trace=True)
    """
    start_address: int = PC_START
    in_prompt: str = DEFAULT_IN_PROMPT
    halt_message: str = DEFAULT_HALT_MESSAGE
    strict_images: bool = False
    trace: bool = False

    @classmethod
    def from_env(cls) -> "EmulatorConfig":
        """
        Create EmulatorConfig from environment variables.

        Environment variables (all optional):
            LC3_START_ADDRESS: Initial PC (hex with 0x/x prefix, or decimal)
            LC3_STRICT_IMAGES: "1"/"true"/"yes" to reject oversized images
            LC3_TRACE: "1"/"true"/"yes" to trace every instruction

        Invalid values are ignored.
        """
        values = {}

        if start := os.environ.get("LC3_START_ADDRESS"):
            try:
                address = parse_address(start)
                values["start_address"] = address
            except ValueError:
                logger.debug("Ignoring invalid LC3_START_ADDRESS=%r", start)

        if strict := os.environ.get("LC3_STRICT_IMAGES"):
            values["strict_images"] = _is_truthy(strict)

        if trace := os.environ.get("LC3_TRACE"):
            values["trace"] = _is_truthy(trace)

        return cls(**values)


def parse_address(text: str) -> int:
    """
    Parse a 16-bit address written as 0x3000, x3000 or 12288.

    Raises:
        ValueError: If the text is not a number or is out of range
    """
    text = text.strip()
    if text.lower().startswith("0x"):
        value = int(text[2:], 16)
    elif text[:1] in ("x", "X"):
        value = int(text[1:], 16)
    else:
        value = int(text)
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"address out of range: {text}")
    return value


def _is_truthy(text: str) -> bool:
    return text.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RunResult:
    """
    Outcome of a call to Emulator.run().

    Attributes:
        state: Machine state when execution stopped
        instructions: Instructions executed during this call
        pc: Program counter when execution stopped
        fault: The fault that stopped the machine (FAULTED only)
    """
    state: MachineState
    instructions: int
    pc: int
    fault: Optional[MachineFault] = None

    @property
    def halted(self) -> bool:
        return self.state == MachineState.HALTED

    @property
    def faulted(self) -> bool:
        return self.state == MachineState.FAULTED

    def __str__(self) -> str:
        match self.state:
            case MachineState.HALTED:
                return f"Halted after {self.instructions} instructions"
            case MachineState.FAULTED:
                return f"Faulted after {self.instructions} instructions: {self.fault}"
            case _:
                return (
                    f"Stopped at x{self.pc:04X} after {self.instructions} "
                    f"instructions (budget exhausted)"
                )


class Emulator:
    """
    LC-3 virtual machine.

    Owns one complete machine: memory, CPU and trap routines, all bound to
    a single I/O port. Instances share nothing, so several machines can
    coexist in one process.

    Attributes:
        config: The EmulatorConfig used to initialize this instance
        port: The I/O port (BufferedPort if none was given)
        memory: The 65536-word memory
        cpu: The LC3 CPU
        traps: The native trap routines
        state: Current MachineState
        fault: The fault that stopped the machine, if any
    """

    def __init__(
        self,
        config: Optional[EmulatorConfig] = None,
        port: Optional[IOPort] = None,
    ):
        self.config = config or EmulatorConfig()
        self.port: IOPort = port if port is not None else BufferedPort()

        self.memory = Memory(self.port)
        self.cpu = LC3(self.memory)
        self.traps = TrapDispatcher(
            self.cpu,
            self.memory,
            self.port,
            in_prompt=self.config.in_prompt,
            halt_message=self.config.halt_message,
        )
        self.cpu.on_trap = self.traps.dispatch
        if self.config.trace:
            self.cpu.on_instruction = self._trace_hook

        self.state = MachineState.RUNNING
        self.fault: Optional[MachineFault] = None
        self._total_instructions = 0
        self.reset()

    def _trace_hook(self, pc: int, instruction: Instruction) -> None:
        logger.debug("x%04X: %04X  %s", pc, instruction.word, instruction)

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_image(self, source: Union[str, Path, BinaryIO]) -> Image:
        """
        Load one image file or stream into memory.

        Raises:
            ImageLoadError: If the image cannot be read
            ImageFormatError: If the image is malformed
        """
        return load_image(self.memory, source, strict=self.config.strict_images)

    def load_images(self, sources: Iterable[Union[str, Path, BinaryIO]]) -> list[Image]:
        """
        Load several images in order.

        Later images overwrite words from earlier ones where they overlap.
        Loading stops at the first image that fails.
        """
        return [self.load_image(source) for source in sources]

    def load_words(self, origin: int, words: Iterable[int]) -> int:
        """
        Store words directly into memory starting at origin.

        Returns:
            Number of words stored (fewer than given at the end of memory)
        """
        return self.memory.load_words(origin, words)

    # =========================================================================
    # Execution Control
    # =========================================================================

    def reset(self) -> None:
        """
        Reset the CPU to its power-on state.

        Registers are cleared, COND is ZRO and PC is the configured start
        address. Memory is left alone so loaded images survive.
        """
        self.cpu.reset(self.config.start_address)
        self.traps.reset()
        self.state = MachineState.RUNNING
        self.fault = None
        self._total_instructions = 0
        logger.debug("Reset: PC=x%04X", self.cpu.pc)

    def step(self) -> Instruction:
        """
        Execute a single instruction.

        Returns:
            The instruction executed

        Raises:
            MachineStateError: If the machine is not RUNNING
            MachineFault: If the instruction faults (the machine is then
                          FAULTED)
        """
        if self.state != MachineState.RUNNING:
            raise MachineStateError(f"machine is {self.state.name}, not RUNNING")

        try:
            instr = self.cpu.step()
        except MachineFault as e:
            self.state = MachineState.FAULTED
            self.fault = e
            logger.error("%s", e)
            raise
        finally:
            self._total_instructions += 1

        if self.traps.halt_requested:
            self.state = MachineState.HALTED
            logger.info("Halted after %d instructions", self._total_instructions)
        return instr

    def run(self, max_instructions: Optional[int] = None) -> RunResult:
        """
        Run until the machine halts or faults.

        Args:
            max_instructions: Optional budget; when exhausted the machine
                              stays RUNNING and can be resumed.

        Returns:
            RunResult describing why execution stopped

        Raises:
            MachineStateError: If the machine is not RUNNING
            EndOfInputError: If input closes while GETC or IN is waiting
        """
        if self.state != MachineState.RUNNING:
            raise MachineStateError(f"machine is {self.state.name}, not RUNNING")

        executed = 0
        while self.state == MachineState.RUNNING:
            if max_instructions is not None and executed >= max_instructions:
                break
            try:
                self.step()
            except MachineFault:
                executed += 1
                break
            executed += 1

        return RunResult(
            state=self.state,
            instructions=executed,
            pc=self.cpu.pc,
            fault=self.fault,
        )

    # =========================================================================
    # State Inspection
    # =========================================================================

    @property
    def registers(self) -> dict:
        """
        Current register values as a dictionary.

        Returns:
            Dictionary with keys r0-r7, pc and cond (flag name)
        """
        regs = {f"r{i}": value for i, value in enumerate(self.cpu.registers)}
        regs["pc"] = self.cpu.pc
        regs["cond"] = Flags(self.cpu.cond).name
        return regs

    @property
    def total_instructions(self) -> int:
        """Instructions executed since the last reset."""
        return self._total_instructions

    @property
    def is_running(self) -> bool:
        return self.state == MachineState.RUNNING

    def read_word(self, address: int) -> int:
        """Read a word without device side effects."""
        return self.memory.peek(address)

    def write_word(self, address: int, value: int) -> None:
        self.memory.write(address & 0xFFFF, value)

    def __repr__(self) -> str:
        return (
            f"Emulator(state={self.state.name}, "
            f"pc=x{self.cpu.pc:04X}, "
            f"instructions={self._total_instructions})"
        )
