"""
LC-3 CPU
========

The LC-3 is a 16-bit load/store machine with:
- 8 general-purpose registers R0-R7 (16-bit)
- PC: program counter (16-bit, wraps modulo 65536)
- COND: condition flags, exactly one of N (negative), Z (zero), P (positive)

Every instruction is one 16-bit word. Bits [15:12] select the opcode:

    ---------------------------------
    | opcode |   operand fields     |
    ---------------------------------
     15   12  11                   0

Operand fields used by the instruction set:
    DR/SR       [11:9]   destination or source register
    n z p       [11:9]   BR condition mask
    SR1/BaseR   [8:6]    first source or base register
    SR2         [2:0]    second source register
    imm flag    [5]      ADD/AND immediate mode
    imm5        [4:0]    signed immediate
    offset6     [5:0]    signed base+offset displacement
    PCoffset9   [8:0]    signed PC-relative displacement
    PCoffset11  [10:0]   signed PC-relative displacement (JSR)
    JSR flag    [11]     JSR (1) or JSRR (0)
    trapvect8   [7:0]    trap vector (zero-extended)

PC-relative offsets are added to the PC after it has been incremented
past the current instruction.
"""

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Callable, Optional

from lc3_vm.errors import InvalidOpcodeError, InvalidTrapError
from .memory import Memory
from .traps import TrapVector


class Flags(IntFlag):
    """
    Condition flags held in COND.

    The bit order matches the n/z/p mask of the BR instruction, so a branch
    is taken when (mask & COND) != 0.
    """
    POS = 1 << 0  # P
    ZRO = 1 << 1  # Z
    NEG = 1 << 2  # N


class Opcode(IntEnum):
    """The sixteen values of the opcode field."""
    BR = 0b0000    # branch
    ADD = 0b0001   # add
    LD = 0b0010    # load
    ST = 0b0011    # store
    JSR = 0b0100   # jump to subroutine
    AND = 0b0101   # bitwise and
    LDR = 0b0110   # load base+offset
    STR = 0b0111   # store base+offset
    RTI = 0b1000   # return from interrupt (unsupported)
    NOT = 0b1001   # bitwise not
    LDI = 0b1010   # load indirect
    STI = 0b1011   # store indirect
    JMP = 0b1100   # jump
    RES = 0b1101   # reserved
    LEA = 0b1110   # load effective address
    TRAP = 0b1111  # execute trap


PC_START = 0x3000


def sign_extend(value: int, bit_count: int) -> int:
    """
    Sign-extend a bit_count-wide two's complement field to 16 bits.

    Args:
        value: Field value (only the low bit_count bits are used)
        bit_count: Field width in bits

    Returns:
        16-bit value

    Example:
        >>> hex(sign_extend(0b11111, 5))
        '0xffff'
        >>> sign_extend(0b01111, 5)
        15
    """
    value &= (1 << bit_count) - 1
    if (value >> (bit_count - 1)) & 1:
        value |= (0xFFFF << bit_count) & 0xFFFF
    return value


def to_signed(value: int) -> int:
    """Interpret a 16-bit word as a signed integer."""
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


# =============================================================================
# Instruction Decoding
# =============================================================================

@dataclass(frozen=True)
class Instruction:
    """
    A decoded instruction word.

    All fields are extracted regardless of opcode; each opcode uses the
    subset that applies to it. Offsets and immediates are already
    sign-extended to 16 bits.

    Attributes:
        word: Raw 16-bit instruction word
        opcode: Opcode field [15:12]
        dr: Destination/source register, or BR mask [11:9]
        sr1: First source/base register [8:6]
        sr2: Second source register [2:0]
        imm_mode: ADD/AND immediate mode bit [5]
        imm5: Sign-extended imm5
        offset6: Sign-extended offset6
        pc_offset9: Sign-extended PCoffset9
        pc_offset11: Sign-extended PCoffset11
        jsr_mode: JSR (True) vs JSRR (False) bit [11]
        trapvect8: Zero-extended trap vector
    """
    word: int
    opcode: Opcode
    dr: int
    sr1: int
    sr2: int
    imm_mode: bool
    imm5: int
    offset6: int
    pc_offset9: int
    pc_offset11: int
    jsr_mode: bool
    trapvect8: int

    @property
    def base_r(self) -> int:
        """Base register (same field as SR1)."""
        return self.sr1

    @property
    def sr(self) -> int:
        """Store source register (same field as DR)."""
        return self.dr

    @property
    def cond_mask(self) -> int:
        """BR condition mask (same field as DR)."""
        return self.dr

    def __str__(self) -> str:
        """Format as LC-3 assembly."""
        op = self.opcode
        match op:
            case Opcode.ADD | Opcode.AND:
                if self.imm_mode:
                    return f"{op.name} R{self.dr}, R{self.sr1}, #{to_signed(self.imm5)}"
                return f"{op.name} R{self.dr}, R{self.sr1}, R{self.sr2}"
            case Opcode.NOT:
                return f"NOT R{self.dr}, R{self.sr1}"
            case Opcode.BR:
                if self.cond_mask == 0:
                    return "NOP"
                mask = "".join(
                    name for name, flag in (("n", Flags.NEG), ("z", Flags.ZRO), ("p", Flags.POS))
                    if self.cond_mask & flag
                )
                return f"BR{mask} #{to_signed(self.pc_offset9)}"
            case Opcode.JMP:
                if self.base_r == 7:
                    return "RET"
                return f"JMP R{self.base_r}"
            case Opcode.JSR:
                if self.jsr_mode:
                    return f"JSR #{to_signed(self.pc_offset11)}"
                return f"JSRR R{self.base_r}"
            case Opcode.LD | Opcode.LDI | Opcode.LEA:
                return f"{op.name} R{self.dr}, #{to_signed(self.pc_offset9)}"
            case Opcode.ST | Opcode.STI:
                return f"{op.name} R{self.sr}, #{to_signed(self.pc_offset9)}"
            case Opcode.LDR | Opcode.STR:
                return f"{op.name} R{self.dr}, R{self.base_r}, #{to_signed(self.offset6)}"
            case Opcode.TRAP:
                try:
                    return TrapVector(self.trapvect8).name
                except ValueError:
                    return f"TRAP x{self.trapvect8:02X}"
            case Opcode.RTI | Opcode.RES:
                return f"{op.name} (x{self.word:04X})"


def decode(word: int) -> Instruction:
    """
    Decode a 16-bit instruction word.

    Example:
        >>> str(decode(0x1261))
        'ADD R1, R1, #1'
    """
    word &= 0xFFFF
    return Instruction(
        word=word,
        opcode=Opcode(word >> 12),
        dr=(word >> 9) & 0x7,
        sr1=(word >> 6) & 0x7,
        sr2=word & 0x7,
        imm_mode=bool((word >> 5) & 0x1),
        imm5=sign_extend(word & 0x1F, 5),
        offset6=sign_extend(word & 0x3F, 6),
        pc_offset9=sign_extend(word & 0x1FF, 9),
        pc_offset11=sign_extend(word & 0x7FF, 11),
        jsr_mode=bool((word >> 11) & 0x1),
        trapvect8=word & 0xFF,
    )


# =============================================================================
# Register File
# =============================================================================

@dataclass
class CPUState:
    """
    Complete register file.

    All values are Python ints representing 16-bit unsigned words.
    COND starts at ZRO because every register starts at zero.
    """
    r: list[int] = field(default_factory=lambda: [0] * 8)
    pc: int = PC_START
    cond: Flags = Flags.ZRO


class LC3:
    """
    LC-3 CPU: register file plus the instruction executor.

    The CPU fetches from and stores to a Memory instance. TRAP instructions
    are handed to the on_trap hook, which returns True when it handled the
    vector; an unhandled vector is a fatal fault.

    Hooks:
        on_instruction(pc, instruction): called before each instruction
        on_trap(vector) -> bool: runs a trap routine

    Example:
        >>> cpu = LC3(Memory(BufferedPort()))
        >>> cpu.memory.write(0x3000, 0x1261)   # ADD R1, R1, #1
        >>> cpu.step()
        >>> cpu.get_register(1), cpu.cond
        (1, <Flags.POS: 1>)
    """

    def __init__(self, memory: Memory):
        self.memory = memory
        self.state = CPUState()

        self.on_instruction: Optional[Callable[[int, Instruction], None]] = None
        self.on_trap: Optional[Callable[[int], bool]] = None

    # ========================================
    # Register Access
    # ========================================

    def get_register(self, r: int) -> int:
        """Value of general-purpose register R{r}."""
        return self.state.r[r]

    def set_register(self, r: int, value: int) -> None:
        """Set general-purpose register R{r} (masked to 16 bits)."""
        self.state.r[r] = value & 0xFFFF

    @property
    def registers(self) -> list[int]:
        """Copy of R0-R7."""
        return list(self.state.r)

    @property
    def pc(self) -> int:
        """Program counter (16-bit)."""
        return self.state.pc

    @pc.setter
    def pc(self, value: int) -> None:
        self.state.pc = value & 0xFFFF

    @property
    def cond(self) -> Flags:
        """Condition flags."""
        return self.state.cond

    def update_flags(self, r: int) -> None:
        """Set COND from the signed value of register R{r}."""
        value = self.state.r[r]
        if value == 0:
            self.state.cond = Flags.ZRO
        elif value >> 15:
            self.state.cond = Flags.NEG
        else:
            self.state.cond = Flags.POS

    def reset(self, pc: int = PC_START) -> None:
        """Clear registers, set COND to ZRO and PC to pc."""
        self.state = CPUState(pc=pc & 0xFFFF)

    # ========================================
    # Execution
    # ========================================

    def step(self) -> Instruction:
        """
        Fetch, decode and execute one instruction.

        Returns:
            The instruction that was executed

        Raises:
            InvalidOpcodeError: RTI or the reserved opcode
            InvalidTrapError: TRAP with an unhandled vector
        """
        address = self.pc
        word = self.memory.read(address)
        self.pc = address + 1
        instr = decode(word)
        if self.on_instruction:
            self.on_instruction(address, instr)
        self._execute_instruction(instr, address)
        return instr

    def _execute_instruction(self, instr: Instruction, address: int) -> None:
        """
        Execute a decoded instruction.

        Args:
            instr: The decoded instruction
            address: Address the instruction was fetched from
        """
        r = self.state.r
        mem = self.memory

        match instr.opcode:
            case Opcode.ADD:
                operand = instr.imm5 if instr.imm_mode else r[instr.sr2]
                self.set_register(instr.dr, r[instr.sr1] + operand)
                self.update_flags(instr.dr)

            case Opcode.AND:
                operand = instr.imm5 if instr.imm_mode else r[instr.sr2]
                self.set_register(instr.dr, r[instr.sr1] & operand)
                self.update_flags(instr.dr)

            case Opcode.NOT:
                self.set_register(instr.dr, ~r[instr.sr1])
                self.update_flags(instr.dr)

            case Opcode.BR:
                if instr.cond_mask & self.state.cond:
                    self.pc = self.pc + instr.pc_offset9

            case Opcode.JMP:
                self.pc = r[instr.base_r]

            case Opcode.JSR:
                r[7] = self.pc
                if instr.jsr_mode:
                    self.pc = self.pc + instr.pc_offset11
                else:
                    self.pc = r[instr.base_r]

            case Opcode.LD:
                self.set_register(instr.dr, mem.read((self.pc + instr.pc_offset9) & 0xFFFF))
                self.update_flags(instr.dr)

            case Opcode.LDI:
                pointer = mem.read((self.pc + instr.pc_offset9) & 0xFFFF)
                self.set_register(instr.dr, mem.read(pointer))
                self.update_flags(instr.dr)

            case Opcode.LDR:
                self.set_register(instr.dr, mem.read((r[instr.base_r] + instr.offset6) & 0xFFFF))
                self.update_flags(instr.dr)

            case Opcode.LEA:
                self.set_register(instr.dr, self.pc + instr.pc_offset9)
                self.update_flags(instr.dr)

            case Opcode.ST:
                mem.write((self.pc + instr.pc_offset9) & 0xFFFF, r[instr.sr])

            case Opcode.STI:
                pointer = mem.read((self.pc + instr.pc_offset9) & 0xFFFF)
                mem.write(pointer, r[instr.sr])

            case Opcode.STR:
                mem.write((r[instr.base_r] + instr.offset6) & 0xFFFF, r[instr.sr])

            case Opcode.TRAP:
                if self.on_trap is None or not self.on_trap(instr.trapvect8):
                    raise InvalidTrapError(instr.trapvect8, address, instr.word)

            case Opcode.RTI | Opcode.RES:
                raise InvalidOpcodeError(instr.opcode.name, address, instr.word)

    def __repr__(self) -> str:
        regs = " ".join(f"R{i}=x{v:04X}" for i, v in enumerate(self.state.r))
        return f"LC3(pc=x{self.pc:04X}, cond={self.cond.name}, {regs})"
