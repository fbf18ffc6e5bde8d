"""
LC-3 CPU Unit Tests
===================

Tests for the decoder and instruction executor, covering:
- Sign extension of every immediate/offset width
- Condition flag derivation
- Every live opcode
- Address and PC wraparound
- Invalid opcodes and unhandled traps
"""

import pytest

from lc3_vm.emulator import (
    LC3,
    BufferedPort,
    Flags,
    Memory,
    Opcode,
    decode,
    sign_extend,
)
from lc3_vm.errors import InvalidOpcodeError, InvalidTrapError


# =============================================================================
# CPU Fixture
# =============================================================================

@pytest.fixture
def cpu():
    """CPU over fresh memory with no input."""
    return LC3(Memory(BufferedPort()))


def execute(cpu: LC3, word: int, at: int = 0x3000) -> None:
    """Place one instruction at `at` and execute it."""
    cpu.memory.write(at, word)
    cpu.pc = at
    cpu.step()


# =============================================================================
# Sign Extension
# =============================================================================

class TestSignExtend:
    """Two's complement sign extension to 16 bits."""

    @pytest.mark.parametrize("value, bits, expected", [
        (0b01111, 5, 0x000F),
        (0b10000, 5, 0xFFF0),
        (0b11111, 5, 0xFFFF),
        (0b011111, 6, 0x001F),
        (0b100000, 6, 0xFFE0),
        (0x0FF, 9, 0x00FF),
        (0x100, 9, 0xFF00),
        (0x1FF, 9, 0xFFFF),
        (0x3FF, 11, 0x03FF),
        (0x400, 11, 0xFC00),
        (0x7FF, 11, 0xFFFF),
    ])
    def test_widths(self, value, bits, expected):
        assert sign_extend(value, bits) == expected

    def test_zero(self):
        for bits in (5, 6, 9, 11):
            assert sign_extend(0, bits) == 0

    def test_ignores_bits_above_field(self):
        """Only the low `bits` bits are part of the field."""
        assert sign_extend(0xFFE1, 5) == 0x0001


# =============================================================================
# Decoder
# =============================================================================

class TestDecode:
    """Field extraction and mnemonic rendering."""

    def test_opcode_field(self):
        for op in Opcode:
            assert decode(op << 12).opcode == op

    def test_fields(self):
        instr = decode(0x147D)  # ADD R2, R1, #-3
        assert instr.opcode == Opcode.ADD
        assert instr.dr == 2
        assert instr.sr1 == 1
        assert instr.imm_mode is True
        assert instr.imm5 == 0xFFFD

    def test_trapvect_zero_extended(self):
        assert decode(0xF0FF).trapvect8 == 0xFF

    @pytest.mark.parametrize("word, text", [
        (0x1261, "ADD R1, R1, #1"),
        (0x1642, "ADD R3, R1, R2"),
        (0x5020, "AND R0, R0, #0"),
        (0x997F, "NOT R4, R5"),
        (0x0FFF, "BRnzp #-1"),
        (0x0402, "BRz #2"),
        (0x0000, "NOP"),
        (0xC1C0, "RET"),
        (0xC080, "JMP R2"),
        (0x480A, "JSR #10"),
        (0x40C0, "JSRR R3"),
        (0xA401, "LDI R2, #1"),
        (0x62BE, "LDR R1, R2, #-2"),
        (0x7703, "STR R3, R4, #3"),
        (0xF025, "HALT"),
        (0xF022, "PUTS"),
        (0xF0FF, "TRAP xFF"),
        (0xD000, "RES (xD000)"),
    ])
    def test_str(self, word, text):
        assert str(decode(word)) == text


# =============================================================================
# Registers and Flags
# =============================================================================

class TestRegisters:
    """Register file access and masking."""

    def test_initial_state(self, cpu):
        assert cpu.registers == [0] * 8
        assert cpu.pc == 0x3000
        assert cpu.cond == Flags.ZRO

    def test_register_masked(self, cpu):
        cpu.set_register(3, 0x12345)
        assert cpu.get_register(3) == 0x2345

        cpu.set_register(3, -1)
        assert cpu.get_register(3) == 0xFFFF

    def test_pc_wraps(self, cpu):
        cpu.pc = 0x10000
        assert cpu.pc == 0x0000

    def test_reset(self, cpu):
        cpu.set_register(1, 5)
        cpu.update_flags(1)
        cpu.reset(0x4000)
        assert cpu.registers == [0] * 8
        assert cpu.cond == Flags.ZRO
        assert cpu.pc == 0x4000


class TestFlags:
    """COND derivation from the signed register value."""

    @pytest.mark.parametrize("value, flag", [
        (0x0000, Flags.ZRO),
        (0x0001, Flags.POS),
        (0x7FFF, Flags.POS),
        (0x8000, Flags.NEG),
        (0xFFFF, Flags.NEG),
    ])
    def test_update_flags(self, cpu, value, flag):
        cpu.set_register(2, value)
        cpu.update_flags(2)
        assert cpu.cond == flag

    @pytest.mark.parametrize("word, r1", [
        (0x1261, 0xFFFF),  # ADD R1, R1, #1
        (0x1261, 0x7FFF),
        (0x5260, 0x1234),  # AND R1, R1, #0
        (0x927F, 0x0000),  # NOT R1, R1
        (0x927F, 0x8000),
    ])
    def test_exactly_one_flag(self, cpu, word, r1):
        """After a destination write exactly one flag is set and matches R1."""
        cpu.set_register(1, r1)
        execute(cpu, word)
        assert bin(int(cpu.cond)).count("1") == 1
        value = cpu.get_register(1)
        if value == 0:
            assert cpu.cond == Flags.ZRO
        elif value & 0x8000:
            assert cpu.cond == Flags.NEG
        else:
            assert cpu.cond == Flags.POS


# =============================================================================
# Operate Instructions
# =============================================================================

class TestAdd:
    """ADD in immediate and register mode."""

    def test_immediate_negative(self, cpu):
        cpu.set_register(1, 5)
        execute(cpu, 0x147D)  # ADD R2, R1, #-3
        assert cpu.get_register(2) == 2
        assert cpu.cond == Flags.POS

    def test_register_mode(self, cpu):
        cpu.set_register(1, 0x7FFF)
        cpu.set_register(2, 1)
        execute(cpu, 0x1642)  # ADD R3, R1, R2
        assert cpu.get_register(3) == 0x8000
        assert cpu.cond == Flags.NEG

    def test_wraps_to_zero(self, cpu):
        cpu.set_register(1, 0xFFFF)
        execute(cpu, 0x1261)  # ADD R1, R1, #1
        assert cpu.get_register(1) == 0
        assert cpu.cond == Flags.ZRO

    def test_register_mode_uses_full_value(self, cpu):
        """Register mode is not limited to the imm5 range."""
        cpu.set_register(1, 0x0100)
        cpu.set_register(2, 0x0234)
        execute(cpu, 0x1642)
        assert cpu.get_register(3) == 0x0334


class TestAnd:
    """AND in immediate and register mode."""

    def test_immediate_positive(self, cpu):
        cpu.set_register(1, 0xABCD)
        execute(cpu, 0x506F)  # AND R0, R1, #15
        assert cpu.get_register(0) == 0x000D
        assert cpu.cond == Flags.POS

    def test_immediate_minus_one_keeps_value(self, cpu):
        cpu.set_register(1, 0x8001)
        execute(cpu, 0x507F)  # AND R0, R1, #-1
        assert cpu.get_register(0) == 0x8001
        assert cpu.cond == Flags.NEG

    def test_clear(self, cpu):
        cpu.set_register(0, 0x1234)
        execute(cpu, 0x5020)  # AND R0, R0, #0
        assert cpu.get_register(0) == 0
        assert cpu.cond == Flags.ZRO

    def test_register_mode(self, cpu):
        cpu.set_register(1, 0xFF0F)
        cpu.set_register(2, 0x0FF0)
        execute(cpu, 0x5642)  # AND R3, R1, R2
        assert cpu.get_register(3) == 0x0F00


class TestNot:

    def test_not(self, cpu):
        execute(cpu, 0x997F)  # NOT R4, R5
        assert cpu.get_register(4) == 0xFFFF
        assert cpu.cond == Flags.NEG

    def test_not_to_zero(self, cpu):
        cpu.set_register(5, 0xFFFF)
        execute(cpu, 0x997F)
        assert cpu.get_register(4) == 0
        assert cpu.cond == Flags.ZRO


# =============================================================================
# Control Instructions
# =============================================================================

class TestBranch:
    """BR with condition masks."""

    def test_taken(self, cpu):
        execute(cpu, 0x0402)  # BRz #2, COND is ZRO after reset
        assert cpu.pc == 0x3003

    def test_not_taken(self, cpu):
        execute(cpu, 0x0202)  # BRp #2
        assert cpu.pc == 0x3001

    def test_backward(self, cpu):
        execute(cpu, 0x0FFF)  # BRnzp #-1
        assert cpu.pc == 0x3000

    def test_empty_mask_never_taken(self, cpu):
        execute(cpu, 0x0005)
        assert cpu.pc == 0x3001

    def test_negative_flag(self, cpu):
        cpu.set_register(0, 0x8000)
        cpu.update_flags(0)
        execute(cpu, 0x0803)  # BRn #3
        assert cpu.pc == 0x3004


class TestJumps:
    """JMP, RET, JSR and JSRR."""

    def test_jmp(self, cpu):
        cpu.set_register(2, 0x4000)
        execute(cpu, 0xC080)  # JMP R2
        assert cpu.pc == 0x4000

    def test_ret(self, cpu):
        cpu.set_register(7, 0x3456)
        execute(cpu, 0xC1C0)
        assert cpu.pc == 0x3456

    def test_jsr(self, cpu):
        execute(cpu, 0x480A)  # JSR #10
        assert cpu.get_register(7) == 0x3001
        assert cpu.pc == 0x300B

    def test_jsr_backward(self, cpu):
        execute(cpu, 0x4FFF)  # JSR #-1
        assert cpu.get_register(7) == 0x3001
        assert cpu.pc == 0x3000

    def test_jsrr(self, cpu):
        cpu.set_register(3, 0x5000)
        execute(cpu, 0x40C0)  # JSRR R3
        assert cpu.get_register(7) == 0x3001
        assert cpu.pc == 0x5000

    def test_jsrr_r7_reads_after_link(self, cpu):
        """R7 is written before the base register is read."""
        cpu.set_register(7, 0x5000)
        execute(cpu, 0x41C0)  # JSRR R7
        assert cpu.pc == 0x3001

    def test_jumps_leave_flags(self, cpu):
        cpu.set_register(0, 0x8000)
        cpu.update_flags(0)
        execute(cpu, 0x480A)
        assert cpu.cond == Flags.NEG


# =============================================================================
# Memory Instructions
# =============================================================================

class TestLoads:
    """LD, LDI, LDR and LEA."""

    def test_ld(self, cpu):
        cpu.memory.write(0x3002, 0x8000)
        execute(cpu, 0x2201)  # LD R1, #1
        assert cpu.get_register(1) == 0x8000
        assert cpu.cond == Flags.NEG

    def test_ldi_double_indirection(self, cpu):
        """With PC=x3000 after fetch, LDI #1 reads the pointer at x3001."""
        cpu.memory.write(0x3001, 0x4000)
        cpu.memory.write(0x4000, 0x00AB)
        execute(cpu, 0xA401, at=0x2FFF)  # LDI R2, #1
        assert cpu.get_register(2) == 0x00AB
        assert cpu.cond == Flags.POS

    def test_ldr(self, cpu):
        cpu.set_register(2, 0x4002)
        cpu.memory.write(0x4000, 0x0042)
        execute(cpu, 0x62BE)  # LDR R1, R2, #-2
        assert cpu.get_register(1) == 0x0042

    def test_ldr_zero_sets_zero_flag(self, cpu):
        cpu.set_register(2, 0x4000)
        cpu.set_register(1, 0x1111)
        execute(cpu, 0x6280)  # LDR R1, R2, #0
        assert cpu.get_register(1) == 0
        assert cpu.cond == Flags.ZRO

    def test_lea(self, cpu):
        execute(cpu, 0xE1FF)  # LEA R0, #-1
        assert cpu.get_register(0) == 0x3000
        assert cpu.cond == Flags.POS

    def test_lea_does_not_read_memory(self, cpu):
        cpu.memory.write(0x3005, 0x9999)
        execute(cpu, 0xE004)  # LEA R0, #4
        assert cpu.get_register(0) == 0x3005

    def test_ld_address_wraps(self, cpu):
        cpu.memory.write(0xFFFF, 0x0077)
        execute(cpu, 0x21FE, at=0x0000)  # LD R0, #-2
        assert cpu.get_register(0) == 0x0077


class TestStores:
    """ST, STI and STR."""

    def test_st(self, cpu):
        cpu.set_register(3, 0xBEEF)
        execute(cpu, 0x3605)  # ST R3, #5
        assert cpu.memory.peek(0x3006) == 0xBEEF

    def test_sti(self, cpu):
        cpu.set_register(3, 0xBEEF)
        cpu.memory.write(0x3002, 0x5000)
        execute(cpu, 0xB601)  # STI R3, #1
        assert cpu.memory.peek(0x5000) == 0xBEEF

    def test_str(self, cpu):
        cpu.set_register(3, 0xBEEF)
        cpu.set_register(4, 0x5000)
        execute(cpu, 0x7703)  # STR R3, R4, #3
        assert cpu.memory.peek(0x5003) == 0xBEEF

    def test_stores_leave_flags(self, cpu):
        cpu.set_register(0, 0x8000)
        cpu.update_flags(0)
        cpu.set_register(3, 0)
        execute(cpu, 0x3605)
        assert cpu.cond == Flags.NEG


# =============================================================================
# Fetch Cycle
# =============================================================================

class TestFetch:

    def test_pc_wraps_after_fetch(self, cpu):
        execute(cpu, 0x1261, at=0xFFFF)
        assert cpu.pc == 0x0000

    def test_step_returns_instruction(self, cpu):
        cpu.memory.write(0x3000, 0x1261)
        instr = cpu.step()
        assert instr.opcode == Opcode.ADD

    def test_instruction_hook(self, cpu):
        seen = []
        cpu.on_instruction = lambda pc, instr: seen.append((pc, instr.word))
        cpu.memory.write(0x3000, 0x1261)
        cpu.memory.write(0x3001, 0x1261)
        cpu.step()
        cpu.step()
        assert seen == [(0x3000, 0x1261), (0x3001, 0x1261)]


# =============================================================================
# Faults and Traps
# =============================================================================

class TestFaults:

    @pytest.mark.parametrize("word, name", [(0xD000, "RES"), (0x8000, "RTI")])
    def test_invalid_opcode(self, cpu, word, name):
        with pytest.raises(InvalidOpcodeError) as exc_info:
            execute(cpu, word)
        assert exc_info.value.opcode_name == name
        assert exc_info.value.pc == 0x3000
        assert exc_info.value.instruction == word

    def test_trap_without_handler(self, cpu):
        with pytest.raises(InvalidTrapError) as exc_info:
            execute(cpu, 0xF025)
        assert exc_info.value.vector == 0x25

    def test_trap_handler_called(self, cpu):
        calls = []

        def on_trap(vector):
            calls.append(vector)
            return True

        cpu.on_trap = on_trap
        execute(cpu, 0xF021)
        assert calls == [0x21]

    def test_trap_rejected_by_handler(self, cpu):
        cpu.on_trap = lambda vector: False
        with pytest.raises(InvalidTrapError):
            execute(cpu, 0xF030)
