"""
CHIP-8 CPU Unit Tests
=====================

Tests for the CHIP-8 interpreter core, covering:
- Register masking and reset state
- Every instruction family
- Flag (VF) behavior of the ALU and draw instructions
- Stack and memory error handling
- Timers and the beep event
- Key-wait handling in both modes
"""

import random

import pytest

from chip8_sdk.emulator import (
    Chip8CPU,
    CPUState,
    Display,
    Memory,
    DEFAULT_FONT,
    FONT_BASE,
    PROGRAM_START,
    decimal_digits,
)
from chip8_sdk.errors import (
    MachineError,
    MemoryAccessError,
    StackOverflowError,
    StackUnderflowError,
)


# =============================================================================
# Helpers and Fixtures
# =============================================================================

def words(*opcodes: int) -> bytes:
    """Encode instruction words big-endian."""
    return b"".join(op.to_bytes(2, "big") for op in opcodes)


class Machine:
    """CPU wired to real memory and display, with a program loader."""

    def __init__(self, legacy_key_wait: bool = False):
        self.memory = Memory()
        self.memory.load_font(DEFAULT_FONT)
        self.display = Display()
        self.cpu = Chip8CPU(
            self.memory,
            self.display,
            rng=random.Random(1234),
            legacy_key_wait=legacy_key_wait,
        )

    def load(self, *opcodes: int) -> Chip8CPU:
        self.memory.load_program(words(*opcodes))
        return self.cpu

    def run(self, steps: int, key=None) -> None:
        for _ in range(steps):
            self.cpu.step(key)


@pytest.fixture
def machine():
    return Machine()


@pytest.fixture
def cpu(machine):
    return machine.cpu


# =============================================================================
# Register Tests
# =============================================================================

class TestRegisters:
    """Test register access, masking and reset."""

    def test_initial_state(self, cpu):
        """Power-on state: PC at $200, everything else clear."""
        assert cpu.pc == PROGRAM_START
        assert cpu.v == [0] * 16
        assert cpu.index == 0
        assert cpu.stack == []
        assert cpu.delay_timer == 0
        assert cpu.sound_timer == 0
        assert cpu.waiting_for_key is False

    def test_pc_16bit(self, cpu):
        cpu.pc = 0x1FFFF
        assert cpu.pc == 0xFFFF

    def test_index_16bit(self, cpu):
        cpu.index = 0x10123
        assert cpu.index == 0x0123

    def test_timers_8bit(self, cpu):
        cpu.delay_timer = 0x1FF
        cpu.sound_timer = 0x100
        assert cpu.delay_timer == 0xFF
        assert cpu.sound_timer == 0x00

    def test_set_register_masks(self, cpu):
        cpu.set_register(3, 0x1AB)
        assert cpu.v[3] == 0xAB

    def test_reset(self, cpu):
        cpu.set_register(0, 5)
        cpu.index = 0x300
        cpu.pc = 0x400
        cpu.stack.append(0x202)
        cpu.reset()
        assert cpu.state == CPUState()


# =============================================================================
# Fetch and Flow Control
# =============================================================================

class TestFlowControl:
    """Fetch, jumps, calls and returns."""

    def test_pc_advances_by_two(self, machine):
        cpu = machine.load(0x6000)
        cpu.step()
        assert cpu.pc == 0x202

    def test_step_result(self, machine):
        cpu = machine.load(0x6000)
        result = cpu.step()
        assert result.address == 0x200
        assert result.opcode == 0x6000
        assert result.executed is True
        assert result.diagnostic is None

    def test_jump(self, machine):
        cpu = machine.load(0x1ABC)
        cpu.step()
        assert cpu.pc == 0xABC

    def test_call_pushes_return_address(self, machine):
        cpu = machine.load(0x2400)
        cpu.step()
        assert cpu.pc == 0x400
        assert cpu.stack == [0x202]

    def test_call_return_round_trip(self, machine):
        """RET resumes at the instruction after the CALL."""
        cpu = machine.load(0x2300)
        machine.memory.write_block(0x300, words(0x00EE))
        cpu.step()
        cpu.step()
        assert cpu.pc == 0x202
        assert cpu.stack == []

    def test_nested_calls(self, machine):
        cpu = machine.load(0x2300)
        machine.memory.write_block(0x300, words(0x2400, 0x00EE))
        machine.memory.write_block(0x400, words(0x00EE))
        machine.run(4)
        assert cpu.pc == 0x202
        assert cpu.stack == []

    def test_jump_with_offset(self, machine):
        """JP V0, addr jumps to addr + V0."""
        cpu = machine.load(0x6010, 0xB300)
        machine.run(2)
        assert cpu.pc == 0x310

    def test_jump_with_offset_ignores_current_pc(self, machine):
        cpu = machine.load(0x6002, 0x1300)
        machine.memory.write_block(0x300, words(0xB210))
        machine.run(3)
        assert cpu.pc == 0x212


# =============================================================================
# Conditional Skips
# =============================================================================

class TestSkips:
    """3xkk, 4xkk, 5xy0, 9xy0."""

    @pytest.mark.parametrize("opcodes,expected_pc", [
        ((0x6A42, 0x3A42), 0x206),  # SE equal -> skip
        ((0x6A42, 0x3A43), 0x204),  # SE not equal
        ((0x6A42, 0x4A43), 0x206),  # SNE not equal -> skip
        ((0x6A42, 0x4A42), 0x204),  # SNE equal
    ])
    def test_skip_immediate(self, machine, opcodes, expected_pc):
        cpu = machine.load(*opcodes)
        machine.run(2)
        assert cpu.pc == expected_pc

    def test_skip_registers_equal(self, machine):
        cpu = machine.load(0x6107, 0x6207, 0x5120)
        machine.run(3)
        assert cpu.pc == 0x208

    def test_skip_registers_not_equal(self, machine):
        cpu = machine.load(0x6107, 0x6208, 0x9120)
        machine.run(3)
        assert cpu.pc == 0x208

    def test_no_skip_registers(self, machine):
        cpu = machine.load(0x6107, 0x6207, 0x9120)
        machine.run(3)
        assert cpu.pc == 0x206

    def test_5xy_nonzero_low_nibble_is_unknown(self, machine):
        cpu = machine.load(0x5121)
        result = cpu.step()
        assert result.diagnostic is not None
        assert cpu.pc == 0x202


# =============================================================================
# Loads and Immediate Add
# =============================================================================

class TestLoads:
    """6xkk and 7xkk."""

    def test_load_immediate(self, machine):
        cpu = machine.load(0x6C9A)
        cpu.step()
        assert cpu.v[0xC] == 0x9A

    @pytest.mark.parametrize("kk,kk2", [(0x10, 0x20), (0xFF, 0x01), (0x80, 0x90), (0x00, 0x00)])
    def test_add_immediate_wraps(self, machine, kk, kk2):
        """ADD Vx, byte wraps modulo 256."""
        cpu = machine.load(0x6300 | kk, 0x7300 | kk2)
        machine.run(2)
        assert cpu.v[3] == (kk + kk2) % 256

    def test_add_immediate_leaves_flag(self, machine):
        cpu = machine.load(0x6F05, 0x63FF, 0x7302)
        machine.run(3)
        assert cpu.v[3] == 0x01
        assert cpu.v[0xF] == 0x05


# =============================================================================
# ALU Tests
# =============================================================================

class TestALU:
    """8xyN register-register operations."""

    def run_alu(self, machine, vx, vy, op, x=1, y=2):
        cpu = machine.load(0x6000 | (x << 8) | vx, 0x6000 | (y << 8) | vy, 0x8000 | (x << 8) | (y << 4) | op)
        machine.run(3)
        return cpu

    def test_ld(self, machine):
        cpu = self.run_alu(machine, 0x11, 0x22, 0x0)
        assert cpu.v[1] == 0x22

    def test_or(self, machine):
        cpu = self.run_alu(machine, 0xF0, 0x0F, 0x1)
        assert cpu.v[1] == 0xFF

    def test_and(self, machine):
        cpu = self.run_alu(machine, 0xF3, 0x3F, 0x2)
        assert cpu.v[1] == 0x33

    def test_xor(self, machine):
        cpu = self.run_alu(machine, 0xFF, 0x0F, 0x3)
        assert cpu.v[1] == 0xF0

    def test_add_with_carry(self, machine):
        cpu = self.run_alu(machine, 0xFF, 0x01, 0x4)
        assert cpu.v[1] == 0x00
        assert cpu.v[0xF] == 1

    def test_add_without_carry(self, machine):
        cpu = self.run_alu(machine, 0x10, 0x20, 0x4)
        assert cpu.v[1] == 0x30
        assert cpu.v[0xF] == 0

    def test_sub_with_borrow(self, machine):
        """Borrow clears VF."""
        cpu = self.run_alu(machine, 0x01, 0x02, 0x5)
        assert cpu.v[1] == 0xFF
        assert cpu.v[0xF] == 0

    def test_sub_without_borrow(self, machine):
        cpu = self.run_alu(machine, 0x02, 0x01, 0x5)
        assert cpu.v[1] == 0x01
        assert cpu.v[0xF] == 1

    def test_sub_equal_values_no_borrow(self, machine):
        cpu = self.run_alu(machine, 0x42, 0x42, 0x5)
        assert cpu.v[1] == 0x00
        assert cpu.v[0xF] == 1

    def test_subn(self, machine):
        """SUBN computes Vy - Vx."""
        cpu = self.run_alu(machine, 0x01, 0x03, 0x7)
        assert cpu.v[1] == 0x02
        assert cpu.v[0xF] == 1

    def test_subn_with_borrow(self, machine):
        cpu = self.run_alu(machine, 0x03, 0x01, 0x7)
        assert cpu.v[1] == 0xFE
        assert cpu.v[0xF] == 0

    def test_shr(self, machine):
        cpu = self.run_alu(machine, 0x05, 0x00, 0x6)
        assert cpu.v[1] == 0x02
        assert cpu.v[0xF] == 1

    def test_shr_even(self, machine):
        cpu = self.run_alu(machine, 0x04, 0x00, 0x6)
        assert cpu.v[1] == 0x02
        assert cpu.v[0xF] == 0

    def test_shl(self, machine):
        cpu = self.run_alu(machine, 0x81, 0x00, 0xE)
        assert cpu.v[1] == 0x02
        assert cpu.v[0xF] == 1

    def test_shl_high_bit_clear(self, machine):
        cpu = self.run_alu(machine, 0x48, 0x00, 0xE)
        assert cpu.v[1] == 0x90
        assert cpu.v[0xF] == 0

    def test_flag_written_after_result(self, machine):
        """With Vx = VF the flag, not the sum, survives."""
        cpu = self.run_alu(machine, 0xFF, 0x02, 0x4, x=0xF, y=1)
        assert cpu.v[0xF] == 1

    @pytest.mark.parametrize("op", [0x8, 0x9, 0xA, 0xB, 0xC, 0xD, 0xF])
    def test_unknown_alu_ops(self, machine, op):
        cpu = machine.load(0x6155, 0x8120 | op)
        machine.run(1)
        result = cpu.step()
        assert result.diagnostic is not None
        assert result.diagnostic.opcode == 0x8120 | op
        assert cpu.v[1] == 0x55


# =============================================================================
# Index, Random and Font
# =============================================================================

class TestIndex:
    """Annn, Fx1E, Fx29, Cxkk."""

    def test_load_index(self, machine):
        cpu = machine.load(0xA123)
        cpu.step()
        assert cpu.index == 0x123

    def test_add_index(self, machine):
        cpu = machine.load(0xA100, 0x6520, 0xF51E)
        machine.run(3)
        assert cpu.index == 0x120

    def test_add_index_wraps_16bit(self, machine):
        cpu = machine.load(0x65FF, 0xF51E)
        cpu.index = 0xFFF0
        machine.run(2)
        assert cpu.index == 0x00EF

    @pytest.mark.parametrize("digit", range(16))
    def test_font_address(self, machine, digit):
        cpu = machine.load(0x6000 | digit, 0xF029)
        machine.run(2)
        assert cpu.index == FONT_BASE + digit * 5
        glyph = machine.memory.read_block(cpu.index, 5)
        assert glyph == DEFAULT_FONT[digit * 5:digit * 5 + 5]

    def test_font_address_uses_low_nibble(self, machine):
        cpu = machine.load(0x601A, 0xF029)
        machine.run(2)
        assert cpu.index == FONT_BASE + 0xA * 5

    def test_random_masked(self, machine):
        cpu = machine.load(*([0xC30F] * 20))
        for _ in range(20):
            cpu.step()
            assert cpu.v[3] & 0xF0 == 0

    def test_random_zero_mask(self, machine):
        cpu = machine.load(0x63FF, 0xC300)
        machine.run(2)
        assert cpu.v[3] == 0

    def test_random_uses_given_source(self):
        a, b = Machine(), Machine()
        a.load(0xC0FF, 0xC1FF)
        b.load(0xC0FF, 0xC1FF)
        a.run(2)
        b.run(2)
        assert a.cpu.v[:2] == b.cpu.v[:2]


# =============================================================================
# Memory Block Instructions
# =============================================================================

class TestMemoryInstructions:
    """Fx33, Fx55, Fx65."""

    @pytest.mark.parametrize("value,digits", [
        (0, (0, 0, 0)),
        (9, (0, 0, 9)),
        (42, (0, 4, 2)),
        (100, (1, 0, 0)),
        (255, (2, 5, 5)),
    ])
    def test_decimal_digits(self, value, digits):
        assert decimal_digits(value) == digits

    @pytest.mark.parametrize("value,digits", [(0, [0, 0, 0]), (9, [0, 0, 9]), (255, [2, 5, 5])])
    def test_bcd_store(self, machine, value, digits):
        cpu = machine.load(0xA300, 0x6400 | value, 0xF433)
        machine.run(3)
        assert list(machine.memory.read_block(0x300, 3)) == digits
        assert cpu.index == 0x300

    def test_store_registers(self, machine):
        cpu = machine.load(0xA400, 0xF055)
        for n in range(16):
            cpu.set_register(n, n * 3)
        machine.run(2)
        assert list(machine.memory.read_block(0x400, 16)) == [n * 3 for n in range(16)]

    def test_load_registers(self, machine):
        cpu = machine.load(0xA400, 0xF065)
        machine.memory.write_block(0x400, bytes(range(100, 116)))
        machine.run(2)
        assert cpu.v == list(range(100, 116))

    def test_store_registers_out_of_range_writes_nothing(self, machine):
        """A block that would run past $FFF is rejected whole."""
        cpu = machine.load(0xAFF8, 0xF055)
        cpu.set_register(0, 0xAA)
        with pytest.raises(MemoryAccessError):
            machine.run(2)
        assert machine.memory.read_block(0xFF8, 8) == bytes(8)
        assert cpu.pc == 0x202

    def test_bcd_out_of_range(self, machine):
        cpu = machine.load(0xAFFE, 0xF033)
        with pytest.raises(MemoryAccessError):
            machine.run(2)


# =============================================================================
# Draw and Clear
# =============================================================================

class TestDrawing:
    """00E0 and Dxyn."""

    def test_draw_font_glyph(self, machine):
        cpu = machine.load(0x6000, 0xF029, 0x6105, 0x6203, 0xD125)
        machine.run(5)
        # Top row of "0" is 0xF0
        assert [machine.display.get_pixel(5 + c, 3) for c in range(8)] == [True] * 4 + [False] * 4
        assert cpu.v[0xF] == 0
        assert machine.display.needs_redraw

    def test_draw_twice_restores_and_collides(self, machine):
        """Double XOR returns the screen to blank and reports collision."""
        cpu = machine.load(0xA050, 0xD005, 0xD005)
        machine.run(2)
        first_on = list(machine.display.turned_on)
        assert cpu.v[0xF] == 0
        cpu.step()
        assert cpu.v[0xF] == 1
        assert machine.display.lit_count == 0
        assert machine.display.turned_off == first_on

    def test_draw_zero_rows_still_redraws(self, machine):
        cpu = machine.load(0x6F01, 0xD000)
        machine.run(2)
        assert machine.display.needs_redraw
        assert machine.display.turned_on == []
        assert cpu.v[0xF] == 0

    def test_redraw_flag_cleared_next_cycle(self, machine):
        machine.load(0xD005, 0x6000)
        machine.run(1)
        assert machine.display.needs_redraw
        machine.run(1)
        assert not machine.display.needs_redraw

    def test_clear_screen(self, machine):
        machine.load(0xA050, 0xD005, 0x00E0)
        machine.run(2)
        lit = machine.display.lit_count
        machine.run(1)
        assert machine.display.lit_count == 0
        assert len(machine.display.turned_off) == lit
        assert machine.display.needs_redraw

    def test_draw_reads_past_memory_end(self, machine):
        cpu = machine.load(0xAFFC, 0xD00F)
        with pytest.raises(MemoryAccessError):
            machine.run(2)
        assert cpu.pc == 0x202


# =============================================================================
# Keypad Instructions
# =============================================================================

class TestKeys:
    """Ex9E, ExA1 and Fx0A."""

    def test_skp_matching_key(self, machine):
        cpu = machine.load(0x6505, 0xE59E)
        machine.run(2, key=5)
        assert cpu.pc == 0x206

    def test_skp_other_key(self, machine):
        cpu = machine.load(0x6505, 0xE59E)
        machine.run(2, key=6)
        assert cpu.pc == 0x204

    def test_skp_no_key(self, machine):
        cpu = machine.load(0x6505, 0xE59E)
        machine.run(2)
        assert cpu.pc == 0x204

    def test_sknp(self, machine):
        cpu = machine.load(0x6505, 0xE5A1)
        machine.run(2, key=4)
        assert cpu.pc == 0x206

    def test_sknp_matching_key(self, machine):
        cpu = machine.load(0x6505, 0xE5A1)
        machine.run(2, key=5)
        assert cpu.pc == 0x204

    def test_unknown_e_family(self, machine):
        cpu = machine.load(0xE5FF)
        result = cpu.step()
        assert result.diagnostic is not None

    def test_key_wait_blocks_in_place(self, machine):
        cpu = machine.load(0xF30A, 0x6001)
        result = cpu.step()
        assert result.waiting is True
        assert cpu.waiting_for_key
        assert cpu.pc == 0x200

        for _ in range(5):
            result = cpu.step()
            assert result.executed is False
            assert result.waiting is True
        assert cpu.pc == 0x200
        assert cpu.v[0] == 0

    def test_key_wait_resolves_with_key(self, machine):
        cpu = machine.load(0xF30A, 0x6001)
        cpu.step()
        result = cpu.step(key=0xB)
        assert result.waiting is False
        assert not cpu.waiting_for_key
        assert cpu.v[3] == 0xB
        assert cpu.pc == 0x202
        cpu.step()
        assert cpu.v[0] == 1

    def test_timers_run_during_key_wait(self, machine):
        cpu = machine.load(0xF30A)
        cpu.delay_timer = 10
        machine.run(4)
        assert cpu.delay_timer == 6

    def test_legacy_key_wait(self):
        machine = Machine(legacy_key_wait=True)
        cpu = machine.load(0x6305, 0xF30A, 0x6001)
        machine.run(2)
        assert cpu.waiting_for_key
        assert cpu.pc == 0x204
        cpu.step()
        assert cpu.pc == 0x204
        cpu.step(key=7)
        assert not cpu.waiting_for_key
        assert cpu.v[3] == 5  # key not stored
        cpu.step()
        assert cpu.v[0] == 1


# =============================================================================
# Timer Tests
# =============================================================================

class TestTimers:
    """Fx07, Fx15, Fx18 and per-step decay."""

    def test_delay_decays_to_zero(self, machine):
        cpu = machine.load(0x1200)  # JP $200
        cpu.delay_timer = 60
        machine.run(60)
        assert cpu.delay_timer == 0
        machine.run(10)
        assert cpu.delay_timer == 0

    def test_set_and_read_delay(self, machine):
        cpu = machine.load(0x6A14, 0xFA15, 0xFB07)
        machine.run(3)
        # Set to 20, ticked once by the set, once more by the read
        assert cpu.v[0xB] == 19
        assert cpu.delay_timer == 18

    def test_beep_on_transition_to_zero(self, machine):
        cpu = machine.load(0x6303, 0xF318, 0x1204)
        results = [cpu.step() for _ in range(6)]
        beeps = [r.beep for r in results]
        # ST set to 3 in step 2 -> 2, 1, then 0 in step 4
        assert beeps == [False, False, False, True, False, False]
        assert cpu.sound_timer == 0

    def test_no_beep_when_already_zero(self, machine):
        machine.load(0x1200)
        assert not any(machine.cpu.step().beep for _ in range(5))


# =============================================================================
# Error Handling
# =============================================================================

class TestErrors:
    """Fatal errors and diagnostics."""

    def test_return_with_empty_stack(self, machine):
        cpu = machine.load(0x00EE)
        with pytest.raises(StackUnderflowError) as exc:
            cpu.step()
        assert exc.value.address == 0x200
        assert exc.value.opcode == 0x00EE
        assert cpu.pc == 0x200

    def test_stack_overflow(self, machine):
        """Seventeenth nested call overflows."""
        cpu = machine.load(0x2200)  # CALL $200 recursively
        for _ in range(16):
            cpu.step()
        assert len(cpu.stack) == 16
        with pytest.raises(StackOverflowError):
            cpu.step()
        assert len(cpu.stack) == 16
        assert cpu.pc == 0x200

    def test_fatal_errors_are_machine_errors(self, machine):
        cpu = machine.load(0x00EE)
        with pytest.raises(MachineError):
            cpu.step()

    def test_fetch_past_end(self, machine):
        cpu = machine.cpu
        cpu.pc = 0xFFF
        with pytest.raises(MemoryAccessError):
            cpu.step()

    def test_jump_offset_past_end_fails_on_fetch(self, machine):
        cpu = machine.load(0x60FF, 0xBFFF)
        machine.run(2)
        assert cpu.pc == 0x10FE
        with pytest.raises(MemoryAccessError):
            cpu.step()

    @pytest.mark.parametrize("opcode", [0x0000, 0x0123, 0x00E1, 0xF0FF, 0xF100])
    def test_unknown_opcodes_are_noops(self, machine, opcode):
        cpu = machine.load(opcode)
        result = cpu.step()
        assert result.diagnostic is not None
        assert result.diagnostic.address == 0x200
        assert result.diagnostic.opcode == opcode
        assert cpu.pc == 0x202
        assert cpu.v == [0] * 16

    def test_unknown_opcode_logged(self, machine, caplog):
        machine.load(0x0123)
        with caplog.at_level("WARNING", logger="chip8_sdk.emulator.cpu"):
            machine.cpu.step()
        assert "unknown opcode 0123" in caplog.text

    def test_hook_can_stop_execution(self, machine):
        cpu = machine.load(0x6001)
        cpu.on_instruction = lambda pc, opcode: False
        result = cpu.step()
        assert result.stopped
        assert not result.executed
        assert cpu.pc == 0x200
        assert cpu.v[0] == 0

    def test_vetoed_step_keeps_display_changes(self, machine):
        cpu = machine.load(0xA050, 0xD005, 0x6001)
        machine.run(2)
        cpu.on_instruction = lambda pc, opcode: False
        assert cpu.step().stopped
        assert machine.display.needs_redraw
        assert len(machine.display.turned_on) == 14


# =============================================================================
# Snapshot Tests
# =============================================================================

class TestSnapshot:

    def test_round_trip(self, machine):
        cpu = machine.load(0x2300, 0x6000)
        machine.memory.write_block(0x300, words(0x6A42, 0xA123, 0x6B09, 0xFB15))
        machine.run(5)
        data = cpu.get_snapshot_data()

        other = Machine()
        assert other.cpu.apply_snapshot_data(data) == len(data)
        assert other.cpu.state == cpu.state

    def test_truncated(self, machine):
        with pytest.raises(ValueError):
            machine.cpu.apply_snapshot_data([0] * 10)
