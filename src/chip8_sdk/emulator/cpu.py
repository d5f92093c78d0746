"""
CHIP-8 CPU Emulator
===================

Register file, fetch-decode-execute dispatcher and the two countdown
timers.

Registers:
- V0-VF: 8-bit general registers. VF doubles as the carry, borrow,
  shifted-out bit and sprite collision flag and is overwritten by those
  instructions.
- I: 16-bit index register (instructions can only load 12 bits)
- PC: program counter, starts at $200
- Stack: up to 16 return addresses
- DT, ST: delay and sound timers, decremented once per step

Every step():
1. Fetches the big-endian instruction word at PC
2. Advances PC by 2
3. Decodes the top nibble and executes
4. Ticks both timers; the sound timer reaching zero is a beep

Unknown encodings are no-ops reported as a Diagnostic. Stack misuse and
out-of-range memory access raise MachineError subclasses with PC
rewound to the faulting instruction.

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from ..errors import (
    MachineError,
    MemoryAccessError,
    StackOverflowError,
    StackUnderflowError,
)
from .display import Display
from .memory import MEMORY_SIZE, PROGRAM_START, Memory, font_address

logger = logging.getLogger(__name__)


NUM_REGISTERS = 16
STACK_DEPTH = 16
FLAG = 0xF  # VF

# V0-VF, I, PC, DT, ST, wait flag, wait register, depth, 16 return addresses
SNAPSHOT_SIZE = NUM_REGISTERS + 9 + STACK_DEPTH * 2


def decimal_digits(value: int) -> Tuple[int, int, int]:
    """
    Split an 8-bit value into (hundreds, tens, ones).

    Example:
        >>> decimal_digits(255)
        (2, 5, 5)
        >>> decimal_digits(9)
        (0, 0, 9)
    """
    value &= 0xFF
    digits = [0, 0, 0]
    for i in (2, 1, 0):
        digits[i] = value % 10
        value //= 10
    return digits[0], digits[1], digits[2]


@dataclass
class CPUState:
    """
    Complete CPU state for snapshotting.

    Register values are plain ints, masked to width by the CPU:
    - v: 16 x 8-bit
    - index, pc: 16-bit
    - delay_timer, sound_timer: 8-bit
    """
    v: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    index: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=list)
    delay_timer: int = 0
    sound_timer: int = 0
    waiting_for_key: bool = False
    wait_register: int = 0


@dataclass(frozen=True)
class Diagnostic:
    """An unrecognized instruction that was skipped."""
    address: int
    opcode: int
    message: str = "unknown opcode"

    def __str__(self) -> str:
        return f"${self.address:03X}: {self.message} {self.opcode:04X}"


@dataclass
class StepResult:
    """
    Outcome of one CPU step.

    Attributes:
        address: PC at the start of the step
        opcode: Instruction word fetched, or None if nothing was fetched
        executed: False when the step only waited for a key or was
                  stopped by the instruction hook
        beep: Sound timer went from 1 to 0 during this step
        waiting: Machine is in key-wait after this step
        stopped: The instruction hook vetoed execution
        diagnostic: Set when the instruction was not recognized
    """
    address: int
    opcode: Optional[int] = None
    executed: bool = True
    beep: bool = False
    waiting: bool = False
    stopped: bool = False
    diagnostic: Optional[Diagnostic] = None


class Chip8CPU:
    """
    CHIP-8 interpreter core.

    The CPU owns its register state and operates on the memory and
    display it is given. It has no notion of wall-clock time: the caller
    decides how often to call step(), which also decides how fast the
    timers run (conventionally 60 steps' worth of timer ticks per second).

    Instrumentation hook:
        on_instruction(pc, opcode) -> bool: called after fetch, before
        PC advances. Returning False stops the step with nothing executed.

    Example:
        >>> mem = Memory()
        >>> mem.load_program(bytes([0x60, 0x2A]))  # LD V0, $2A
        >>> cpu = Chip8CPU(mem, Display())
        >>> result = cpu.step()
        >>> cpu.v[0], cpu.pc
        (42, 514)
    """

    def __init__(
        self,
        memory: Memory,
        display: Display,
        rng: Optional[random.Random] = None,
        legacy_key_wait: bool = False,
    ):
        """
        Args:
            memory: Memory image to execute from
            display: Framebuffer mutated by CLS and DRW
            rng: Random source for RND (a fresh unseeded one by default)
            legacy_key_wait: Leave PC past LD Vx, K and do not store the
                             resolving key (historical behavior)
        """
        self.memory = memory
        self.display = display
        self.rng = rng or random.Random()
        self.legacy_key_wait = legacy_key_wait
        self.state = CPUState()
        self._reported: Set[int] = set()

        self.on_instruction: Optional[Callable[[int, int], bool]] = None

    # ========================================
    # Register Properties
    # ========================================

    @property
    def v(self) -> List[int]:
        """General registers V0-VF (the live list)."""
        return self.state.v

    @property
    def pc(self) -> int:
        """Program counter (16-bit)."""
        return self.state.pc

    @pc.setter
    def pc(self, value: int) -> None:
        self.state.pc = value & 0xFFFF

    @property
    def index(self) -> int:
        """Index register I (16-bit)."""
        return self.state.index

    @index.setter
    def index(self, value: int) -> None:
        self.state.index = value & 0xFFFF

    @property
    def delay_timer(self) -> int:
        return self.state.delay_timer

    @delay_timer.setter
    def delay_timer(self, value: int) -> None:
        self.state.delay_timer = value & 0xFF

    @property
    def sound_timer(self) -> int:
        return self.state.sound_timer

    @sound_timer.setter
    def sound_timer(self, value: int) -> None:
        self.state.sound_timer = value & 0xFF

    @property
    def stack(self) -> List[int]:
        """Return addresses, most recent last."""
        return self.state.stack

    @property
    def waiting_for_key(self) -> bool:
        """True while blocked on LD Vx, K."""
        return self.state.waiting_for_key

    def set_register(self, x: int, value: int) -> None:
        """Set Vx, masked to 8 bits."""
        self.state.v[x] = value & 0xFF

    # ========================================
    # Reset
    # ========================================

    def reset(self) -> None:
        """
        Reset registers to power-on state.

        PC is set to $200, everything else is cleared. Memory and the
        display are left alone.
        """
        self.state = CPUState()
        self._reported.clear()

    # ========================================
    # Stack Operations
    # ========================================

    def _push(self, address: int) -> None:
        if len(self.state.stack) >= STACK_DEPTH:
            raise StackOverflowError(f"stack overflow (depth {STACK_DEPTH})")
        self.state.stack.append(address)

    def _pop(self) -> int:
        if not self.state.stack:
            raise StackUnderflowError("return with empty stack")
        return self.state.stack.pop()

    # ========================================
    # Timers
    # ========================================

    def _tick_timers(self) -> bool:
        """Decrement both timers toward zero. Returns True on a beep."""
        if self.state.delay_timer > 0:
            self.state.delay_timer -= 1
        if self.state.sound_timer > 0:
            self.state.sound_timer -= 1
            return self.state.sound_timer == 0
        return False

    # ========================================
    # Main Execution Entry Point
    # ========================================

    def step(self, key: Optional[int] = None) -> StepResult:
        """
        Execute one cycle.

        Args:
            key: Asserted key code (0-15), or None when no key is held

        Returns:
            StepResult describing the cycle

        Raises:
            MachineError: On stack overflow/underflow or an out-of-range
                          memory access. PC points at the faulting
                          instruction afterwards.
        """
        if self.state.waiting_for_key:
            self.display.begin_cycle()
            return self._resolve_key_wait(key)

        address = self.state.pc
        if address + 1 >= MEMORY_SIZE:
            raise MemoryAccessError(f"instruction fetch past end of memory at ${address:04X}", address)
        opcode = self.memory.read_word(address)

        # A vetoed step leaves the previous cycle's display changes in place
        if self.on_instruction and not self.on_instruction(address, opcode):
            return StepResult(address, opcode, executed=False, stopped=True)

        self.display.begin_cycle()
        self.pc = address + 2
        try:
            diagnostic = self._execute_instruction(opcode, key)
        except MachineError as e:
            self.state.pc = address
            raise e.at(address, opcode)

        beep = self._tick_timers()
        return StepResult(
            address,
            opcode,
            beep=beep,
            waiting=self.state.waiting_for_key,
            diagnostic=diagnostic,
        )

    def _resolve_key_wait(self, key: Optional[int]) -> StepResult:
        """
        Run one cycle of the KEY-WAIT mode.

        Without a key nothing executes but the timers still tick. With a
        key the wait is resolved and the cycle is consumed.
        """
        address = self.state.pc
        if key is None:
            beep = self._tick_timers()
            return StepResult(address, executed=False, beep=beep, waiting=True)

        self.state.waiting_for_key = False
        if not self.legacy_key_wait:
            self.state.v[self.state.wait_register] = key & 0x0F
            self.pc = address + 2
        logger.debug(f"Key {key:X} resolved key wait at ${address:03X}")
        beep = self._tick_timers()
        return StepResult(address, beep=beep)

    def _unknown(self, opcode: int) -> Diagnostic:
        """Report an unrecognized word. Only the first hit per address is a warning."""
        diagnostic = Diagnostic((self.state.pc - 2) & 0xFFFF, opcode)
        if diagnostic.address in self._reported:
            logger.debug(str(diagnostic))
        else:
            self._reported.add(diagnostic.address)
            logger.warning(str(diagnostic))
        return diagnostic

    def _execute_instruction(self, opcode: int, key: Optional[int]) -> Optional[Diagnostic]:
        """
        Execute a single decoded instruction.

        PC has already been advanced past the instruction.

        Args:
            opcode: The 16-bit instruction word
            key: Asserted key code or None

        Returns:
            A Diagnostic if the instruction was not recognized
        """
        v = self.state.v
        x = (opcode >> 8) & 0x0F
        y = (opcode >> 4) & 0x0F
        n = opcode & 0x000F
        kk = opcode & 0x00FF
        nnn = opcode & 0x0FFF

        match opcode >> 12:
            # ============================================
            # System and Flow Control
            # ============================================
            case 0x0:
                match opcode:
                    case 0x00E0:  # CLS
                        self.display.clear()
                    case 0x00EE:  # RET
                        self.pc = self._pop()
                    case _:  # SYS addr is not supported
                        return self._unknown(opcode)
            case 0x1:  # JP addr
                self.pc = nnn
            case 0x2:  # CALL addr
                self._push(self.state.pc)
                self.pc = nnn

            # ============================================
            # Conditional Skips
            # ============================================
            case 0x3:  # SE Vx, byte
                if v[x] == kk:
                    self.pc += 2
            case 0x4:  # SNE Vx, byte
                if v[x] != kk:
                    self.pc += 2
            case 0x5:  # SE Vx, Vy
                if n != 0:
                    return self._unknown(opcode)
                if v[x] == v[y]:
                    self.pc += 2
            case 0x9:  # SNE Vx, Vy
                if n != 0:
                    return self._unknown(opcode)
                if v[x] != v[y]:
                    self.pc += 2

            # ============================================
            # Register Loads
            # ============================================
            case 0x6:  # LD Vx, byte
                v[x] = kk
            case 0x7:  # ADD Vx, byte (no flag)
                v[x] = (v[x] + kk) & 0xFF
            case 0x8:
                return self._execute_alu(opcode, x, y, n)

            # ============================================
            # Index, Jump and Random
            # ============================================
            case 0xA:  # LD I, addr
                self.index = nnn
            case 0xB:  # JP V0, addr
                self.pc = nnn + v[0]
            case 0xC:  # RND Vx, byte
                v[x] = self.rng.randrange(256) & kk

            # ============================================
            # Drawing
            # ============================================
            case 0xD:  # DRW Vx, Vy, nibble
                sprite = self.memory.read_block(self.state.index, n)
                collision = self.display.draw_sprite(v[x], v[y], sprite)
                v[FLAG] = 1 if collision else 0

            # ============================================
            # Keypad Skips
            # ============================================
            case 0xE:
                match kk:
                    case 0x9E:  # SKP Vx
                        if v[x] == key:
                            self.pc += 2
                    case 0xA1:  # SKNP Vx
                        if v[x] != key:
                            self.pc += 2
                    case _:
                        return self._unknown(opcode)

            case 0xF:
                return self._execute_misc(opcode, x, kk)

        return None

    def _execute_alu(self, opcode: int, x: int, y: int, op: int) -> Optional[Diagnostic]:
        """8xyN register-register operations. VF is always written last."""
        v = self.state.v
        match op:
            case 0x0:  # LD Vx, Vy
                v[x] = v[y]
            case 0x1:  # OR Vx, Vy
                v[x] |= v[y]
            case 0x2:  # AND Vx, Vy
                v[x] &= v[y]
            case 0x3:  # XOR Vx, Vy
                v[x] ^= v[y]
            case 0x4:  # ADD Vx, Vy (VF = carry)
                result = v[x] + v[y]
                v[x] = result & 0xFF
                v[FLAG] = 1 if result > 0xFF else 0
            case 0x5:  # SUB Vx, Vy (VF = not borrow)
                no_borrow = v[x] >= v[y]
                v[x] = (v[x] - v[y]) & 0xFF
                v[FLAG] = 1 if no_borrow else 0
            case 0x6:  # SHR Vx (VF = bit shifted out)
                dropped = v[x] & 0x01
                v[x] >>= 1
                v[FLAG] = dropped
            case 0x7:  # SUBN Vx, Vy (VF = not borrow)
                no_borrow = v[y] >= v[x]
                v[x] = (v[y] - v[x]) & 0xFF
                v[FLAG] = 1 if no_borrow else 0
            case 0xE:  # SHL Vx (VF = bit shifted out)
                dropped = (v[x] >> 7) & 0x01
                v[x] = (v[x] << 1) & 0xFF
                v[FLAG] = dropped
            case _:
                return self._unknown(opcode)
        return None

    def _execute_misc(self, opcode: int, x: int, kk: int) -> Optional[Diagnostic]:
        """Fxkk timer, key-wait, index and memory block operations."""
        v = self.state.v
        match kk:
            case 0x07:  # LD Vx, DT
                v[x] = self.state.delay_timer
            case 0x0A:  # LD Vx, K
                self.state.waiting_for_key = True
                self.state.wait_register = x
                if not self.legacy_key_wait:
                    self.pc -= 2
            case 0x15:  # LD DT, Vx
                self.state.delay_timer = v[x]
            case 0x18:  # LD ST, Vx
                self.state.sound_timer = v[x]
            case 0x1E:  # ADD I, Vx
                self.index += v[x]
            case 0x29:  # LD F, Vx
                self.index = font_address(v[x])
            case 0x33:  # LD B, Vx
                self.memory.write_block(self.state.index, bytes(decimal_digits(v[x])))
            case 0x55:  # LD [I], V0-VF
                self.memory.write_block(self.state.index, bytes(v))
            case 0x65:  # LD V0-VF, [I]
                v[:] = list(self.memory.read_block(self.state.index, NUM_REGISTERS))
            case _:
                return self._unknown(opcode)
        return None

    # ========================================
    # Snapshot Support
    # ========================================

    def get_snapshot_data(self) -> list[int]:
        """
        Get CPU state as byte list for snapshot.

        Format: [V0..VF, Ihi, Ilo, PChi, PClo, DT, ST, wait, wait_reg,
                 depth, (hi, lo) x 16]
        """
        s = self.state
        data = list(s.v)
        data += [(s.index >> 8) & 0xFF, s.index & 0xFF]
        data += [(s.pc >> 8) & 0xFF, s.pc & 0xFF]
        data += [s.delay_timer, s.sound_timer]
        data += [1 if s.waiting_for_key else 0, s.wait_register]
        data.append(len(s.stack))
        for i in range(STACK_DEPTH):
            addr = s.stack[i] if i < len(s.stack) else 0
            data += [(addr >> 8) & 0xFF, addr & 0xFF]
        return data

    def apply_snapshot_data(self, data: list[int], offset: int = 0) -> int:
        """
        Restore CPU state from snapshot data.

        Returns:
            Number of bytes consumed from data
        """
        size = SNAPSHOT_SIZE
        if len(data) - offset < size:
            raise ValueError("snapshot truncated in CPU section")
        d = data[offset:offset + size]
        pos = NUM_REGISTERS
        depth = d[pos + 8]
        if depth > STACK_DEPTH:
            raise ValueError(f"snapshot stack depth {depth} exceeds {STACK_DEPTH}")
        stack = [
            (d[pos + 9 + i * 2] << 8) | d[pos + 10 + i * 2]
            for i in range(depth)
        ]
        self.state = CPUState(
            v=list(d[:NUM_REGISTERS]),
            index=(d[pos] << 8) | d[pos + 1],
            pc=(d[pos + 2] << 8) | d[pos + 3],
            delay_timer=d[pos + 4],
            sound_timer=d[pos + 5],
            waiting_for_key=d[pos + 6] != 0,
            wait_register=d[pos + 7] & 0x0F,
            stack=stack,
        )
        return size

    def __repr__(self) -> str:
        return (
            f"Chip8CPU(pc=${self.state.pc:03X}, i=${self.state.index:03X}, "
            f"sp={len(self.state.stack)})"
        )
