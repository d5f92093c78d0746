"""
CHIP-8 Emulator - Main Orchestrator
===================================

This module provides the main `Emulator` class that wires the CPU,
memory, display, keypad and breakpoint manager together and acts as the
cycle driver.

The Emulator class:
- Initializes all components from an EmulatorConfig
- Loads programs from bytes or ROM files
- Supports execution control (step, run, run_until_pc)
- Turns fatal machine errors into BreakEvents and halts cleanly
- Collects diagnostics and beep events
- Saves and restores snapshots

Example usage:
    >>> from chip8_sdk.emulator import Emulator, EmulatorConfig
    >>> emu = Emulator(EmulatorConfig(seed=1))
    >>> emu.load_rom("pong.ch8")
    >>> event = emu.run(max_cycles=10_000)
    >>> print(emu.display_text)

Real-time front ends call step() at a fixed rate themselves: timers
advance once per step, so 60 steps per second gives real-time timers.

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

import logging
import random
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, List, Optional, Union

from ..errors import MachineError, SnapshotError
from .breakpoints import BreakEvent, BreakpointManager, BreakReason
from .cpu import SNAPSHOT_SIZE as CPU_SNAPSHOT_SIZE
from .cpu import Chip8CPU, Diagnostic, StepResult
from .display import SNAPSHOT_SIZE as DISPLAY_SNAPSHOT_SIZE
from .display import Display, EdgeMode
from .keypad import Keypad, parse_key
from .memory import Memory

logger = logging.getLogger(__name__)

SNAPSHOT_MAGIC = b"C8S\x01"

# Oldest diagnostics are dropped past this many
MAX_DIAGNOSTICS = 256


@dataclass(frozen=True)
class EmulatorConfig:
    """
    Configuration for emulator initialization.

    Attributes:
        edge_mode: Sprite pixels past the screen edge are clipped (default)
                   or wrapped around.
        legacy_key_wait: Reproduce the historical LD Vx, K behavior where
                         PC moves past the instruction and the resolving
                         key is not stored. Default is to block in place.
        seed: Seed for the RND instruction's random source. None gives a
              non-deterministic source.
        font: Optional 80-byte replacement for the built-in hex font.

    Example:
        >>> config = EmulatorConfig(edge_mode=EdgeMode.WRAP, seed=42)
    """
    edge_mode: EdgeMode = EdgeMode.CLIP
    legacy_key_wait: bool = False
    seed: Optional[int] = None
    font: Optional[bytes] = None


class Emulator:
    """
    CHIP-8 emulator with instrumentation support.

    Attributes:
        config: The EmulatorConfig used to initialize this instance
        memory: The 4KB memory image
        display: The 64x32 framebuffer
        keypad: Held-key tracker, sampled once per step
        cpu: The interpreter core
        breakpoints: The breakpoint manager
        diagnostics: Unknown-opcode reports since reset, the most recent
                     MAX_DIAGNOSTICS kept
        on_beep: Called with no arguments when the sound timer expires
        on_redraw: Called with the display after a step that requested a redraw

    Example:
        >>> emu = Emulator()
        >>> emu.load_program(bytes([0x60, 0x05, 0xF0, 0x29, 0xD0, 0x05]))
        >>> emu.run(3).reason
        <BreakReason.MAX_CYCLES: 5>
    """

    def __init__(self, config: Optional[EmulatorConfig] = None):
        """
        Initialize the emulator with given configuration.

        Args:
            config: EmulatorConfig. If None, defaults are used.

        Raises:
            ProgramLoadError: If config.font is not 80 bytes
        """
        self.config = config or EmulatorConfig()

        self.memory = Memory()
        self.display = Display(self.config.edge_mode)
        self.keypad = Keypad()
        self.cpu = Chip8CPU(
            self.memory,
            self.display,
            rng=random.Random(self.config.seed),
            legacy_key_wait=self.config.legacy_key_wait,
        )
        self.breakpoints = BreakpointManager()
        self.cpu.on_instruction = self.breakpoints.check_instruction

        self.on_beep: Optional[Callable[[], None]] = None
        self.on_redraw: Optional[Callable[[Display], None]] = None

        self._program = b""
        self.diagnostics: Deque[Diagnostic] = deque(maxlen=MAX_DIAGNOSTICS)
        self._total_cycles = 0
        self._beep_count = 0
        self._halt_event: Optional[BreakEvent] = None

        self.memory.load_font(self.config.font)

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_program(self, data: bytes) -> None:
        """
        Load a program image at $200.

        The image is kept so reset() can restart it.

        Raises:
            ProgramLoadError: If the image is larger than 3584 bytes
        """
        self.memory.load_program(bytes(data))
        self._program = bytes(data)

    def load_rom(self, path: Union[str, Path]) -> None:
        """
        Load a program image from a file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ProgramLoadError: If the image is too large
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"ROM file not found: {path}")
        self.load_program(path.read_bytes())
        logger.debug(f"Loaded ROM {path.name} ({len(self._program)} bytes)")

    # =========================================================================
    # Execution Control
    # =========================================================================

    def reset(self) -> None:
        """
        Reset to power-on state and reload the current program.

        Memory is zeroed, the font and program are copied back in, the
        display is cleared and registers are reset. Breakpoints stay.
        """
        self.memory.clear()
        self.memory.load_font(self.config.font)
        if self._program:
            self.memory.load_program(self._program)
        self.display.clear()
        self.display.begin_cycle()
        self.cpu.reset()
        self.keypad.release_all()
        self.breakpoints.clear_break_request()
        self.diagnostics.clear()
        self._total_cycles = 0
        self._beep_count = 0
        self._halt_event = None
        logger.debug("Emulator reset")

    def _cycle(self, key: Optional[int]) -> Union[StepResult, BreakEvent]:
        """Run one CPU step, converting machine errors into a halt event."""
        try:
            result = self.cpu.step(key)
        except MachineError as e:
            logger.error(f"Machine halted: {e}")
            self._halt_event = BreakEvent(
                BreakReason.ERROR,
                address=e.address,
                opcode=e.opcode,
                error=e,
            )
            return self._halt_event

        if result.executed:
            self._total_cycles += 1
        if result.diagnostic:
            self.diagnostics.append(result.diagnostic)
        if result.beep:
            self._beep_count += 1
            if self.on_beep:
                self.on_beep()
        if self.display.needs_redraw and self.on_redraw:
            self.on_redraw(self.display)
        return result

    def step(self, key: Optional[Union[int, str]] = None) -> BreakEvent:
        """
        Execute a single cycle.

        Breakpoints are not checked, so stepping always makes progress.

        Args:
            key: Asserted key for this cycle. Defaults to the keypad's
                 current key.

        Returns:
            BreakEvent with reason STEP, KEY_WAIT (still blocked after the
            cycle) or ERROR (machine halted)
        """
        if self._halt_event:
            return self._halt_event

        code = self._sample_key(key)
        hook = self.cpu.on_instruction
        self.cpu.on_instruction = None
        try:
            outcome = self._cycle(code)
        finally:
            self.cpu.on_instruction = hook

        if isinstance(outcome, BreakEvent):
            return outcome
        if outcome.waiting:
            return BreakEvent(BreakReason.KEY_WAIT, address=self.cpu.pc)
        return BreakEvent(
            BreakReason.STEP,
            address=self.cpu.pc,
            opcode=outcome.opcode,
            message=f"Step at ${self.cpu.pc:03X}",
        )

    def run(self, max_cycles: int = 1_000_000) -> BreakEvent:
        """
        Run until a breakpoint, an error, a key wait or max_cycles.

        The keypad is sampled before every cycle. A key wait only stops
        the run when no key is held.

        Args:
            max_cycles: Maximum number of cycles to execute

        Returns:
            BreakEvent describing why execution stopped
        """
        if self._halt_event:
            return self._halt_event

        self.breakpoints.last_event = None
        for _ in range(max_cycles):
            key = self.keypad.current
            if self.cpu.waiting_for_key and key is None:
                return BreakEvent(BreakReason.KEY_WAIT, address=self.cpu.pc)

            outcome = self._cycle(key)
            if isinstance(outcome, BreakEvent):
                return outcome
            if outcome.stopped:
                return self.breakpoints.last_event or BreakEvent(
                    BreakReason.PC_BREAKPOINT, address=outcome.address
                )

        return BreakEvent(
            BreakReason.MAX_CYCLES,
            address=self.cpu.pc,
            message=f"Reached max cycles ({max_cycles})",
        )

    def run_until_pc(self, address: int, max_cycles: int = 1_000_000) -> bool:
        """
        Run until PC reaches a specific address.

        Returns:
            True if the address was reached, False otherwise
        """
        was_set = self.breakpoints.has_breakpoint(address)
        if not was_set:
            self.breakpoints.add_breakpoint(address)
        try:
            event = self.run(max_cycles)
            return event.reason == BreakReason.PC_BREAKPOINT and event.address == address
        finally:
            if not was_set:
                self.breakpoints.remove_breakpoint(address)

    def _sample_key(self, key: Optional[Union[int, str]]) -> Optional[int]:
        if key is None:
            return self.keypad.current
        return parse_key(key)

    # =========================================================================
    # Breakpoint Management (delegates to BreakpointManager)
    # =========================================================================

    def add_breakpoint(self, address: int) -> None:
        """Stop before the instruction at address executes."""
        self.breakpoints.add_breakpoint(address)

    def remove_breakpoint(self, address: int) -> None:
        self.breakpoints.remove_breakpoint(address)

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear_all()

    # =========================================================================
    # Keypad Input
    # =========================================================================

    def press_key(self, key: Union[int, str]) -> None:
        """Hold a key until release_key() is called."""
        self.keypad.press(key)

    def release_key(self, key: Union[int, str]) -> None:
        self.keypad.release(key)

    def tap_key(self, key: Union[int, str], hold_cycles: int = 10) -> BreakEvent:
        """Press a key, run for hold_cycles, then release it."""
        self.press_key(key)
        try:
            return self.run(hold_cycles)
        finally:
            self.release_key(key)

    # =========================================================================
    # State Inspection
    # =========================================================================

    @property
    def display_text(self) -> str:
        """Framebuffer as text, '#' for lit cells."""
        return self.display.to_text()

    def render_display(self, scale: int = 10) -> bytes:
        """Render the framebuffer as PNG bytes."""
        return self.display.render_image(scale=scale)

    @property
    def registers(self) -> dict:
        """
        Get current register values as a dictionary.

        Returns:
            Dictionary with keys v0..vf, i, pc, sp, dt, st
        """
        regs = {f"v{n:x}": value for n, value in enumerate(self.cpu.v)}
        regs.update({
            "i": self.cpu.index,
            "pc": self.cpu.pc,
            "sp": len(self.cpu.stack),
            "dt": self.cpu.delay_timer,
            "st": self.cpu.sound_timer,
        })
        return regs

    @property
    def total_cycles(self) -> int:
        """Instructions executed since last reset."""
        return self._total_cycles

    @property
    def beep_count(self) -> int:
        """Number of times the sound timer expired since last reset."""
        return self._beep_count

    @property
    def halted(self) -> bool:
        """True after a fatal machine error, until reset()."""
        return self._halt_event is not None

    @property
    def halt_event(self) -> Optional[BreakEvent]:
        return self._halt_event

    def disassemble_at(self, address: int, count: int = 10) -> List[str]:
        """Disassemble `count` instructions starting at address."""
        from ..disassembler import Chip8Disassembler

        end = min(address + count * 2, self.memory.size)
        data = self.memory.read_block(address, max(end - address, 0))
        return [str(ins) for ins in Chip8Disassembler().disassemble(data, address)]

    # =========================================================================
    # Snapshot Support
    # =========================================================================

    def save_snapshot(self, path: Union[str, Path]) -> None:
        """
        Save CPU, display and memory state to a file.

        Keypad state, breakpoints and diagnostics are not saved.
        """
        data = bytearray(SNAPSHOT_MAGIC)
        data.extend(bytes(self.cpu.get_snapshot_data()))
        data.extend(bytes(self.display.get_snapshot_data()))
        data.extend(bytes(self.memory.get_snapshot_data()))
        Path(path).write_bytes(bytes(data))

    def load_snapshot(self, path: Union[str, Path]) -> None:
        """
        Restore state saved by save_snapshot().

        Raises:
            FileNotFoundError: If file doesn't exist
            SnapshotError: If the snapshot is malformed
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Snapshot file not found: {path}")

        data = list(path.read_bytes())
        if bytes(data[:4]) != SNAPSHOT_MAGIC:
            raise SnapshotError("Invalid snapshot format (bad header)")

        # Nothing is restored from a short file
        expected = len(SNAPSHOT_MAGIC) + CPU_SNAPSHOT_SIZE + DISPLAY_SNAPSHOT_SIZE + self.memory.size
        if len(data) < expected:
            raise SnapshotError(f"snapshot truncated: {len(data)} bytes, expected {expected}")

        try:
            offset = 4
            offset += self.cpu.apply_snapshot_data(data, offset)
            offset += self.display.apply_snapshot_data(data, offset)
            offset += self.memory.apply_snapshot_data(data, offset)
        except ValueError as e:
            raise SnapshotError(str(e)) from e

        self._halt_event = None

    def __repr__(self) -> str:
        return (
            f"Emulator(pc=${self.cpu.pc:03X}, "
            f"cycles={self._total_cycles}, halted={self.halted})"
        )
