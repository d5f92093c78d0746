"""
Breakpoint Support for CHIP-8 Emulator
======================================

Provides the BreakEvent returned by every Emulator execution call and a
small manager for PC breakpoints.

The BreakpointManager is attached to the CPU through its instruction
hook and is checked before each instruction executes.

Example usage:

    >>> from chip8_sdk.emulator import Emulator, BreakReason
    >>> emu = Emulator()
    >>> emu.load_program(bytes([0x60, 0x01, 0x12, 0x02]))
    >>> emu.add_breakpoint(0x202)
    >>> event = emu.run(100)
    >>> event.reason == BreakReason.PC_BREAKPOINT
    True

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Set


class BreakReason(Enum):
    """
    Enumeration of reasons why execution stopped.

    Used in BreakEvent to indicate what triggered the break.
    """
    NONE = auto()           # No specific reason
    PC_BREAKPOINT = auto()  # PC reached a breakpoint address
    STEP = auto()           # Single step completed
    KEY_WAIT = auto()       # Machine is blocked waiting for a keypress
    MAX_CYCLES = auto()     # Cycle budget exhausted
    ERROR = auto()          # Fatal machine error


@dataclass
class BreakEvent:
    """
    Information about why execution stopped.

    Attributes:
        reason: Why execution stopped
        address: PC value involved (if applicable)
        opcode: Instruction word involved (if applicable)
        error: The fatal exception (reason == ERROR only)
        message: Human-readable description
    """
    reason: BreakReason
    address: Optional[int] = None
    opcode: Optional[int] = None
    error: Optional[Exception] = None
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.reason == BreakReason.ERROR

    def __str__(self) -> str:
        """Return human-readable description."""
        if self.message:
            return self.message
        match self.reason:
            case BreakReason.PC_BREAKPOINT:
                return f"Breakpoint at ${self.address:03X}" if self.address is not None else "Breakpoint"
            case BreakReason.STEP:
                return "Single step"
            case BreakReason.KEY_WAIT:
                return "Waiting for key"
            case BreakReason.MAX_CYCLES:
                return "Maximum cycles reached"
            case BreakReason.ERROR:
                return f"Machine error: {self.error}" if self.error else "Machine error"
            case _:
                return "Unknown"


class BreakpointManager:
    """
    Manages PC breakpoints.

    check_instruction() has the CPU hook signature (pc, opcode) -> bool:
    it returns False when execution must stop before the instruction at
    pc runs. A breakpoint that stopped execution is skipped once on the
    next check so that resuming makes progress.
    """

    def __init__(self):
        self._breakpoints: Set[int] = set()
        self._resume_address: Optional[int] = None
        self.last_event: Optional[BreakEvent] = None

    def add_breakpoint(self, address: int) -> None:
        self._breakpoints.add(address & 0xFFF)

    def remove_breakpoint(self, address: int) -> None:
        self._breakpoints.discard(address & 0xFFF)

    def has_breakpoint(self, address: int) -> bool:
        return (address & 0xFFF) in self._breakpoints

    @property
    def breakpoints(self) -> Set[int]:
        return set(self._breakpoints)

    def clear_all(self) -> None:
        """Remove all breakpoints and forget the last event."""
        self._breakpoints.clear()
        self.clear_break_request()

    def clear_break_request(self) -> None:
        self._resume_address = None
        self.last_event = None

    def check_instruction(self, pc: int, opcode: int) -> bool:
        """
        Check whether execution may proceed at pc.

        Returns:
            True to continue, False to stop (event recorded in last_event)
        """
        if pc not in self._breakpoints:
            self._resume_address = None
            return True
        if self._resume_address == pc:
            self._resume_address = None
            return True
        self._resume_address = pc
        self.last_event = BreakEvent(
            BreakReason.PC_BREAKPOINT,
            address=pc,
            opcode=opcode,
        )
        return False
