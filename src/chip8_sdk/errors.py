"""
CHIP-8 SDK Error Hierarchy
==========================

This module defines the exception hierarchy for the entire CHIP-8 SDK.
All exceptions inherit from Chip8Error, allowing callers to catch all
SDK-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
Chip8Error (base)
├── MachineError (fatal, the machine must stop)
│   ├── StackOverflowError - CALL with a full return stack
│   ├── StackUnderflowError - RET with an empty return stack
│   └── MemoryAccessError - address outside the 4KB memory image
├── ProgramLoadError - program image or font rejected by the loader
└── SnapshotError - snapshot file cannot be restored

Unknown instruction encodings are not exceptions. They are reported as
diagnostics by the CPU and executed as no-ops.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class Chip8Error(Exception):
    """
    Base exception for all CHIP-8 SDK errors.

    Example:
        try:
            emu.load_rom("pong.ch8")
        except Chip8Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Machine (Execution) Exceptions
# =============================================================================

class MachineError(Chip8Error):
    """
    Fatal error raised while executing an instruction.

    The CPU rewinds the program counter to the faulting instruction before
    the exception leaves step(), so `address` and the CPU's pc agree.

    Attributes:
        message: The error description
        address: Address of the faulting instruction (if known)
        opcode: The 16-bit instruction word being executed (if known)
    """

    def __init__(
        self,
        message: str,
        address: Optional[int] = None,
        opcode: Optional[int] = None,
    ):
        self.message = message
        self.address = address
        self.opcode = opcode
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format as '$0204 (2345): message' when location is known."""
        if self.address is None:
            return self.message
        if self.opcode is None:
            return f"${self.address:03X}: {self.message}"
        return f"${self.address:03X} ({self.opcode:04X}): {self.message}"

    def at(self, address: int, opcode: int) -> "MachineError":
        """Attach instruction location to an error raised deeper down."""
        self.address = address
        self.opcode = opcode
        self.args = (self._format_message(),)
        return self


class StackOverflowError(MachineError):
    """CALL executed with all 16 return-address slots in use."""
    pass


class StackUnderflowError(MachineError):
    """RET executed with no return address on the stack."""
    pass


class MemoryAccessError(MachineError):
    """
    Memory access outside the 0x000-0xFFF address range.

    Raised before any byte of the offending access is transferred, so a
    failing block write leaves memory untouched.
    """
    pass


# =============================================================================
# Loader and Snapshot Exceptions
# =============================================================================

class ProgramLoadError(Chip8Error):
    """
    Program image or font data rejected by the loader.

    Examples:
        - Program larger than 3584 bytes (4096 - 0x200)
        - Font that is not exactly 80 bytes
    """
    pass


class SnapshotError(Chip8Error):
    """Snapshot file is truncated or carries an unknown header."""
    pass
