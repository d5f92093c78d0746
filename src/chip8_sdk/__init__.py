"""
CHIP-8 SDK - Interpreter and Tools for the CHIP-8 Virtual Machine
=================================================================

This package provides an interpreter for the CHIP-8 instruction set
together with the tooling around it.

CHIP-8 is a small virtual machine from the late 1970s: 4KB of memory,
sixteen 8-bit registers, a 16-level call stack, two 60Hz timers, a
64x32 monochrome display and a 16-key hexadecimal keypad.

Main Components
---------------
- **emulator**: Interpreter core (CPU, memory, display, keypad)
- **disassembler**: Instruction decoder (c8disasm)
- **cli**: Headless runner (c8run) and disassembler front ends

Quick Start
-----------
Run a program headless and look at the screen:
    >>> from chip8_sdk import Emulator
    >>> emu = Emulator()
    >>> emu.load_rom("ibm_logo.ch8")
    >>> emu.run(max_cycles=200)
    >>> print(emu.display_text)

Disassemble a program:
    >>> from chip8_sdk import Chip8Disassembler
    >>> for ins in Chip8Disassembler().disassemble(open("pong.ch8", "rb").read()):
    ...     print(ins)

Or use the command-line tools:
    $ c8run ibm_logo.ch8 --cycles 200
    $ c8disasm pong.ch8 --count 20
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from chip8_sdk.errors import (
    Chip8Error,
    MachineError,
    StackOverflowError,
    StackUnderflowError,
    MemoryAccessError,
    ProgramLoadError,
    SnapshotError,
)

from chip8_sdk.emulator import (
    Emulator,
    EmulatorConfig,
    Chip8CPU,
    Display,
    EdgeMode,
    Keypad,
    Memory,
    BreakEvent,
    BreakReason,
)

from chip8_sdk.disassembler import Chip8Disassembler, DisassembledInstruction

__all__ = [
    # Version info
    "__version__",
    # Exception hierarchy
    "Chip8Error",
    "MachineError",
    "StackOverflowError",
    "StackUnderflowError",
    "MemoryAccessError",
    "ProgramLoadError",
    "SnapshotError",
    # Emulator
    "Emulator",
    "EmulatorConfig",
    "Chip8CPU",
    "Display",
    "EdgeMode",
    "Keypad",
    "Memory",
    "BreakEvent",
    "BreakReason",
    # Disassembler
    "Chip8Disassembler",
    "DisassembledInstruction",
]
