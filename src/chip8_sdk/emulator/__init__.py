"""
CHIP-8 Emulator
===============

A complete interpreter for the CHIP-8 virtual machine.

This package provides:

- **CPU**: All 35 standard instructions, timers and key-wait handling
- **Memory**: 4KB image with font at $050 and programs at $200
- **Display**: 64x32 XOR framebuffer with per-cycle change lists
- **Keypad**: 16-key hex keypad with host key mapping
- **Debugging**: PC breakpoints, diagnostics and snapshots

Quick Start
-----------

Basic usage::

    >>> from chip8_sdk.emulator import Emulator, EmulatorConfig
    >>> emu = Emulator(EmulatorConfig(seed=1))
    >>> emu.load_rom("maze.ch8")
    >>> event = emu.run(max_cycles=5_000)
    >>> print(emu.display_text)

Driving it frame by frame::

    >>> emu.press_key("5")
    >>> for _ in range(10):
    ...     emu.step()
    >>> emu.display.turned_on  # cells lit during the last step

Module Structure
----------------

- `emulator.py`: Main Emulator class (high-level API, cycle driver)
- `cpu.py`: Register file and instruction dispatcher
- `memory.py`: Memory image and built-in font
- `display.py`: Framebuffer and rendering
- `keypad.py`: Keypad state and key naming
- `breakpoints.py`: Break events and PC breakpoints

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

# Main entry point
from .emulator import Emulator, EmulatorConfig

# CPU components
from .cpu import Chip8CPU, CPUState, Diagnostic, StepResult, decimal_digits

# Memory subsystem
from .memory import (
    Memory,
    DEFAULT_FONT,
    FONT_BASE,
    MEMORY_SIZE,
    PROGRAM_START,
    MAX_PROGRAM_SIZE,
    font_address,
)

# I/O
from .display import Display, DisplayState, EdgeMode, DISPLAY_WIDTH, DISPLAY_HEIGHT
from .keypad import Keypad, HOST_KEYMAP, parse_key

# Debugging support
from .breakpoints import BreakpointManager, BreakEvent, BreakReason

__all__ = [
    # Main API
    "Emulator",
    "EmulatorConfig",

    # CPU
    "Chip8CPU",
    "CPUState",
    "Diagnostic",
    "StepResult",
    "decimal_digits",

    # Memory
    "Memory",
    "DEFAULT_FONT",
    "FONT_BASE",
    "MEMORY_SIZE",
    "PROGRAM_START",
    "MAX_PROGRAM_SIZE",
    "font_address",

    # Display
    "Display",
    "DisplayState",
    "EdgeMode",
    "DISPLAY_WIDTH",
    "DISPLAY_HEIGHT",

    # Keypad
    "Keypad",
    "HOST_KEYMAP",
    "parse_key",

    # Debugging
    "BreakpointManager",
    "BreakEvent",
    "BreakReason",
]
