"""
CHIP-8 SDK Command-Line Interface
=================================

This package provides command-line tools for the CHIP-8 SDK:

- **c8run**: Headless interpreter runner
- **c8disasm**: Disassembler

Each tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["c8run", "c8disasm"]
