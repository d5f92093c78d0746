"""
CHIP-8 SDK Disassembler Module
==============================

Decodes CHIP-8 instruction words into the conventional mnemonics
(CLS, LD Vx, byte, DRW Vx, Vy, n, ...).

Usage:
    from chip8_sdk.disassembler import Chip8Disassembler

    disasm = Chip8Disassembler()
    for ins in disasm.disassemble(rom_bytes, start_address=0x200):
        print(ins)

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from .chip8 import Chip8Disassembler, DisassembledInstruction, decode

__all__ = [
    "Chip8Disassembler",
    "DisassembledInstruction",
    "decode",
]
