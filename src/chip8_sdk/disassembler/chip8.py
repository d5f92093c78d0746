"""
CHIP-8 Disassembler
===================

Turns CHIP-8 machine code into readable assembly.

Every instruction is one big-endian 16-bit word. Operands are packed in
the nibbles after the leading family nibble:

    nnn  - 12-bit address
    kk   - 8-bit immediate
    x, y - register numbers
    n    - 4-bit immediate (sprite height)

Words the interpreter does not execute are shown as data (DW), matching
the CPU, which skips them with a diagnostic.

Usage:
    disasm = Chip8Disassembler()
    instructions = disasm.disassemble(rom_bytes, start_address=0x200, count=10)

    instr = disasm.disassemble_one(rom_bytes, address=0x200)
    print(f"{instr.address:03X}: {instr.mnemonic} {instr.operand_str}")

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass
class DisassembledInstruction:
    """
    Represents a single disassembled CHIP-8 instruction.

    Attributes:
        address: Memory address of the instruction
        opcode: The 16-bit instruction word
        mnemonic: The instruction mnemonic (e.g., "LD", "DRW")
        operand_str: Formatted operand string for display
        comment: Optional comment (e.g., for unknown words)
    """
    address: int
    opcode: int
    mnemonic: str
    operand_str: str = ""
    comment: str = ""

    @property
    def size(self) -> int:
        return 2

    @property
    def is_data(self) -> bool:
        """True if the word is not an executable instruction."""
        return self.mnemonic == "DW"

    def __str__(self) -> str:
        """Format as assembly line: ADDRESS: WORD  MNEMONIC OPERANDS"""
        asm = f"{self.mnemonic} {self.operand_str}" if self.operand_str else self.mnemonic
        if self.comment:
            return f"${self.address:04X}: {self.opcode:04X}  {asm:<16} ; {self.comment}"
        return f"${self.address:04X}: {self.opcode:04X}  {asm}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "address": f"${self.address:04X}",
            "address_int": self.address,
            "opcode": f"{self.opcode:04X}",
            "mnemonic": self.mnemonic,
            "operand": self.operand_str,
            "comment": self.comment,
        }


# =============================================================================
# Decoding
# =============================================================================

_ALU_MNEMONICS = {
    0x0: "LD", 0x1: "OR", 0x2: "AND", 0x3: "XOR",
    0x4: "ADD", 0x5: "SUB", 0x6: "SHR", 0x7: "SUBN", 0xE: "SHL",
}

_MISC_FORMATS = {
    0x07: ("LD", "V{x:X}, DT"),
    0x0A: ("LD", "V{x:X}, K"),
    0x15: ("LD", "DT, V{x:X}"),
    0x18: ("LD", "ST, V{x:X}"),
    0x1E: ("ADD", "I, V{x:X}"),
    0x29: ("LD", "F, V{x:X}"),
    0x33: ("LD", "B, V{x:X}"),
    0x55: ("LD", "[I], V0-VF"),
    0x65: ("LD", "V0-VF, [I]"),
}


def decode(opcode: int) -> Optional[Tuple[str, str]]:
    """
    Decode an instruction word to (mnemonic, operands).

    Returns:
        None if the word is not an instruction the interpreter executes

    Example:
        >>> decode(0xD125)
        ('DRW', 'V1, V2, 5')
    """
    x = (opcode >> 8) & 0x0F
    y = (opcode >> 4) & 0x0F
    n = opcode & 0x000F
    kk = opcode & 0x00FF
    nnn = opcode & 0x0FFF

    match opcode >> 12:
        case 0x0:
            if opcode == 0x00E0:
                return "CLS", ""
            if opcode == 0x00EE:
                return "RET", ""
            return None
        case 0x1:
            return "JP", f"${nnn:03X}"
        case 0x2:
            return "CALL", f"${nnn:03X}"
        case 0x3:
            return "SE", f"V{x:X}, ${kk:02X}"
        case 0x4:
            return "SNE", f"V{x:X}, ${kk:02X}"
        case 0x5:
            return ("SE", f"V{x:X}, V{y:X}") if n == 0 else None
        case 0x6:
            return "LD", f"V{x:X}, ${kk:02X}"
        case 0x7:
            return "ADD", f"V{x:X}, ${kk:02X}"
        case 0x8:
            mnemonic = _ALU_MNEMONICS.get(n)
            if mnemonic is None:
                return None
            if n in (0x6, 0xE):
                return mnemonic, f"V{x:X}"
            return mnemonic, f"V{x:X}, V{y:X}"
        case 0x9:
            return ("SNE", f"V{x:X}, V{y:X}") if n == 0 else None
        case 0xA:
            return "LD", f"I, ${nnn:03X}"
        case 0xB:
            return "JP", f"V0, ${nnn:03X}"
        case 0xC:
            return "RND", f"V{x:X}, ${kk:02X}"
        case 0xD:
            return "DRW", f"V{x:X}, V{y:X}, {n}"
        case 0xE:
            if kk == 0x9E:
                return "SKP", f"V{x:X}"
            if kk == 0xA1:
                return "SKNP", f"V{x:X}"
            return None
        case _:
            fmt = _MISC_FORMATS.get(kk)
            if fmt is None:
                return None
            return fmt[0], fmt[1].format(x=x)


# =============================================================================
# CHIP-8 Disassembler
# =============================================================================

class Chip8Disassembler:
    """
    Disassembler for CHIP-8 machine code.

    Example:
        >>> disasm = Chip8Disassembler()
        >>> str(disasm.disassemble_one(bytes([0x00, 0xE0]), 0x200))
        '$0200: 00E0  CLS'
    """

    def disassemble_one(self, data: bytes, address: int, offset: int = 0) -> DisassembledInstruction:
        """
        Disassemble the word at data[offset:offset + 2].

        A trailing odd byte is shown as DB.

        Args:
            data: Code bytes
            address: Address of data[offset] in machine memory
            offset: Index into data

        Raises:
            ValueError: If offset is not inside data
        """
        if not 0 <= offset < len(data):
            raise ValueError(f"offset {offset} outside {len(data)} byte buffer")
        if offset + 1 >= len(data):
            byte = data[offset]
            return DisassembledInstruction(address, byte, "DB", f"${byte:02X}", "odd trailing byte")

        opcode = (data[offset] << 8) | data[offset + 1]
        decoded = decode(opcode)
        if decoded is None:
            return DisassembledInstruction(address, opcode, "DW", f"${opcode:04X}", "unknown opcode")
        mnemonic, operands = decoded
        return DisassembledInstruction(address, opcode, mnemonic, operands)

    def disassemble(
        self,
        data: bytes,
        start_address: int = 0x200,
        count: Optional[int] = None,
    ) -> List[DisassembledInstruction]:
        """
        Disassemble a block of code.

        Args:
            data: Code bytes
            start_address: Address of data[0]
            count: Maximum number of instructions (default: all)

        Returns:
            List of DisassembledInstruction
        """
        result = []
        offset = 0
        while offset < len(data):
            if count is not None and len(result) >= count:
                break
            result.append(self.disassemble_one(data, start_address + offset, offset))
            offset += 2
        return result
