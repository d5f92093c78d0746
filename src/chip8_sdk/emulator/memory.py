"""
Memory Image for CHIP-8 Emulator
================================

Flat 4KB byte array holding the font glyphs, the loaded program and any
scratch data written by running instructions.

Memory Map:
    $000-$04F  Reserved (interpreter area, unused by this emulator)
    $050-$09F  Font glyphs, 16 digits x 5 bytes
    $0A0-$1FF  Reserved
    $200-$FFF  Program code and data

Every access is bounds-checked. Block transfers are checked as a whole
before any byte moves.

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

import logging
from typing import Optional

from ..errors import MemoryAccessError, ProgramLoadError

logger = logging.getLogger(__name__)


MEMORY_SIZE = 4096
FONT_BASE = 0x050
FONT_GLYPH_SIZE = 5
PROGRAM_START = 0x200
MAX_PROGRAM_SIZE = MEMORY_SIZE - PROGRAM_START

# =============================================================================
# DEFAULT FONT
# =============================================================================
# 4x5 glyphs for hex digits 0-F. Each byte is one row, high nibble is
# the visible pixels (bit 7 = leftmost).

DEFAULT_FONT = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])

FONT_SIZE = len(DEFAULT_FONT)


def font_address(digit: int) -> int:
    """Address of the glyph for a hex digit (only the low nibble is used)."""
    return FONT_BASE + (digit & 0x0F) * FONT_GLYPH_SIZE


class Memory:
    """
    CHIP-8 memory image (4096 bytes).

    Example:
        >>> mem = Memory()
        >>> mem.load_font(DEFAULT_FONT)
        >>> mem.load_program(bytes([0x00, 0xE0]))
        >>> hex(mem.read_word(0x200))
        '0xe0'
    """

    def __init__(self, size: int = MEMORY_SIZE):
        self._data = bytearray(size)

    @property
    def size(self) -> int:
        """Number of addressable bytes."""
        return len(self._data)

    def _check(self, address: int, count: int = 1) -> None:
        """Raise MemoryAccessError unless [address, address+count) is mapped."""
        if address < 0 or count < 0 or address + count > len(self._data):
            if count <= 1:
                raise MemoryAccessError(f"memory access out of range at ${address:04X}")
            raise MemoryAccessError(
                f"memory access out of range: ${address:04X}-${address + count - 1:04X}"
            )

    # ========================================
    # Byte Access
    # ========================================

    def read(self, address: int) -> int:
        """Read a byte."""
        self._check(address)
        return self._data[address]

    def write(self, address: int, value: int) -> None:
        """Write a byte (value is masked to 8 bits)."""
        self._check(address)
        self._data[address] = value & 0xFF

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word."""
        self._check(address, 2)
        return (self._data[address] << 8) | self._data[address + 1]

    # ========================================
    # Block Access
    # ========================================

    def read_block(self, address: int, count: int) -> bytes:
        """Read `count` bytes starting at `address`."""
        self._check(address, count)
        return bytes(self._data[address:address + count])

    def write_block(self, address: int, data: bytes) -> None:
        """Write `data` starting at `address`. Nothing is written on error."""
        self._check(address, len(data))
        self._data[address:address + len(data)] = bytes(b & 0xFF for b in data)

    # ========================================
    # Loading
    # ========================================

    def load_font(self, font: Optional[bytes] = None) -> None:
        """
        Copy the 80-byte font into $050-$09F.

        Raises:
            ProgramLoadError: If the font is not exactly 80 bytes
        """
        font = DEFAULT_FONT if font is None else bytes(font)
        if len(font) != FONT_SIZE:
            raise ProgramLoadError(f"font must be {FONT_SIZE} bytes, got {len(font)}")
        self._data[FONT_BASE:FONT_BASE + FONT_SIZE] = font

    def load_program(self, data: bytes) -> None:
        """
        Copy a program image to $200.

        Raises:
            ProgramLoadError: If the image does not fit
        """
        if len(data) > MAX_PROGRAM_SIZE:
            raise ProgramLoadError(
                f"program is {len(data)} bytes, maximum is {MAX_PROGRAM_SIZE}"
            )
        self._data[PROGRAM_START:PROGRAM_START + len(data)] = data
        logger.debug(f"Loaded {len(data)} byte program at ${PROGRAM_START:03X}")

    def clear(self) -> None:
        """Zero the whole image."""
        self._data[:] = bytes(len(self._data))

    # ========================================
    # Snapshot Support
    # ========================================

    def get_snapshot_data(self) -> list[int]:
        """Get memory contents for snapshot."""
        return list(self._data)

    def apply_snapshot_data(self, data: list[int], offset: int = 0) -> int:
        """
        Restore memory contents from snapshot data.

        Returns:
            Number of bytes consumed from data
        """
        size = len(self._data)
        if len(data) - offset < size:
            raise ValueError("snapshot truncated in memory section")
        self._data[:] = bytes(data[offset:offset + size])
        return size
