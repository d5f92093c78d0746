"""
Display Surface for CHIP-8 Emulator
===================================

Monochrome 64x32 framebuffer mutated only by the clear-screen and draw
instructions.

Drawing is XOR: every set bit of a sprite row toggles one cell. A toggle
that turns a lit cell off is a collision, reported to the CPU so it can
set VF.

Besides the bitmap itself the display keeps, per cycle:
- a redraw flag (set by clear and by every draw, even an empty one)
- the cells that turned on and the cells that turned off

The per-cycle state is reset by begin_cycle(), which the CPU calls at the
start of every executed step. A step stopped by a breakpoint keeps the
previous lists. A renderer can apply the two change lists instead of
rescanning the whole grid.

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32

# Framebuffer packed 8 cells per byte
SNAPSHOT_SIZE = DISPLAY_WIDTH * DISPLAY_HEIGHT // 8

Cell = Tuple[int, int]


class EdgeMode(Enum):
    """
    How sprite pixels past the right or bottom edge are handled.

    In both modes the sprite origin wraps around the screen.
    """
    CLIP = "clip"  # Drop pixels past the edge
    WRAP = "wrap"  # Wrap each pixel to the opposite edge


@dataclass
class DisplayState:
    """Per-cycle display bookkeeping."""
    needs_redraw: bool = False
    turned_on: List[Cell] = field(default_factory=list)
    turned_off: List[Cell] = field(default_factory=list)


class Display:
    """
    64x32 XOR framebuffer.

    Example:
        >>> display = Display()
        >>> display.draw_sprite(0, 0, bytes([0xF0]))
        False
        >>> display.get_pixel(3, 0)
        True
        >>> display.draw_sprite(0, 0, bytes([0x80]))
        True
    """

    def __init__(self, edge_mode: EdgeMode = EdgeMode.CLIP):
        self.edge_mode = edge_mode
        self._pixels = [False] * (DISPLAY_WIDTH * DISPLAY_HEIGHT)
        self._state = DisplayState()

    @property
    def width(self) -> int:
        return DISPLAY_WIDTH

    @property
    def height(self) -> int:
        return DISPLAY_HEIGHT

    @property
    def needs_redraw(self) -> bool:
        """True if the current cycle may have changed visible state."""
        return self._state.needs_redraw

    @property
    def turned_on(self) -> List[Cell]:
        """(x, y) cells switched on during the current cycle."""
        return self._state.turned_on

    @property
    def turned_off(self) -> List[Cell]:
        """(x, y) cells switched off during the current cycle."""
        return self._state.turned_off

    def begin_cycle(self) -> None:
        """Reset redraw flag and change lists for a new cycle."""
        self._state.needs_redraw = False
        self._state.turned_on = []
        self._state.turned_off = []

    # ========================================
    # Pixel Access
    # ========================================

    def get_pixel(self, x: int, y: int) -> bool:
        """
        Return the state of cell (x, y).

        Raises:
            IndexError: If the coordinates are off screen
        """
        if not (0 <= x < DISPLAY_WIDTH and 0 <= y < DISPLAY_HEIGHT):
            raise IndexError(f"pixel ({x}, {y}) is off screen")
        return self._pixels[y * DISPLAY_WIDTH + x]

    @property
    def lit_count(self) -> int:
        """Number of cells currently on."""
        return sum(self._pixels)

    def get_rows(self) -> List[List[bool]]:
        """Return the framebuffer as a list of rows."""
        return [
            self._pixels[y * DISPLAY_WIDTH:(y + 1) * DISPLAY_WIDTH]
            for y in range(DISPLAY_HEIGHT)
        ]

    # ========================================
    # Drawing Operations
    # ========================================

    def clear(self) -> None:
        """Turn every cell off and request a redraw."""
        for i, lit in enumerate(self._pixels):
            if lit:
                self._state.turned_off.append((i % DISPLAY_WIDTH, i // DISPLAY_WIDTH))
                self._pixels[i] = False
        self._state.needs_redraw = True

    def draw_sprite(self, x: int, y: int, rows: bytes) -> bool:
        """
        XOR a sprite onto the screen.

        Each byte of `rows` is one 8-pixel row, bit 7 leftmost. The origin
        wraps modulo the screen size; pixels beyond the edge are clipped or
        wrapped according to edge_mode.

        Args:
            x: Horizontal origin (any non-negative value)
            y: Vertical origin (any non-negative value)
            rows: Sprite data, one byte per row

        Returns:
            True if any lit cell was turned off
        """
        x0 = x % DISPLAY_WIDTH
        y0 = y % DISPLAY_HEIGHT
        wrap = self.edge_mode is EdgeMode.WRAP
        collision = False

        for row, bits in enumerate(rows):
            py = y0 + row
            if py >= DISPLAY_HEIGHT:
                if not wrap:
                    break
                py %= DISPLAY_HEIGHT
            for col in range(8):
                if not bits & (0x80 >> col):
                    continue
                px = x0 + col
                if px >= DISPLAY_WIDTH:
                    if not wrap:
                        break
                    px %= DISPLAY_WIDTH
                i = py * DISPLAY_WIDTH + px
                if self._pixels[i]:
                    collision = True
                    self._state.turned_off.append((px, py))
                else:
                    self._state.turned_on.append((px, py))
                self._pixels[i] = not self._pixels[i]

        self._state.needs_redraw = True
        return collision

    # ========================================
    # Rendering
    # ========================================

    def to_text(self, on: str = "#", off: str = ".") -> str:
        """Render the framebuffer as text, one line per row."""
        return "\n".join(
            "".join(on if lit else off for lit in row)
            for row in self.get_rows()
        )

    def get_pixel_buffer(self) -> bytes:
        """Row-major buffer with 255 for lit cells and 0 for dark cells."""
        return bytes(255 if lit else 0 for lit in self._pixels)

    def render_image(
        self,
        scale: int = 10,
        ink_color: Tuple[int, int, int] = (0xF0, 0xF6, 0xF0),
        paper_color: Tuple[int, int, int] = (0x22, 0x23, 0x23),
        format: str = "PNG",
    ) -> bytes:
        """
        Render display as an image (PNG by default).

        Args:
            scale: Size in image pixels of one display cell
            ink_color: RGB tuple for lit cells
            paper_color: RGB tuple for dark cells
            format: Any format Pillow can write

        Returns:
            Encoded image bytes
        """
        from PIL import Image, ImageDraw

        img = Image.new(
            "RGB", (DISPLAY_WIDTH * scale, DISPLAY_HEIGHT * scale), color=paper_color
        )
        draw = ImageDraw.Draw(img)
        for i, lit in enumerate(self._pixels):
            if lit:
                x = (i % DISPLAY_WIDTH) * scale
                y = (i // DISPLAY_WIDTH) * scale
                draw.rectangle([x, y, x + scale - 1, y + scale - 1], fill=ink_color)

        buffer = io.BytesIO()
        img.save(buffer, format=format)
        return buffer.getvalue()

    # ========================================
    # Snapshot Support
    # ========================================

    def get_snapshot_data(self) -> list[int]:
        """Pack the framebuffer 8 cells per byte, MSB first."""
        result = []
        for i in range(0, len(self._pixels), 8):
            byte = 0
            for bit, lit in enumerate(self._pixels[i:i + 8]):
                if lit:
                    byte |= 0x80 >> bit
            result.append(byte)
        return result

    def apply_snapshot_data(self, data: list[int], offset: int = 0) -> int:
        """
        Restore the framebuffer from snapshot data.

        Returns:
            Number of bytes consumed from data
        """
        count = SNAPSHOT_SIZE
        if len(data) - offset < count:
            raise ValueError("snapshot truncated in display section")
        for n in range(count):
            byte = data[offset + n]
            for bit in range(8):
                self._pixels[n * 8 + bit] = bool(byte & (0x80 >> bit))
        self._state.needs_redraw = True
        return count

    def __repr__(self) -> str:
        return f"Display({DISPLAY_WIDTH}x{DISPLAY_HEIGHT}, lit={self.lit_count})"
