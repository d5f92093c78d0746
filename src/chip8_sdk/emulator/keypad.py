"""
Hexadecimal Keypad for CHIP-8 Emulator
======================================

The machine has 16 keys, codes 0x0-0xF. The CPU only ever asks one
question per cycle: which key code, if any, is asserted. This module
tracks held keys and answers it.

COSMAC VIP keypad layout and the conventional host mapping:

    Keypad          Host keyboard
    1 2 3 C         1 2 3 4
    4 5 6 D         Q W E R
    7 8 9 E         A S D F
    A 0 B F         Z X C V

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from typing import Dict, Optional, Set, Union

NUM_KEYS = 16

HOST_KEYMAP: Dict[str, int] = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "Q": 0x4, "W": 0x5, "E": 0x6, "R": 0xD,
    "A": 0x7, "S": 0x8, "D": 0x9, "F": 0xE,
    "Z": 0xA, "X": 0x0, "C": 0xB, "V": 0xF,
}


def parse_key(key: Union[int, str], host: bool = False) -> int:
    """
    Convert a key name or number to a key code.

    Args:
        key: Key code (0-15) or a hex digit name ("0"-"F", "0x0"-"0xF").
             With host=True, names go through HOST_KEYMAP instead.
        host: Interpret names as host keyboard keys

    Returns:
        Key code 0-15

    Raises:
        ValueError: If the key is unknown

    Example:
        >>> parse_key("a")
        10
        >>> parse_key("a", host=True)
        7
    """
    if isinstance(key, int):
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"key code must be 0-15, got {key}")
        return key

    name = key.strip().upper()
    if host:
        if name not in HOST_KEYMAP:
            raise ValueError(f"no keypad key mapped to host key '{key}'")
        return HOST_KEYMAP[name]

    if name.startswith("0X"):
        name = name[2:]
    if len(name) == 1 and name in "0123456789ABCDEF":
        return int(name, 16)
    raise ValueError(f"unknown key '{key}'")


class Keypad:
    """
    Tracks which of the 16 keys are held.

    Example:
        >>> kp = Keypad()
        >>> kp.press("A")
        >>> kp.press(3)
        >>> kp.current
        3
        >>> kp.release_all()
        >>> kp.current is None
        True
    """

    def __init__(self):
        self._pressed: Set[int] = set()

    def press(self, key: Union[int, str]) -> None:
        """Key down event."""
        self._pressed.add(parse_key(key))

    def release(self, key: Union[int, str]) -> None:
        """Key up event. Releasing a key that is not held is ignored."""
        self._pressed.discard(parse_key(key))

    def release_all(self) -> None:
        self._pressed.clear()

    def is_pressed(self, key: Union[int, str]) -> bool:
        return parse_key(key) in self._pressed

    @property
    def current(self) -> Optional[int]:
        """
        The asserted key code, or None.

        When several keys are held the lowest code wins.
        """
        return min(self._pressed) if self._pressed else None

    @property
    def pressed(self) -> Set[int]:
        """Copy of the set of held key codes."""
        return set(self._pressed)
