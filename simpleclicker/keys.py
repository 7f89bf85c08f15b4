"""
Key combinations and system-wide key state.

Key codes are Windows virtual-key codes on every platform so the
configuration file stays portable.
"""

import logging
import sys
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

KEY_CODE_COUNT = 256
MIN_KEY_CODE = 1
MAX_KEY_CODE = 254

VK_SHIFT = 0x10
VK_CONTROL = 0x11
VK_MENU = 0x12
VK_F6 = 0x75

# generic + left/right variants
MODIFIER_CODES = frozenset({VK_SHIFT, VK_CONTROL, VK_MENU, 0xA0, 0xA1, 0xA2, 0xA3, 0xA4, 0xA5})
MOUSE_BUTTON_CODES = frozenset({0x01, 0x02, 0x04, 0x05, 0x06})

# config-file packing (low 16 bits hold the key code)
KEY_CODE_MASK = 0xFFFF
SHIFT_FLAG = 0x10000
CTRL_FLAG = 0x20000
ALT_FLAG = 0x40000

logger = logging.getLogger(__name__)

IsKeyDown = Callable[[int], bool]


def _build_key_names() -> Dict[int, str]:
    names = {
        0x08: "Backspace", 0x09: "Tab", 0x0D: "Enter", 0x13: "Pause",
        0x14: "CapsLock", 0x1B: "Esc", 0x20: "Space", 0x21: "PageUp",
        0x22: "PageDown", 0x23: "End", 0x24: "Home", 0x25: "Left",
        0x26: "Up", 0x27: "Right", 0x28: "Down", 0x2C: "PrintScreen",
        0x2D: "Insert", 0x2E: "Delete", 0x5B: "LWin", 0x5C: "RWin",
        0x5D: "Apps", 0x6A: "Multiply", 0x6B: "Add", 0x6D: "Subtract",
        0x6E: "Decimal", 0x6F: "Divide", 0x90: "NumLock", 0x91: "ScrollLock",
        0xBA: ";", 0xBB: "=", 0xBC: ",", 0xBD: "-", 0xBE: ".", 0xBF: "/",
        0xC0: "`", 0xDB: "[", 0xDC: "\\", 0xDD: "]", 0xDE: "'",
    }
    for code in range(0x30, 0x3A):
        names[code] = chr(code)
    for code in range(0x41, 0x5B):
        names[code] = chr(code)
    for n in range(10):
        names[0x60 + n] = f"NumPad{n}"
    for n in range(1, 25):
        names[0x6F + n] = f"F{n}"
    return names


KEY_NAMES: Dict[int, str] = _build_key_names()

# names understood by the `keyboard` library
_KEYBOARD_LIB_NAMES: Dict[int, str] = {
    VK_SHIFT: "shift", VK_CONTROL: "ctrl", VK_MENU: "alt",
    0xA0: "left shift", 0xA1: "right shift", 0xA2: "left ctrl",
    0xA3: "right ctrl", 0xA4: "left alt", 0xA5: "right alt",
    0x08: "backspace", 0x09: "tab", 0x0D: "enter", 0x13: "pause",
    0x14: "caps lock", 0x1B: "esc", 0x20: "space", 0x21: "page up",
    0x22: "page down", 0x23: "end", 0x24: "home", 0x25: "left",
    0x26: "up", 0x27: "right", 0x28: "down", 0x2C: "print screen",
    0x2D: "insert", 0x2E: "delete", 0x5B: "left windows", 0x5C: "right windows",
    0x5D: "menu", 0x90: "num lock", 0x91: "scroll lock",
    0xBA: ";", 0xBB: "=", 0xBC: ",", 0xBD: "-", 0xBE: ".", 0xBF: "/",
    0xC0: "`", 0xDB: "[", 0xDC: "\\", 0xDD: "]", 0xDE: "'",
}
_KEYBOARD_LIB_NAMES.update({code: chr(code).lower() for code in range(0x30, 0x3A)})
_KEYBOARD_LIB_NAMES.update({code: chr(code).lower() for code in range(0x41, 0x5B)})
_KEYBOARD_LIB_NAMES.update({0x6F + n: f"f{n}" for n in range(1, 25)})


def key_name(code: int) -> str:
    """Readable name for a virtual-key code (e.g. 0x75 -> "F6")."""
    return KEY_NAMES.get(code, f"Key{code}")


def is_modifier(code: int) -> bool:
    return code in MODIFIER_CODES


def is_capturable(code: int) -> bool:
    """True for codes that may serve as the primary key of a hotkey."""
    return (MIN_KEY_CODE <= code <= MAX_KEY_CODE
            and code not in MODIFIER_CODES
            and code not in MOUSE_BUTTON_CODES)


@dataclass(frozen=True)
class KeyCombo:
    """A hotkey: optional Ctrl/Shift/Alt plus one primary key code."""

    key: int
    ctrl: bool = False
    shift: bool = False
    alt: bool = False

    @property
    def has_modifiers(self) -> bool:
        return self.ctrl or self.shift or self.alt

    def display(self) -> str:
        """Display format, e.g. "Ctrl + Shift + A"."""
        parts = []
        if self.ctrl:
            parts.append("Ctrl")
        if self.shift:
            parts.append("Shift")
        if self.alt:
            parts.append("Alt")
        parts.append(key_name(self.key))
        return " + ".join(parts)

    def to_int(self) -> int:
        """Pack into the integer stored in the configuration file."""
        value = self.key & KEY_CODE_MASK
        if self.shift:
            value |= SHIFT_FLAG
        if self.ctrl:
            value |= CTRL_FLAG
        if self.alt:
            value |= ALT_FLAG
        return value

    @classmethod
    def from_int(cls, value: int) -> Optional["KeyCombo"]:
        """Unpack a configuration integer; None when it names no usable key."""
        if value < 0:
            return None
        code = value & KEY_CODE_MASK
        if not is_capturable(code):
            return None
        return cls(
            key=code,
            ctrl=bool(value & CTRL_FLAG),
            shift=bool(value & SHIFT_FLAG),
            alt=bool(value & ALT_FLAG),
        )

    def __str__(self) -> str:
        return self.display()


DEFAULT_HOTKEY = KeyCombo(VK_F6)


# --- Key-state backends ---
def _win32_key_state() -> IsKeyDown:
    import ctypes

    user32 = ctypes.windll.user32

    def is_key_down(code: int) -> bool:
        return (user32.GetAsyncKeyState(code) & 0x8000) != 0

    return is_key_down


def _keyboard_lib_key_state() -> IsKeyDown:
    import keyboard as kb

    # resolve names now so a backend that cannot work fails at startup
    scan_codes: Dict[int, Tuple[int, ...]] = {}
    for code, name in _KEYBOARD_LIB_NAMES.items():
        try:
            codes = kb.key_to_scan_codes(name)
        except ValueError:
            logger.debug("No scan code for %r on this keyboard layout", name)
            continue
        if codes:
            scan_codes[code] = tuple(codes)
    if not scan_codes:
        raise RuntimeError("keyboard backend resolved no key names")

    # starts the keyboard hook; raises here when it cannot
    kb.is_pressed(next(iter(scan_codes.values()))[0])

    def is_key_down(code: int) -> bool:
        return any(kb.is_pressed(sc) for sc in scan_codes.get(code, ()))

    return is_key_down


def system_key_state() -> IsKeyDown:
    """
    Return the platform `is_key_down(code)` function.

    Windows polls GetAsyncKeyState directly; other platforms go through the
    `keyboard` module (which needs root on Linux). Errors here are fatal
    at startup and are left to propagate.
    """
    if sys.platform == "win32":
        return _win32_key_state()
    return _keyboard_lib_key_state()
