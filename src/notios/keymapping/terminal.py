"""Adapter from prompt_toolkit key presses to KeyEvent."""

from __future__ import annotations

from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys

from notios.keymapping.keys import KeyEvent

# prompt_toolkit key value -> (special name, ctrl, shift)
_SPECIAL_KEYS: dict[str, tuple[str, bool, bool]] = {
    "tab": ("tab", False, False),
    "c-i": ("tab", False, False),
    "s-tab": ("tab", False, True),
    "delete": ("delete", False, False),
    "backspace": ("backspace", False, False),
    "c-h": ("backspace", False, False),
    "enter": ("return", False, False),
    "c-m": ("return", False, False),
    "escape": ("escape", False, False),
    "<scroll-up>": ("upWheel", False, False),
    "<scroll-down>": ("downWheel", False, False),
}

_NAVIGATION = {
    "up": "upArrow",
    "down": "downArrow",
    "left": "leftArrow",
    "right": "rightArrow",
    "home": "home",
    "end": "end",
    "pageup": "pageUp",
    "pagedown": "pageDown",
}
for _name, _special in _NAVIGATION.items():
    _SPECIAL_KEYS[_name] = (_special, False, False)
    _SPECIAL_KEYS[f"c-{_name}"] = (_special, True, False)
    _SPECIAL_KEYS[f"s-{_name}"] = (_special, False, True)
    _SPECIAL_KEYS[f"c-s-{_name}"] = (_special, True, True)


def _key_name(key: Keys | str) -> str:
    return key.value if isinstance(key, Keys) else key


def key_event_from_key_press(key_press: KeyPress) -> KeyEvent:
    """Translate one prompt_toolkit KeyPress."""
    name = _key_name(key_press.key)
    data = key_press.data or ""

    special = _SPECIAL_KEYS.get(name)
    if special is not None:
        special_name, ctrl, shift = special
        return KeyEvent(input=data, ctrl=ctrl, shift=shift, special=special_name)

    # c-a .. c-z
    if name.startswith("c-") and len(name) == 3:
        return KeyEvent(input=name[2], ctrl=True)

    # Alt+x arrives as ESC followed by the character
    if len(data) == 2 and data[0] == "\x1b":
        char = data[1]
        return KeyEvent(input=char, meta=True, shift=char.isupper())

    if len(name) == 1:
        return KeyEvent(input=name, shift=name.isupper())

    # Unrecognised: hand over the raw text for pattern matching
    return KeyEvent(input=data)
