"""Key descriptors, key events, and their normalization to trie tokens.

A key descriptor is what configuration binds (CharKey / SpecialKey); a key
event is what the terminal input layer delivers. Both normalize to the same
token string so the trie can compare them:

    CharKey("g", shift=True)          -> "g--s"
    SpecialKey("pageUp", ctrl=True)   -> "pageUp;c-"

Some modified navigation keys and scroll-wheel bursts never reach us as
structured events, so the raw escape text is pattern-matched first.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from notios.errors import ConfigError

SPECIAL_KEY_NAMES = (
    "upArrow",
    "downArrow",
    "leftArrow",
    "rightArrow",
    "pageUp",
    "pageDown",
    "home",
    "end",
    "tab",
    "delete",
    "backspace",
    "return",
    "escape",
    "upWheel",
    "downWheel",
)

# Special keys that carry no modifiers, and those that only carry shift.
# Everything else keeps ctrl and shift.
NO_MODIFIER_KEYS = frozenset({"delete", "backspace", "return", "escape"})
SHIFT_ONLY_KEYS = frozenset({"tab"})

SPACE_REPR = "<SPACE>"


@dataclass(frozen=True)
class CharKey:
    char: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False


@dataclass(frozen=True)
class SpecialKey:
    special: str
    ctrl: bool = False
    shift: bool = False


KeyDescriptor = Union[CharKey, SpecialKey]
KeySequence = tuple[KeyDescriptor, ...]


@dataclass(frozen=True)
class KeyEvent:
    """One keystroke as delivered by the terminal input layer.

    Attributes:
        input: Text of the keystroke (a character, or raw escape text).
        ctrl, meta, shift: Modifier flags reported by the input layer.
        special: Name from SPECIAL_KEY_NAMES when the input layer recognised
            a special key, else None.
    """

    input: str = ""
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    special: str | None = None


def _flag(value: bool, letter: str) -> str:
    return letter if value else "-"


def keymapping_to_token(key: KeyDescriptor) -> str:
    """Trie token of a key descriptor."""
    if isinstance(key, CharKey):
        return key.char + _flag(key.ctrl, "c") + _flag(key.meta, "m") + _flag(key.shift, "s")
    return key.special + ";" + _flag(key.ctrl, "c") + _flag(key.shift, "s")


def keymapping_to_repr(key: KeyDescriptor) -> str:
    """Human-readable form, e.g. C-S-pageUp, M-x, <SPACE>."""
    prefix = "C-" if key.ctrl else ""
    if isinstance(key, CharKey):
        prefix += "M-" if key.meta else ""
        prefix += "S-" if key.shift else ""
        return prefix + (SPACE_REPR if key.char == " " else key.char)
    prefix += "S-" if key.shift else ""
    return prefix + key.special


def sequence_repr(seq: Sequence[KeyDescriptor]) -> str:
    return " ".join(keymapping_to_repr(key) for key in seq)


# Parsing configuration

def _char_key(char: str, ctrl: bool, meta: bool, shift: bool) -> CharKey:
    # Terminals report an upper-case letter as the lower-case one plus shift
    if len(char) == 1 and char.isalpha() and char.isupper():
        return CharKey(char.lower(), ctrl=ctrl, meta=meta, shift=True)
    return CharKey(char, ctrl=ctrl, meta=meta, shift=shift)


def parse_key(text: str) -> KeyDescriptor:
    """Parse the shorthand form of one key: "j", "G", "C-d", "S-tab", "<SPACE>".

    Raises:
        ConfigError: If the text names no key.
    """
    ctrl = meta = shift = False
    rest = text
    while len(rest) > 2 and rest[1] == "-" and rest[0] in "CMS":
        if rest[0] == "C":
            ctrl = True
        elif rest[0] == "M":
            meta = True
        else:
            shift = True
        rest = rest[2:]

    if rest == SPACE_REPR:
        return CharKey(" ", ctrl=ctrl, meta=meta, shift=shift)
    if rest in SPECIAL_KEY_NAMES:
        if meta:
            raise ConfigError(f"Special key cannot take M- modifier: {text!r}")
        return SpecialKey(rest, ctrl=ctrl, shift=shift)
    if len(rest) == 1:
        return _char_key(rest, ctrl, meta, shift)
    raise ConfigError(f"Unknown key: {text!r}")


def parse_key_descriptor(raw: Any) -> KeyDescriptor:
    """Parse one key from its dict form or shorthand string.

    Dict forms:
        {type: char, char: "g", ctrl: false, meta: false, shift: false}
        {type: special, special: "pageUp", ctrl: false, shift: false}
    """
    if isinstance(raw, str):
        return parse_key(raw)
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Key descriptor must be a string or mapping, got {raw!r}")

    kind = raw.get("type")
    ctrl = bool(raw.get("ctrl", False))
    shift = bool(raw.get("shift", False))
    if kind == "char":
        char = raw.get("char")
        if not isinstance(char, str) or len(char) != 1:
            raise ConfigError(f"Char key needs a single character: {raw!r}")
        return _char_key(char, ctrl, bool(raw.get("meta", False)), shift)
    if kind == "special":
        special = raw.get("special")
        if special not in SPECIAL_KEY_NAMES:
            raise ConfigError(f"Unknown special key: {special!r}")
        return SpecialKey(special, ctrl=ctrl, shift=shift)
    raise ConfigError(f"Unknown key descriptor type: {kind!r}")


def parse_key_sequence(raw: Any) -> KeySequence:
    """Parse one sequence: a single key, {type: seq, seq: [...]}, or "g g"."""
    if isinstance(raw, str):
        return tuple(parse_key(part) for part in raw.split())
    if isinstance(raw, Mapping) and raw.get("type") == "seq":
        seq = raw.get("seq")
        if not isinstance(seq, list):
            raise ConfigError(f"Sequence keymap needs a 'seq' list: {raw!r}")
        return tuple(parse_key_descriptor(item) for item in seq)
    return (parse_key_descriptor(raw),)


def parse_action_keymapping(raw: Any) -> list[KeySequence]:
    """Parse all sequences bound to one action (a list, or a single sequence)."""
    if isinstance(raw, list):
        return [parse_key_sequence(item) for item in raw]
    return [parse_key_sequence(raw)]


# Normalizing events

_WHEEL_DOWN_RE = re.compile(r"^\[B(?:\x1b\[B)+$")
_WHEEL_UP_RE = re.compile(r"^\[A(?:\x1b\[A)+$")

_EXACT_RAW: dict[str, SpecialKey] = {
    "[1~": SpecialKey("home"),
    "[4~": SpecialKey("end"),
    "[5;2~": SpecialKey("pageUp", shift=True),
    "[6;2~": SpecialKey("pageDown", shift=True),
    "[5;6~": SpecialKey("pageUp", ctrl=True, shift=True),
    "[6;6~": SpecialKey("pageDown", ctrl=True, shift=True),
}

# Final letter of a modified CSI sequence -> key
_MODIFIED_SUFFIX = (
    ("H", "home"),
    ("F", "end"),
    ("D", "leftArrow"),
    ("B", "downArrow"),
    ("C", "rightArrow"),
    ("A", "upArrow"),
)


def match_raw_sequence(raw: str) -> SpecialKey | None:
    """Recognise escape text the input layer does not classify.

    The leading ESC is optional. Order matters: wheel bursts, exact
    sequences, then modified sequences by final letter.
    """
    if raw.startswith("\x1b"):
        raw = raw[1:]

    if _WHEEL_DOWN_RE.match(raw):
        return SpecialKey("downWheel")
    if _WHEEL_UP_RE.match(raw):
        return SpecialKey("upWheel")
    if raw in _EXACT_RAW:
        return _EXACT_RAW[raw]

    ctrl = raw.startswith("[1;5") or raw.startswith("[1;6")
    shift = raw.startswith("[1;2") or raw.startswith("[1;6")
    if ctrl or shift:
        for suffix, special in _MODIFIED_SUFFIX:
            if raw.endswith(suffix):
                return SpecialKey(special, ctrl=ctrl, shift=shift)
    return None


def normalize_key_event(event: KeyEvent) -> str:
    """Trie token for one key event."""
    raw_key = match_raw_sequence(event.input)
    if raw_key is not None:
        return keymapping_to_token(raw_key)

    special = event.special
    if special is not None:
        if special in SHIFT_ONLY_KEYS:
            return keymapping_to_token(SpecialKey(special, shift=event.shift))
        if special in NO_MODIFIER_KEYS:
            return keymapping_to_token(SpecialKey(special))
        return keymapping_to_token(SpecialKey(special, ctrl=event.ctrl, shift=event.shift))

    return keymapping_to_token(
        CharKey(event.input.lower(), ctrl=event.ctrl, meta=event.meta, shift=event.shift)
    )
