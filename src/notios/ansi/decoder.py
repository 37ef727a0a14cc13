"""Incremental ANSI byte stream decoder.

Turns raw process output into typed actions:
- PrintAction: one printable byte (UTF-8 continuation bytes included)
- ControlAction: one C0 control character (\\n, \\t, \\r, BEL, ...)
- CsiAction: a complete Control Sequence Introducer sequence (ESC [ ... final)
- EscAction: a two-or-more byte escape sequence (ESC intermediates final)
- OscAction: an Operating System Command (ESC ] ... BEL/ST)

The decoder is a pure function over an immutable DecoderState, so callers
carry the state between chunks and an escape sequence split across two reads
still resolves to one action:

    state = DecoderState()
    state, actions = decode(state, b"\\x1b[3")
    state, more = decode(state, b"1mhi")   # CsiAction(final="m", params=(31,)), ...
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

ESC = 0x1B
BEL = 0x07
DEL = 0x7F

# Parser modes
GROUND = "ground"
ESCAPE = "escape"
CSI = "csi"
OSC = "osc"
OSC_ESCAPE = "osc_escape"
STRING = "string"  # DCS / SOS / PM / APC, swallowed until ST
STRING_ESCAPE = "string_escape"

_PRIVATE_MARKERS = "<=>?"
_PARAM_SPLIT = re.compile(r"[;:]")


@dataclass(frozen=True)
class PrintAction:
    byte: int


@dataclass(frozen=True)
class ControlAction:
    char: str


@dataclass(frozen=True)
class CsiAction:
    params: tuple[int | None, ...]
    final: str
    private: str = ""
    intermediates: str = ""


@dataclass(frozen=True)
class EscAction:
    final: str
    intermediates: str = ""


@dataclass(frozen=True)
class OscAction:
    payload: bytes


Action = Union[PrintAction, ControlAction, CsiAction, EscAction, OscAction]


@dataclass(frozen=True)
class DecoderState:
    """Parser position carried between decode() calls."""

    mode: str = GROUND
    buffer: bytes = b""


def _parse_params(raw: str) -> tuple[int | None, ...]:
    if not raw:
        return ()
    params: list[int | None] = []
    for piece in _PARAM_SPLIT.split(raw):
        params.append(int(piece) if piece.isdigit() else None)
    return tuple(params)


def _csi_action(buf: bytes, final: int) -> CsiAction:
    text = buf.decode("latin-1")
    private = ""
    while text and text[0] in _PRIVATE_MARKERS:
        private += text[0]
        text = text[1:]
    intermediates = ""
    while text and 0x20 <= ord(text[-1]) <= 0x2F:
        intermediates = text[-1] + intermediates
        text = text[:-1]
    return CsiAction(
        params=_parse_params(text),
        final=chr(final),
        private=private,
        intermediates=intermediates,
    )


def _step(mode: str, buf: bytearray, byte: int, actions: list[Action]) -> str:
    """Consume one byte, append any completed action, return the next mode."""
    if mode == GROUND:
        if byte == ESC:
            buf.clear()
            return ESCAPE
        if byte < 0x20 or byte == DEL:
            actions.append(ControlAction(chr(byte)))
        else:
            actions.append(PrintAction(byte))
        return GROUND

    if mode == ESCAPE:
        if byte == ord("["):
            buf.clear()
            return CSI
        if byte == ord("]"):
            buf.clear()
            return OSC
        if byte in (ord("P"), ord("X"), ord("^"), ord("_")):
            buf.clear()
            return STRING
        if byte == ESC:
            buf.clear()
            return ESCAPE
        if 0x20 <= byte <= 0x2F:
            buf.append(byte)
            return ESCAPE
        if 0x30 <= byte <= 0x7E:
            actions.append(EscAction(final=chr(byte), intermediates=buf.decode("latin-1")))
            buf.clear()
            return GROUND
        # C0 controls execute without aborting the sequence
        actions.append(ControlAction(chr(byte)))
        return ESCAPE

    if mode == CSI:
        if 0x40 <= byte <= 0x7E:
            actions.append(_csi_action(bytes(buf), byte))
            buf.clear()
            return GROUND
        if 0x20 <= byte <= 0x3F:
            buf.append(byte)
            return CSI
        if byte == ESC:
            buf.clear()
            return ESCAPE
        actions.append(ControlAction(chr(byte)))
        return CSI

    if mode == OSC:
        if byte == BEL:
            actions.append(OscAction(bytes(buf)))
            buf.clear()
            return GROUND
        if byte == ESC:
            return OSC_ESCAPE
        buf.append(byte)
        return OSC

    if mode == OSC_ESCAPE:
        actions.append(OscAction(bytes(buf)))
        buf.clear()
        if byte == ord("\\"):
            return GROUND
        # ESC aborted the OSC and starts a new sequence
        return _step(ESCAPE, buf, byte, actions)

    if mode == STRING:
        if byte == BEL:
            return GROUND
        if byte == ESC:
            return STRING_ESCAPE
        return STRING

    if mode == STRING_ESCAPE:
        return GROUND if byte == ord("\\") else STRING

    raise ValueError(f"Unknown decoder mode: {mode!r}")


def decode(state: DecoderState, data: bytes) -> tuple[DecoderState, list[Action]]:
    """Decode a chunk of bytes.

    Args:
        state: State returned by the previous call (or a fresh DecoderState).
        data: Raw bytes as read from the stream.

    Returns:
        Tuple of (new state, actions completed within this chunk).
    """
    mode = state.mode
    buf = bytearray(state.buffer)
    actions: list[Action] = []
    for byte in data:
        mode = _step(mode, buf, byte, actions)
    return DecoderState(mode=mode, buffer=bytes(buf)), actions
