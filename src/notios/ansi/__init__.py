"""ANSI stream decoding and cumulative style tracking."""

from notios.ansi.decoder import (
    Action,
    ControlAction,
    CsiAction,
    DecoderState,
    EscAction,
    OscAction,
    PrintAction,
    decode,
)
from notios.ansi.style import (
    RESET,
    StyleState,
    apply_style,
    is_style_action,
    render_style,
)

__all__ = [
    "Action",
    "ControlAction",
    "CsiAction",
    "DecoderState",
    "EscAction",
    "OscAction",
    "PrintAction",
    "RESET",
    "StyleState",
    "apply_style",
    "decode",
    "is_style_action",
    "render_style",
]
