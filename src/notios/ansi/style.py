"""Cumulative SGR (Select Graphic Rendition) style state.

A StyleState is the full set of graphic attributes in effect at a point of a
stream. render_style() emits a reset followed by the sequence that re-applies
the whole state, so any single log line can be drawn without replaying the
lines before it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from notios.ansi.decoder import Action, CsiAction

RESET = b"\x1b[0m"

# SGR code -> attribute codes it clears
_ATTR_OFF: dict[int, tuple[int, ...]] = {
    21: (1,),  # double underline on some terminals, bold-off on others
    22: (1, 2),
    23: (3,),
    24: (4,),
    25: (5, 6),
    27: (7,),
    28: (8,),
    29: (9,),
    55: (53,),
}
_ATTR_ON = frozenset({1, 2, 3, 4, 5, 6, 7, 8, 9, 53})


@dataclass(frozen=True)
class StyleState:
    """Graphic attributes currently in effect.

    Attributes:
        attrs: Enabled attribute codes (bold=1, dim=2, italic=3, ...).
        fg: Foreground colour codes, e.g. (31,), (38, 5, 208), (38, 2, r, g, b).
        bg: Background colour codes, same shape as fg.
        underline_color: Underline colour codes (58, ...).
    """

    attrs: frozenset[int] = frozenset()
    fg: tuple[int, ...] | None = None
    bg: tuple[int, ...] | None = None
    underline_color: tuple[int, ...] | None = None

    @property
    def is_default(self) -> bool:
        return self == StyleState()


def is_style_action(action: Action) -> bool:
    """True for a plain SGR sequence (CSI ... m)."""
    return (
        isinstance(action, CsiAction)
        and action.final == "m"
        and not action.private
        and not action.intermediates
    )


def _extended_color(params: list[int], i: int) -> tuple[tuple[int, ...] | None, int]:
    """Parse 38/48/58 extended colour starting at params[i].

    Returns the colour codes (or None when malformed) and the index after it.
    """
    code = params[i]
    if i + 1 >= len(params):
        return None, len(params)
    kind = params[i + 1]
    if kind == 5 and i + 2 < len(params):
        return (code, 5, params[i + 2]), i + 3
    if kind == 2 and i + 4 < len(params):
        return (code, 2, params[i + 2], params[i + 3], params[i + 4]), i + 5
    return None, len(params)


def apply_style(state: StyleState, action: Action) -> StyleState:
    """Fold one decoder action into the style state.

    Anything that is not an SGR sequence leaves the state unchanged.
    """
    if not is_style_action(action):
        return state
    assert isinstance(action, CsiAction)

    params = [0 if p is None else p for p in action.params] or [0]
    attrs = set(state.attrs)
    fg, bg, ul = state.fg, state.bg, state.underline_color

    i = 0
    while i < len(params):
        p = params[i]
        i += 1
        if p == 0:
            attrs.clear()
            fg = bg = ul = None
        elif p in _ATTR_ON:
            attrs.add(p)
        elif p in _ATTR_OFF:
            attrs.difference_update(_ATTR_OFF[p])
        elif 30 <= p <= 37 or 90 <= p <= 97:
            fg = (p,)
        elif p == 39:
            fg = None
        elif 40 <= p <= 47 or 100 <= p <= 107:
            bg = (p,)
        elif p == 49:
            bg = None
        elif p == 59:
            ul = None
        elif p in (38, 48, 58):
            color, i = _extended_color(params, i - 1)
            if color is not None:
                if p == 38:
                    fg = color
                elif p == 48:
                    bg = color
                else:
                    ul = color

    return replace(
        state,
        attrs=frozenset(attrs),
        fg=fg,
        bg=bg,
        underline_color=ul,
    )


def render_style(state: StyleState) -> bytes:
    """Render a reset plus the sequence that re-applies the whole state."""
    codes: list[int] = sorted(state.attrs)
    for color in (state.fg, state.bg, state.underline_color):
        if color is not None:
            codes.extend(color)
    if not codes:
        return RESET
    return RESET + b"\x1b[" + ";".join(str(c) for c in codes).encode("ascii") + b"m"
