"""Tests for the ANSI decoder and SGR style state."""

from __future__ import annotations

from notios.ansi import (
    RESET,
    ControlAction,
    CsiAction,
    DecoderState,
    EscAction,
    OscAction,
    PrintAction,
    StyleState,
    apply_style,
    decode,
    is_style_action,
    render_style,
)


def decode_all(*chunks: bytes) -> list:
    state = DecoderState()
    actions = []
    for chunk in chunks:
        state, more = decode(state, chunk)
        actions.extend(more)
    return actions


def sgr(*params: int) -> CsiAction:
    return CsiAction(params=params, final="m")


class TestDecoder:
    """Test incremental decoding."""

    def test_printable_and_controls(self) -> None:
        actions = decode_all(b"a\tb\n")
        assert actions == [
            PrintAction(ord("a")),
            ControlAction("\t"),
            PrintAction(ord("b")),
            ControlAction("\n"),
        ]

    def test_utf8_bytes_are_printed_individually(self) -> None:
        actions = decode_all("é".encode())
        assert actions == [PrintAction(0xC3), PrintAction(0xA9)]

    def test_csi_params(self) -> None:
        assert decode_all(b"\x1b[1;31m") == [CsiAction(params=(1, 31), final="m")]

    def test_csi_empty_params(self) -> None:
        assert decode_all(b"\x1b[m") == [CsiAction(params=(), final="m")]

    def test_csi_private_marker(self) -> None:
        assert decode_all(b"\x1b[?25l") == [CsiAction(params=(25,), final="l", private="?")]

    def test_split_escape_sequence(self) -> None:
        """A sequence cut across reads resolves once the rest arrives."""
        state, first = decode(DecoderState(), b"x\x1b[3")
        assert first == [PrintAction(ord("x"))]
        assert state.mode == "csi"

        state, second = decode(state, b"1mhi")
        assert second == [sgr(31), PrintAction(ord("h")), PrintAction(ord("i"))]
        assert state == DecoderState()

    def test_split_after_escape_byte(self) -> None:
        assert decode_all(b"\x1b", b"[0m") == [sgr(0)]

    def test_esc_sequence(self) -> None:
        assert decode_all(b"\x1b(B") == [EscAction(final="B", intermediates="(")]

    def test_osc_bel_and_st(self) -> None:
        assert decode_all(b"\x1b]0;title\x07") == [OscAction(b"0;title")]
        assert decode_all(b"\x1b]0;t\x1b\\x") == [OscAction(b"0;t"), PrintAction(ord("x"))]

    def test_dcs_is_swallowed(self) -> None:
        assert decode_all(b"\x1bPdata\x1b\\ok") == [PrintAction(ord("o")), PrintAction(ord("k"))]

    def test_control_inside_csi(self) -> None:
        assert decode_all(b"\x1b[1\n2m") == [ControlAction("\n"), sgr(12)]


class TestStyle:
    """Test cumulative SGR state."""

    def test_default_renders_reset(self) -> None:
        assert StyleState().is_default
        assert render_style(StyleState()) == RESET

    def test_colors_and_attributes_accumulate(self) -> None:
        state = apply_style(StyleState(), sgr(1))
        state = apply_style(state, sgr(31))
        state = apply_style(state, sgr(44))
        assert render_style(state) == b"\x1b[0m\x1b[1;31;44m"

    def test_reset(self) -> None:
        state = apply_style(StyleState(), sgr(1, 31))
        assert apply_style(state, sgr(0)).is_default
        assert apply_style(state, CsiAction(params=(), final="m")).is_default

    def test_attribute_off(self) -> None:
        state = apply_style(StyleState(), sgr(1, 2, 4))
        state = apply_style(state, sgr(22))
        assert state.attrs == frozenset({4})

    def test_default_colors(self) -> None:
        state = apply_style(StyleState(), sgr(31, 41))
        state = apply_style(state, sgr(39))
        assert state.fg is None
        assert state.bg == (41,)
        assert apply_style(state, sgr(49)).bg is None

    def test_extended_colors(self) -> None:
        state = apply_style(StyleState(), sgr(38, 5, 208, 48, 2, 1, 2, 3))
        assert state.fg == (38, 5, 208)
        assert state.bg == (48, 2, 1, 2, 3)
        assert render_style(state) == b"\x1b[0m\x1b[38;5;208;48;2;1;2;3m"

    def test_bright_colors(self) -> None:
        state = apply_style(StyleState(), sgr(92, 103))
        assert state.fg == (92,)
        assert state.bg == (103,)

    def test_non_sgr_is_ignored(self) -> None:
        action = CsiAction(params=(2,), final="K")
        assert not is_style_action(action)
        assert apply_style(StyleState(), action) == StyleState()
        assert not is_style_action(CsiAction(params=(1,), final="m", private=">"))
