"""Tests for key descriptors, trie construction and sequence matching."""

from __future__ import annotations

import asyncio
import io
import sys

import pytest
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.key_binding import KeyPress
from prompt_toolkit.keys import Keys
from rich.console import Console

from notios.errors import ConfigError, KeymappingError
from notios.keymapping import (
    DEFAULT_KEYMAPPINGS,
    HELP_ACTION,
    PAGE_ACTIONS,
    CharKey,
    KeyEvent,
    KeymappingMatcher,
    SpecialKey,
    build_page_trie,
    construct_keymapping,
    keymapping_to_repr,
    keymapping_to_token,
    match_keymapping,
    normalize_key_event,
    page_matcher,
    parse_key,
    parse_key_sequence,
    parse_keymappings,
)
from notios import keyprobe
from notios.keymapping.keys import match_raw_sequence, sequence_repr
from notios.keymapping.terminal import key_event_from_key_press

G = CharKey("g")


class TestDescriptors:
    """Test token and repr forms of key descriptors."""

    def test_char_token(self) -> None:
        assert keymapping_to_token(CharKey("g")) == "g---"
        assert keymapping_to_token(CharKey("d", ctrl=True)) == "dc--"
        assert keymapping_to_token(CharKey("x", meta=True, shift=True)) == "x-ms"

    def test_special_token(self) -> None:
        assert keymapping_to_token(SpecialKey("pageUp")) == "pageUp;--"
        assert keymapping_to_token(SpecialKey("pageUp", ctrl=True, shift=True)) == "pageUp;cs"

    def test_repr(self) -> None:
        assert keymapping_to_repr(CharKey("d", ctrl=True)) == "C-d"
        assert keymapping_to_repr(CharKey("x", ctrl=True, meta=True, shift=True)) == "C-M-S-x"
        assert keymapping_to_repr(CharKey(" ")) == "<SPACE>"
        assert keymapping_to_repr(SpecialKey("pageDown", shift=True)) == "S-pageDown"
        assert sequence_repr((G, G)) == "g g"


class TestParsing:
    """Test the configuration forms of keys."""

    def test_shorthand(self) -> None:
        assert parse_key("j") == CharKey("j")
        assert parse_key("C-d") == CharKey("d", ctrl=True)
        assert parse_key("M-x") == CharKey("x", meta=True)
        assert parse_key("<SPACE>") == CharKey(" ")
        assert parse_key("S-pageUp") == SpecialKey("pageUp", shift=True)
        assert parse_key("C-S-end") == SpecialKey("end", ctrl=True, shift=True)

    def test_uppercase_means_shift(self) -> None:
        assert parse_key("G") == CharKey("g", shift=True)

    def test_literal_dash(self) -> None:
        assert parse_key("-") == CharKey("-")
        assert parse_key("C--") == CharKey("-", ctrl=True)

    def test_meta_on_special_rejected(self) -> None:
        with pytest.raises(ConfigError):
            parse_key("M-home")

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigError, match="Unknown key"):
            parse_key("nope")

    def test_sequence_forms(self) -> None:
        assert parse_key_sequence("g g") == (G, G)
        assert parse_key_sequence({"type": "char", "char": "q"}) == (CharKey("q"),)
        assert parse_key_sequence({"type": "special", "special": "home"}) == (SpecialKey("home"),)
        assert parse_key_sequence(
            {"type": "seq", "seq": [{"type": "char", "char": "g"}, "G"]}
        ) == (G, CharKey("g", shift=True))

    def test_bad_descriptors(self) -> None:
        with pytest.raises(ConfigError):
            parse_key_sequence({"type": "char", "char": "ab"})
        with pytest.raises(ConfigError):
            parse_key_sequence({"type": "special", "special": "hyper"})
        with pytest.raises(ConfigError):
            parse_key_sequence({"type": "seq"})
        with pytest.raises(ConfigError):
            parse_key_sequence(42)


class TestConstruction:
    """Test trie construction and conflict detection."""

    def test_simple_trie(self) -> None:
        trie = construct_keymapping({"top": [(G, G)], "down": [(CharKey("j"),)]})
        assert set(trie.children) == {"g---", "j---"}
        assert trie.children["j---"].action == "down"
        assert trie.children["g---"].action is None
        assert trie.children["g---"].children["g---"].action == "top"

    def test_zero_length_sequence(self) -> None:
        with pytest.raises(KeymappingError) as exc_info:
            construct_keymapping({"empty": [()]})
        assert str(exc_info.value) == (
            'Keymap for action "empty" is a zero-length sequence, which is not allowed.'
        )

    @pytest.mark.parametrize(
        "mapping",
        [
            {"A": [(G,)], "B": [(G, G)]},
            {"B": [(G, G)], "A": [(G,)]},
        ],
    )
    def test_prefix_overlap_any_order(self, mapping) -> None:
        with pytest.raises(KeymappingError) as exc_info:
            construct_keymapping(mapping)
        assert str(exc_info.value) == 'Keymap for action "B" [g g] overlaps keymap for action "A".'

    def test_duplicate_binding(self) -> None:
        with pytest.raises(KeymappingError, match="overlaps"):
            construct_keymapping({"A": [(CharKey("d", ctrl=True),)], "B": [(CharKey("d", ctrl=True),)]})

    def test_none_sequences_skipped(self) -> None:
        trie = construct_keymapping({"A": None, "B": [(G,)]})
        assert trie.children["g---"].action == "B"


class TestMatching:
    """Test incremental matching."""

    def test_match_step(self) -> None:
        trie = construct_keymapping({"top": [(G, G)]})
        nxt, action = match_keymapping(trie, KeyEvent(input="g"))
        assert nxt is trie.children["g---"]
        assert action is None

        nxt, action = match_keymapping(nxt, KeyEvent(input="g"))
        assert (nxt, action) == (None, "top")

        assert match_keymapping(trie, KeyEvent(input="x")) == (None, None)

    def test_sequence_fires_once(self) -> None:
        matcher = KeymappingMatcher(construct_keymapping({"top": [(G, G)]}))
        assert matcher.feed(KeyEvent(input="g")) is None
        assert matcher.pending
        assert matcher.feed(KeyEvent(input="g")) == "top"
        assert not matcher.pending
        assert matcher.feed(KeyEvent(input="g")) is None

    def test_mismatch_resets(self) -> None:
        matcher = KeymappingMatcher(construct_keymapping({"top": [(G, G)]}))
        matcher.feed(KeyEvent(input="g"))
        assert matcher.feed(KeyEvent(input="x")) is None
        assert not matcher.pending
        # the next g starts a fresh sequence
        assert matcher.feed(KeyEvent(input="g")) is None
        assert matcher.feed(KeyEvent(input="g")) == "top"

    def test_reset(self) -> None:
        matcher = KeymappingMatcher(construct_keymapping({"top": [(G, G)]}))
        matcher.feed(KeyEvent(input="g"))
        matcher.reset()
        assert not matcher.pending

    def test_dispatch(self) -> None:
        matcher = KeymappingMatcher(construct_keymapping({"quit": [(CharKey("q"),)]}))
        calls: list[str] = []
        assert matcher.dispatch(KeyEvent(input="q"), {"quit": lambda: calls.append("q")}) == "quit"
        assert calls == ["q"]
        assert matcher.dispatch(KeyEvent(input="q"), {}) == "quit"


class TestNormalization:
    """Test turning key events into trie tokens."""

    def test_char_event(self) -> None:
        assert normalize_key_event(KeyEvent(input="G", shift=True)) == "g--s"
        assert normalize_key_event(KeyEvent(input="d", ctrl=True)) == "dc--"

    def test_special_event(self) -> None:
        assert normalize_key_event(KeyEvent(special="pageUp", ctrl=True)) == "pageUp;c-"

    def test_no_modifier_keys(self) -> None:
        event = KeyEvent(special="return", ctrl=True, shift=True)
        assert normalize_key_event(event) == "return;--"

    def test_tab_keeps_shift_only(self) -> None:
        assert normalize_key_event(KeyEvent(special="tab", ctrl=True, shift=True)) == "tab;-s"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("\x1b[B\x1b[B", SpecialKey("downWheel")),
            ("[B\x1b[B\x1b[B", SpecialKey("downWheel")),
            ("\x1b[A\x1b[A", SpecialKey("upWheel")),
            ("\x1b[1~", SpecialKey("home")),
            ("[4~", SpecialKey("end")),
            ("\x1b[5;2~", SpecialKey("pageUp", shift=True)),
            ("\x1b[6;2~", SpecialKey("pageDown", shift=True)),
            ("\x1b[5;6~", SpecialKey("pageUp", ctrl=True, shift=True)),
            ("\x1b[6;6~", SpecialKey("pageDown", ctrl=True, shift=True)),
            ("\x1b[1;5A", SpecialKey("upArrow", ctrl=True)),
            ("\x1b[1;2B", SpecialKey("downArrow", shift=True)),
            ("\x1b[1;6D", SpecialKey("leftArrow", ctrl=True, shift=True)),
            ("\x1b[1;5C", SpecialKey("rightArrow", ctrl=True)),
            ("\x1b[1;2H", SpecialKey("home", shift=True)),
            ("\x1b[1;5F", SpecialKey("end", ctrl=True)),
        ],
    )
    def test_raw_patterns(self, raw: str, expected: SpecialKey) -> None:
        assert match_raw_sequence(raw) == expected
        assert normalize_key_event(KeyEvent(input=raw)) == keymapping_to_token(expected)

    def test_raw_takes_precedence(self) -> None:
        event = KeyEvent(input="\x1b[1;5A", special="downArrow")
        assert normalize_key_event(event) == "upArrow;c-"

    def test_unrecognised_raw(self) -> None:
        assert match_raw_sequence("\x1b[B") is None
        assert match_raw_sequence("[1;3A") is None


class TestPages:
    """Test page tables, defaults and configuration parsing."""

    def test_defaults_parse_and_build(self) -> None:
        keymappings = parse_keymappings(DEFAULT_KEYMAPPINGS)
        for page in PAGE_ACTIONS:
            assert set(keymappings[page]) <= PAGE_ACTIONS[page]
            build_page_trie(keymappings, page)

    def test_help_bound_on_every_page(self) -> None:
        keymappings = parse_keymappings(DEFAULT_KEYMAPPINGS)
        matcher = page_matcher(keymappings, "selector")
        assert matcher.feed(KeyEvent(input="?")) == HELP_ACTION

    def test_default_selector_bindings(self) -> None:
        matcher = page_matcher(parse_keymappings(DEFAULT_KEYMAPPINGS), "selector")
        assert matcher.feed(KeyEvent(input="G", shift=True)) == "cursorBottom"
        assert matcher.feed(KeyEvent(input="g")) is None
        assert matcher.feed(KeyEvent(input="g")) == "cursorTop"
        assert matcher.feed(KeyEvent(special="downArrow")) == "cursorDown"
        assert matcher.feed(KeyEvent(input="c", ctrl=True)) == "quit"

    def test_unknown_page(self) -> None:
        with pytest.raises(ConfigError, match="Unknown keymapping page"):
            parse_keymappings({"dashboard": {}})

    def test_unknown_action(self) -> None:
        with pytest.raises(ConfigError, match="Unknown action"):
            parse_keymappings({"selector": {"explode": ["e"]}})

    def test_help_conflict_detected(self) -> None:
        keymappings = parse_keymappings({"selector": {"quit": ["?"]}})
        with pytest.raises(KeymappingError):
            build_page_trie(keymappings, "selector")


class TestPromptToolkitAdapter:
    """Test translation of prompt_toolkit key presses."""

    def test_plain_char(self) -> None:
        assert key_event_from_key_press(KeyPress("j", "j")) == KeyEvent(input="j")

    def test_uppercase_char(self) -> None:
        event = key_event_from_key_press(KeyPress("G", "G"))
        assert normalize_key_event(event) == "g--s"

    def test_control_char(self) -> None:
        event = key_event_from_key_press(KeyPress(Keys.ControlD, "\x04"))
        assert normalize_key_event(event) == "dc--"

    def test_navigation(self) -> None:
        event = key_event_from_key_press(KeyPress(Keys.PageUp, "\x1b[5~"))
        assert normalize_key_event(event) == "pageUp;--"

    def test_shifted_navigation(self) -> None:
        event = key_event_from_key_press(KeyPress(Keys.ShiftUp, "\x1b[1;2A"))
        assert normalize_key_event(event) == "upArrow;-s"

    def test_enter_and_escape(self) -> None:
        assert key_event_from_key_press(KeyPress(Keys.Enter, "\r")).special == "return"
        assert key_event_from_key_press(KeyPress(Keys.Escape, "\x1b")).special == "escape"

    def test_back_tab(self) -> None:
        event = key_event_from_key_press(KeyPress(Keys.BackTab, "\x1b[Z"))
        assert normalize_key_event(event) == "tab;-s"

    def test_meta_char(self) -> None:
        event = key_event_from_key_press(KeyPress("x", "\x1bx"))
        assert event == KeyEvent(input="x", meta=True)


@pytest.mark.skipif(sys.platform == "win32", reason="pipe input is POSIX only")
class TestKeyProbe:
    """Test the interactive probe against piped keystrokes."""

    async def test_echoes_actions_until_quit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        output = io.StringIO()
        matcher = page_matcher(parse_keymappings(DEFAULT_KEYMAPPINGS), "selector")

        with create_pipe_input() as pipe_input:
            monkeypatch.setattr(keyprobe, "create_input", lambda: pipe_input)
            pipe_input.send_text("jgzq")
            await asyncio.wait_for(
                keyprobe.probe_keys(matcher, Console(file=output, color_system=None)), timeout=5
            )

        def token(char: str) -> str:
            return keymapping_to_token(CharKey(char))

        lines = output.getvalue().splitlines()
        assert lines == [
            f"{token('j')} -> cursorDown",
            f"{token('g')} ...",
            f"{token('z')} (unbound)",
            f"{token('q')} -> quit",
        ]
