"""Keymapping: key descriptors, trie construction and sequence matching."""

from notios.keymapping.actions import (
    DEFAULT_KEYMAPPINGS,
    HELP_ACTION,
    PAGE_ACTIONS,
    build_page_trie,
    page_matcher,
    parse_keymappings,
)
from notios.keymapping.keys import (
    CharKey,
    KeyEvent,
    KeySequence,
    SpecialKey,
    keymapping_to_repr,
    keymapping_to_token,
    normalize_key_event,
    parse_key,
    parse_key_sequence,
)
from notios.keymapping.trie import (
    KeymappingMatcher,
    KeymappingNode,
    construct_keymapping,
    match_keymapping,
)

__all__ = [
    "CharKey",
    "DEFAULT_KEYMAPPINGS",
    "HELP_ACTION",
    "KeyEvent",
    "KeySequence",
    "KeymappingMatcher",
    "KeymappingNode",
    "PAGE_ACTIONS",
    "SpecialKey",
    "build_page_trie",
    "construct_keymapping",
    "keymapping_to_repr",
    "keymapping_to_token",
    "match_keymapping",
    "normalize_key_event",
    "page_matcher",
    "parse_key",
    "parse_key_sequence",
    "parse_keymappings",
]
