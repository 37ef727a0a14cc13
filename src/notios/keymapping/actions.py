"""Pages, the actions each page recognises, and default keymappings.

Keymapping configuration is validated against PAGE_ACTIONS when it is
loaded, so a typo in a page or action name fails at startup instead of
silently never firing.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from notios.errors import ConfigError
from notios.keymapping.keys import CharKey, KeySequence, parse_action_keymapping
from notios.keymapping.trie import KeymappingMatcher, KeymappingNode, construct_keymapping

HELP_ACTION = "help"
HELP_SEQUENCE: KeySequence = (CharKey("?"),)

PAGE_ACTIONS: dict[str, frozenset[str]] = {
    "selector": frozenset(
        {
            "cursorUp",
            "cursorDown",
            "cursorTop",
            "cursorBottom",
            "pageUp",
            "pageDown",
            "kill",
            "killAll",
            "restart",
            "restartAll",
            "markAsRead",
            "openLog",
            "quit",
        }
    ),
    "logViewer": frozenset(
        {
            "scrollUp",
            "scrollDown",
            "pageUp",
            "pageDown",
            "scrollTop",
            "scrollBottom",
            "markAsRead",
            "back",
            "quit",
        }
    ),
}

# Raw (configuration-shaped) defaults; user config is merged over these.
DEFAULT_KEYMAPPINGS: dict[str, dict[str, Any]] = {
    "selector": {
        "cursorUp": ["k", "upArrow"],
        "cursorDown": ["j", "downArrow"],
        "cursorTop": ["g g", "home"],
        "cursorBottom": ["G", "end"],
        "pageUp": ["C-u", "pageUp"],
        "pageDown": ["C-d", "pageDown"],
        "kill": ["x"],
        "killAll": ["X"],
        "restart": ["r"],
        "restartAll": ["R"],
        "markAsRead": ["m"],
        "openLog": ["return", "l"],
        "quit": ["q", "C-c"],
    },
    "logViewer": {
        "scrollUp": ["k", "upArrow", "upWheel"],
        "scrollDown": ["j", "downArrow", "downWheel"],
        "pageUp": ["C-u", "C-b", "pageUp"],
        "pageDown": ["C-d", "C-f", "pageDown"],
        "scrollTop": ["g g", "home"],
        "scrollBottom": ["G", "end"],
        "markAsRead": ["m"],
        "back": ["escape", "h", "q"],
        "quit": ["C-c"],
    },
}

PageKeymappings = dict[str, list[KeySequence]]


def parse_keymappings(raw: Mapping[str, Any]) -> dict[str, PageKeymappings]:
    """Validate and parse keymapping configuration.

    Args:
        raw: page name -> action name -> sequence(s), in configuration shape.

    Raises:
        ConfigError: On an unknown page or action, or a malformed key.
    """
    parsed: dict[str, PageKeymappings] = {}
    for page, actions in raw.items():
        known = PAGE_ACTIONS.get(page)
        if known is None:
            raise ConfigError(
                f"Unknown keymapping page {page!r} (expected one of {sorted(PAGE_ACTIONS)})"
            )
        if not isinstance(actions, Mapping):
            raise ConfigError(f"Keymappings for page {page!r} must be a mapping")

        page_map: PageKeymappings = {}
        for action, binding in actions.items():
            if action not in known:
                raise ConfigError(f"Unknown action {action!r} for page {page!r}")
            if binding is None:
                continue
            page_map[action] = parse_action_keymapping(binding)
        parsed[page] = page_map
    return parsed


def build_page_trie(keymappings: Mapping[str, PageKeymappings], page: str) -> KeymappingNode:
    """Trie for one page, with help bound to '?'."""
    if page not in PAGE_ACTIONS:
        raise ConfigError(f"Unknown keymapping page {page!r}")
    actions: dict[str, list[KeySequence]] = dict(keymappings.get(page, {}))
    actions[HELP_ACTION] = [HELP_SEQUENCE]
    return construct_keymapping(actions)


def page_matcher(keymappings: Mapping[str, PageKeymappings], page: str) -> KeymappingMatcher:
    return KeymappingMatcher(build_page_trie(keymappings, page))
