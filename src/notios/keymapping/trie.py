"""Keymapping trie: construction with conflict detection, and matching."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from notios.errors import KeymappingError
from notios.keymapping.keys import (
    KeyEvent,
    KeySequence,
    keymapping_to_token,
    normalize_key_event,
    sequence_repr,
)
from notios.logging import get_logger

log = get_logger("keymapping")


@dataclass(eq=False)
class KeymappingNode:
    children: dict[str, KeymappingNode] = field(default_factory=dict)
    action: str | None = None


def construct_keymapping(
    action_keymappings: Mapping[str, Sequence[KeySequence] | None],
) -> KeymappingNode:
    """Build the trie for one page.

    Sequences are inserted shortest first, so whichever order the actions
    were declared in, a sequence that passes through or ends on an already
    bound node is reported.

    Raises:
        KeymappingError: On a zero-length sequence or overlapping bindings.
    """
    pairs = [
        (action, seq)
        for action, sequences in action_keymappings.items()
        if sequences is not None
        for seq in sequences
    ]
    pairs.sort(key=lambda pair: len(pair[1]))

    trie = KeymappingNode()
    for action, seq in pairs:
        if len(seq) == 0:
            raise KeymappingError(
                f'Keymap for action "{action}" is a zero-length sequence, which is not allowed.'
            )
        cur = trie
        for key in seq:
            cur = cur.children.setdefault(keymapping_to_token(key), KeymappingNode())
            if cur.action is not None:
                raise KeymappingError(
                    f'Keymap for action "{action}" [{sequence_repr(seq)}] '
                    f'overlaps keymap for action "{cur.action}".'
                )
        cur.action = action
    return trie


def match_keymapping(
    position: KeymappingNode, event: KeyEvent
) -> tuple[KeymappingNode | None, str | None]:
    """Advance one keystroke from the given position.

    Returns:
        (next position, None) while a sequence is in progress,
        (None, action) when a sequence completes,
        (None, None) when the key leads nowhere; the caller goes back to
        the root and the key is not retried from there.
    """
    nxt = position.children.get(normalize_key_event(event))
    if nxt is None:
        return None, None
    if nxt.action is not None:
        return None, nxt.action
    return nxt, None


class KeymappingMatcher:
    """Stateful matcher: the trie plus the current position."""

    def __init__(self, trie: KeymappingNode) -> None:
        self.trie = trie
        self._position = trie

    @property
    def pending(self) -> bool:
        """True while part of a multi-key sequence has been typed."""
        return self._position is not self.trie

    def reset(self) -> None:
        self._position = self.trie

    def feed(self, event: KeyEvent) -> str | None:
        """Consume one keystroke; return the action it completes, if any."""
        nxt, action = match_keymapping(self._position, event)
        self._position = nxt if nxt is not None else self.trie
        if action is not None:
            log.debug("Matched action %s", action)
        return action

    def dispatch(self, event: KeyEvent, handlers: Mapping[str, Callable[[], None]]) -> str | None:
        """Feed a keystroke and call the handler of the matched action."""
        action = self.feed(event)
        if action is not None:
            handler = handlers.get(action)
            if handler is None:
                log.debug("No handler bound for action %s", action)
            else:
                handler()
        return action
