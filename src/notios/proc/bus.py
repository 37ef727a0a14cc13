"""Update notification bus.

Two kinds of subscribers:
- per-node listeners, fired at the end of that node's notify pass
- global listeners, fired when the tree structure changes

Listeners take no arguments; they read whatever state they need through the
manager's read-only views. A listener may add or remove listeners while being
called: dispatch iterates over a snapshot.
"""

from __future__ import annotations

from collections.abc import Callable

from notios.logging import get_logger

log = get_logger("bus")

UpdateListener = Callable[[], None]


class UpdateBus:
    """Subscriber lists keyed by node token, plus one global list."""

    def __init__(self) -> None:
        self._global: list[UpdateListener] = []
        self._by_token: dict[str, list[UpdateListener]] = {}

    def _listeners(self, token: str | None) -> list[UpdateListener]:
        if token is None:
            return self._global
        return self._by_token.setdefault(token, [])

    def add_listener(self, listener: UpdateListener, token: str | None = None) -> None:
        """Subscribe to a node (or, with no token, to structure changes)."""
        listeners = self._listeners(token)
        if listener not in listeners:
            listeners.append(listener)

    def remove_listener(self, listener: UpdateListener, token: str | None = None) -> None:
        listeners = self._listeners(token)
        if listener in listeners:
            listeners.remove(listener)

    def notify_node(self, token: str) -> None:
        for listener in list(self._by_token.get(token, ())):
            listener()

    def notify_global(self) -> None:
        log.debug("Tree structure changed, notifying %d listeners", len(self._global))
        for listener in list(self._global):
            listener()
