"""Interactive keymapping probe.

Reads raw keystrokes through prompt_toolkit, feeds them to a page's matcher
and prints each key and the action it completes. Ends on the page's quit
action (or back, for pages without quit).
"""

from __future__ import annotations

import asyncio

from prompt_toolkit.input import create_input
from rich.console import Console

from notios.keymapping.keys import normalize_key_event
from notios.keymapping.terminal import key_event_from_key_press
from notios.keymapping.trie import KeymappingMatcher

EXIT_ACTIONS = frozenset({"quit", "back"})


async def probe_keys(matcher: KeymappingMatcher, console: Console) -> None:
    """Echo matched actions until an exit action is typed."""
    done = asyncio.Event()
    term_input = create_input()
    handlers = {action: done.set for action in EXIT_ACTIONS}

    def on_keys() -> None:
        for key_press in term_input.read_keys():
            event = key_event_from_key_press(key_press)
            action = matcher.dispatch(event, handlers)
            token = normalize_key_event(event)
            if action is not None:
                console.print(f"[green]{token}[/green] -> [bold]{action}[/bold]")
            elif matcher.pending:
                console.print(f"[dim]{token} ...[/dim]")
            else:
                console.print(f"[dim]{token} (unbound)[/dim]")

    with term_input.raw_mode():
        with term_input.attach(on_keys):
            await done.wait()
