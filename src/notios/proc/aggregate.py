"""Pure aggregation rules for composite nodes.

These functions look only at values handed to them; ProcManager applies the
results to the arena.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from notios.proc.types import ProcStatus


def aggregate_status(statuses: Sequence[ProcStatus], owns_process: bool) -> ProcStatus | None:
    """Status of a composite node from its non-ignored children's statuses.

    Precedence: killed (process owners only), finished, waiting, running.

    Returns:
        The aggregate status, or None when there are no children (the node's
        status is then driven directly by the process runner).
    """
    if not statuses:
        return None
    if owns_process and all(s is ProcStatus.KILLED for s in statuses):
        return ProcStatus.KILLED
    if all(s is ProcStatus.FINISHED for s in statuses):
        return ProcStatus.FINISHED
    if all(s is ProcStatus.WAITING for s in statuses):
        return ProcStatus.WAITING
    return ProcStatus.RUNNING


def aggregate_exit_code(exit_codes: Iterable[int | None]) -> int | None:
    """First child exit code that is not None, left to right."""
    for code in exit_codes:
        if code is not None:
            return code
    return None


def serial_startable(statuses: Sequence[ProcStatus]) -> list[int]:
    """Indices of children a running serial node should start now.

    The first child starts when waiting. Otherwise a waiting child starts only
    when its immediate predecessor has finished; a predecessor in any other
    state blocks everything after it.
    """
    if not statuses:
        return []
    if statuses[0] is ProcStatus.WAITING:
        return [0]
    return [
        i + 1
        for i in range(len(statuses) - 1)
        if statuses[i] is ProcStatus.FINISHED and statuses[i + 1] is ProcStatus.WAITING
    ]


def parallel_startable(statuses: Sequence[ProcStatus]) -> list[int]:
    """Indices of children a running parallel node should start now."""
    return [i for i, s in enumerate(statuses) if s is ProcStatus.WAITING]


def disambiguate_titles(names: Iterable[str]) -> list[str]:
    """Make sibling titles unique: repeats get (1), (2), ... in encounter order."""
    known: set[str] = set()
    titles: list[str] = []
    for name in names:
        title = name
        count = 0
        while title in known:
            count += 1
            title = f"{name}({count})"
        known.add(title)
        titles.append(title)
    return titles
