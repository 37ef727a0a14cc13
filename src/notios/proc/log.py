"""Log accumulation: decoding output into lines, merging, and history eviction.

Line lifecycle:
    pending  -> a line exists but has no timestamp; excluded from counts,
                merges and eviction
    commit   -> first content-producing action assigns the timestamp and
                bumps the node's committed-line counter
    merged   -> ancestors append a LogLine sharing the same LogLineMain
    evicted  -> dropped from a node's list once it leaves the history window

All functions mutate the LogAccumulated / ProcNode they are given and touch
nothing else.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from notios.ansi.decoder import ControlAction, PrintAction, decode
from notios.ansi.style import apply_style, is_style_action, render_style
from notios.errors import InternalInvariantError
from notios.proc.types import (
    LogAccumulated,
    LogLine,
    LogLineMain,
    LogToken,
    PrintToken,
    ProcNode,
    StyleToken,
)

MARKER_ID = -1
MARKER_TITLE = "[NOTIOS]"
HISTORY_DROPPED_TEXT = "[NOTIOS] HISTORY DROPPED"

Clock = Callable[[], float]


@dataclass(frozen=True)
class Palette:
    """Escape strings used for notios' own messages; empty without colour."""

    reset: str = ""
    yellow: str = ""

    @classmethod
    def for_color(cls, color_supported: bool) -> Palette:
        if color_supported:
            return cls(reset="\x1b[0m", yellow="\x1b[33m")
        return cls()

    def notice(self, text: str) -> str:
        """Wrap text as a yellow notice."""
        return f"{self.reset}{self.yellow}{text}{self.reset}"


@dataclass(frozen=True)
class HistoryWindow:
    """Per-node retention policy: first head_size lines, marker, last tail_size."""

    head_size: int
    tail_size: int

    @classmethod
    def from_settings(cls, always_keep_head_size: int, cache_size: int) -> HistoryWindow:
        return cls(
            head_size=max(0, always_keep_head_size),
            tail_size=max(1, cache_size + 1),
        )

    @property
    def limit(self) -> int:
        """Maximum committed lines a node may show, marker included."""
        return self.head_size + self.tail_size + 1


def _open_line(log: LogAccumulated, content: list[LogToken], track_unread: bool) -> LogLine:
    line = LogLine(title="", main=LogLineMain(id=log.line_count, content=content))
    log.lines.append(line)
    if track_unread:
        log.unread_lines.add(line)
    return line


def _commit(log: LogAccumulated, line: LogLine, clock: Clock) -> None:
    if line.main.timestamp is None:
        line.main.timestamp = clock()
        log.line_count += 1


def append_log(
    node: ProcNode,
    data: bytes,
    *,
    clock: Clock,
    track_unread: bool,
) -> None:
    """Decode a chunk of output into the node's lines.

    Raises:
        InternalInvariantError: If the node carries no log identity.
    """
    log_own = node.log_own
    if log_own is None:
        raise InternalInvariantError(
            f"appending to log-accumulate-only node {node.name!r} ({node.token})"
        )

    log_own.decoder, actions = decode(log_own.decoder, data)
    log = node.log

    for action in actions:
        if not log.lines:
            _open_line(log, [], track_unread)
        current = log.lines[-1]

        if isinstance(action, PrintAction):
            _commit(log, current, clock)
            current.main.content.append(PrintToken(action.byte))
        elif isinstance(action, ControlAction):
            if action.char == "\t":
                _commit(log, current, clock)
                current.main.content.append(PrintToken(0x20))
            elif action.char == "\n":
                _commit(log, current, clock)
                # New line starts with the cumulative style so it renders alone
                _open_line(log, [StyleToken(render_style(log_own.style))], track_unread)
            # other controls (\r, BEL, backspace, ...) have no place in a line model
        elif is_style_action(action):
            log_own.style = apply_style(log_own.style, action)
            current.main.content.append(StyleToken(render_style(log_own.style)))
        # cursor movement, OSC and other escapes are dropped


@dataclass(frozen=True)
class MergeSource:
    """One non-ignored child as seen by its parent's merge step."""

    title: str
    token: str
    log: LogAccumulated


def merge_children(
    parent: LogAccumulated,
    sources: Sequence[MergeSource],
    *,
    track_unread: bool,
) -> list[LogLine]:
    """Append lines committed by children since the last merge.

    For each child, scan backward from its newest committed line until the
    line recorded as last merged for that title, or a marker line (the child
    evicted history in between). The recorded line is matched by identity,
    since a composite child interleaves lines of sinks with overlapping ids. The new slices are stable-sorted by commit
    time and appended to the parent.

    Returns:
        The lines appended to the parent.
    """
    batch: list[LogLine] = []
    for source in sources:
        lines = source.log.lines
        real_len = source.log.committed_len()
        if real_len == 0:
            continue

        start = 0
        record = parent.last_merged.get(source.title)
        # A reused title (restarted sink) belongs to a new child: merge it whole
        if record is not None and record[0] == source.token:
            last_main = record[1]
            start = real_len
            while start >= 1:
                main = lines[start - 1].main
                if main is last_main or main.id == MARKER_ID:
                    break
                start -= 1

        parent.last_merged[source.title] = (source.token, lines[real_len - 1].main)
        batch.extend(
            LogLine(title=source.title, main=line.main)
            for line in lines[start:real_len]
            if line.main.id != MARKER_ID
        )

    batch.sort(key=lambda line: line.main.timestamp or 0.0)
    parent.lines.extend(batch)
    if track_unread:
        parent.unread_lines.update(batch)
    return batch


def make_marker_line(palette: Palette, timestamp: float) -> LogLine:
    """Synthetic, pre-read line standing in for dropped history."""
    content: list[LogToken] = [StyleToken(f"{palette.reset}{palette.yellow}".encode())]
    content.extend(PrintToken(b) for b in HISTORY_DROPPED_TEXT.encode())
    content.append(StyleToken(palette.reset.encode()))
    return LogLine(
        title=MARKER_TITLE,
        main=LogLineMain(id=MARKER_ID, read=True, content=content, timestamp=timestamp),
    )


def evict_history(node: ProcNode, window: HistoryWindow, palette: Palette) -> bool:
    """Cut the node's committed lines down to the history window.

    Keeps the first head_size lines, a marker, and the last tail_size lines;
    a pending trailing line is carried over untouched. Applying it again
    inside the window is a no-op.

    Returns:
        True if lines were dropped.
    """
    log = node.log
    real_len = log.committed_len()
    if real_len <= window.limit:
        return False

    committed = log.lines[:real_len]
    pending = log.lines[real_len:]
    head = committed[: window.head_size]
    rest = committed[window.head_size :]
    dropped = rest[: -window.tail_size]
    tail = rest[-window.tail_size :]

    log.unread_lines.difference_update(dropped)
    marker = make_marker_line(palette, dropped[-1].main.timestamp or 0.0)
    log.lines = [*head, marker, *tail, *pending]
    node.log_omitted = True
    return True


def mark_read(log: LogAccumulated) -> int:
    """Mark every unread line as read. Returns how many were unread."""
    count = len(log.unread_lines)
    for line in log.unread_lines:
        line.main.read = True
    log.unread_lines.clear()
    return count
