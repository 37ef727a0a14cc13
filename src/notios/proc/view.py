"""Read-only projection of the process tree.

Every boundary (UI, registration callers, the CLI) sees frozen snapshots
built here, never the mutable arena nodes. Building a view has no side
effects.
"""

from __future__ import annotations

from dataclasses import dataclass

from rich.text import Text

from notios.proc.types import (
    LogLine,
    LogToken,
    PrintToken,
    ProcNode,
    ProcNodeType,
    ProcStatus,
    StyleToken,
)


@dataclass(frozen=True)
class LogLineView:
    title: str
    id: int
    timestamp: float | None
    read: bool
    content: tuple[LogToken, ...]

    @property
    def plain(self) -> str:
        """Printable text only, styles dropped."""
        return content_plain(self.content)

    @property
    def ansi(self) -> str:
        """Printable text with its style sequences, ready for a terminal."""
        return content_ansi(self.content)

    def to_text(self) -> Text:
        """Styled rich Text for rendering."""
        return Text.from_ansi(self.ansi)


@dataclass(frozen=True)
class ProcOwnView:
    command: str
    cwd: str
    npm_path: str
    pid: int | None


@dataclass(frozen=True)
class ProcNodeView:
    """Snapshot of one node. Children are referenced by token."""

    name: str
    type: ProcNodeType
    status: ProcStatus
    token: str
    parent_token: str | None
    children: tuple[str, ...]
    exit_code: int | None
    proc: ProcOwnView | None
    line_count: int
    lines: tuple[LogLineView, ...]
    unread_count: int
    log_omitted: bool
    ignored: bool

    @property
    def committed_lines(self) -> tuple[LogLineView, ...]:
        """Lines without the trailing pending line, if any."""
        if self.lines and self.lines[-1].timestamp is None:
            return self.lines[:-1]
        return self.lines


def content_plain(content: tuple[LogToken, ...] | list[LogToken]) -> str:
    data = bytes(token.byte for token in content if isinstance(token, PrintToken))
    return data.decode("utf-8", errors="replace")


def content_ansi(content: tuple[LogToken, ...] | list[LogToken]) -> str:
    parts: list[bytes] = []
    for token in content:
        if isinstance(token, PrintToken):
            parts.append(bytes((token.byte,)))
        elif isinstance(token, StyleToken):
            parts.append(token.data)
    return b"".join(parts).decode("utf-8", errors="replace")


def project_line(line: LogLine) -> LogLineView:
    main = line.main
    return LogLineView(
        title=line.title,
        id=main.id,
        timestamp=main.timestamp,
        read=main.read,
        content=tuple(main.content),
    )


def project_node(node: ProcNode) -> ProcNodeView:
    proc = None
    if node.proc_own is not None:
        handle = node.proc_own.handle
        proc = ProcOwnView(
            command=node.proc_own.command,
            cwd=node.proc_own.cwd,
            npm_path=node.proc_own.npm_path,
            pid=handle.pid if handle is not None else None,
        )
    return ProcNodeView(
        name=node.name,
        type=node.type,
        status=node.status,
        token=node.token,
        parent_token=node.parent,
        children=tuple(node.children),
        exit_code=node.exit_code,
        proc=proc,
        line_count=node.log.line_count,
        lines=tuple(project_line(line) for line in node.log.lines),
        unread_count=len(node.log.unread_lines),
        log_omitted=node.log_omitted,
        ignored=node.ignored,
    )
