"""Internal data model of the process tree.

Nodes live in an arena owned by ProcManager and reference each other only by
token: `parent` and `children` are tokens, never objects. Everything in this
module is mutable internal state; external callers get the frozen views from
notios.proc.view instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Union

from notios.ansi.decoder import DecoderState
from notios.ansi.style import StyleState

if TYPE_CHECKING:
    from notios.proc.runner import ProcessHandle


class ProcStatus(Enum):
    """Lifecycle status of a node."""

    WAITING = "waiting"
    RUNNING = "running"
    KILLED = "killed"
    FINISHED = "finished"


class ProcNodeType(Enum):
    """How a composite node schedules its children.

    - NONE: no gating; children start when created running
    - SERIAL: strict pipeline, child i+1 starts once child i finished
    - PARALLEL: every waiting child starts as soon as the node runs
    """

    NONE = "none"
    SERIAL = "serial"
    PARALLEL = "parallel"


@dataclass
class ProcOwn:
    """Process identity of a leaf: what to spawn and the live handle."""

    command: str  # script text, for display only
    cwd: str
    npm_path: str  # executable invoked as [npm_path, "run", name]
    handle: ProcessHandle | None = None
    sinks: tuple[str, str] | None = None  # (stdout, stderr) tokens of the current run


@dataclass
class LogOwn:
    """Decoder and style state carried across output chunks."""

    decoder: DecoderState = field(default_factory=DecoderState)
    style: StyleState = field(default_factory=StyleState)


@dataclass(frozen=True)
class PrintToken:
    byte: int


@dataclass(frozen=True)
class StyleToken:
    data: bytes  # full cumulative style, not a delta


LogToken = Union[PrintToken, StyleToken]


@dataclass(eq=False)
class LogLineMain:
    """Line payload, shared between a node and every ancestor it merged into.

    Attributes:
        id: Per-node increasing id; -1 for synthetic marker lines.
        read: Whether the line has been seen.
        content: Ordered print/style tokens.
        timestamp: Commit time (epoch seconds); None while pending.
    """

    id: int
    read: bool = False
    content: list[LogToken] = field(default_factory=list)
    timestamp: float | None = None

    @property
    def committed(self) -> bool:
        return self.timestamp is not None


@dataclass(eq=False)
class LogLine:
    title: str
    main: LogLineMain


@dataclass
class LogAccumulated:
    """Accumulated log of one node.

    Attributes:
        line_count: Number of lines ever committed (sum over children for
            composite nodes).
        lines: Lines ordered by commit time; the last one may be pending.
        unread_lines: Lines not yet marked as read (identity set).
        last_merged: title -> (child token, line payload) of the newest line
            merged from that child. Compared by identity: ids repeat across
            the sinks a composite child merges.
    """

    line_count: int = 0
    lines: list[LogLine] = field(default_factory=list)
    unread_lines: set[LogLine] = field(default_factory=set)
    last_merged: dict[str, tuple[str, LogLineMain]] = field(default_factory=dict)

    def committed_len(self) -> int:
        """Number of leading lines that are committed (excludes a pending tail)."""
        if not self.lines:
            return 0
        if self.lines[-1].main.committed:
            return len(self.lines)
        return len(self.lines) - 1


@dataclass
class ProcNode:
    """One node of the orchestration tree (group, process leaf, or sink)."""

    name: str
    type: ProcNodeType
    status: ProcStatus
    token: str
    parent: str | None = None
    children: list[str] = field(default_factory=list)
    proc_own: ProcOwn | None = None
    log_own: LogOwn | None = field(default_factory=LogOwn)
    exit_code: int | None = None
    log: LogAccumulated = field(default_factory=LogAccumulated)
    log_omitted: bool = False
    ignored: bool = False


@dataclass
class CreateNodeParams:
    """Parameters a registration caller supplies for a new node."""

    name: str
    type: ProcNodeType = ProcNodeType.NONE
    status: ProcStatus = ProcStatus.WAITING
    proc_own: ProcOwn | None = None
    exit_code: int | None = None
