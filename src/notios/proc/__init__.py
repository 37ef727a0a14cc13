"""Process tree orchestration and log aggregation."""

from notios.proc.manager import ProcManager
from notios.proc.runner import (
    AsyncioProcessRunner,
    ProcessHandle,
    ProcessRunner,
    is_color_supported,
)
from notios.proc.types import CreateNodeParams, ProcNodeType, ProcOwn, ProcStatus
from notios.proc.view import LogLineView, ProcNodeView, ProcOwnView

__all__ = [
    "AsyncioProcessRunner",
    "CreateNodeParams",
    "LogLineView",
    "ProcManager",
    "ProcNodeType",
    "ProcNodeView",
    "ProcOwn",
    "ProcOwnView",
    "ProcStatus",
    "ProcessHandle",
    "ProcessRunner",
    "is_color_supported",
]
