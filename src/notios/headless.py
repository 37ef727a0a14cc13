"""Headless mode: run npm scripts as a process tree and stream their output.

Every task becomes a process leaf under one serial or parallel group. Lines
are printed as soon as they are complete (a later line exists in the same
stream), prefixed with the task name; the last partial line of each stream
is printed when the run ends.
"""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.console import Console
from rich.text import Text

from notios.logging import get_logger
from notios.proc.log import MARKER_ID
from notios.proc.manager import STDERR_SINK_NAME, STDOUT_SINK_NAME, ProcManager
from notios.proc.runner import AsyncioProcessRunner
from notios.proc.types import CreateNodeParams, ProcNodeType, ProcOwn, ProcStatus

if TYPE_CHECKING:
    from notios.config.schema import ProcConfig

log = get_logger("headless")

SEPARATOR = " │ "
INTERRUPTED_EXIT_CODE = 130


@dataclass
class _SinkCursor:
    title: str
    style: str
    last_id: int = -1


class TaskLogPrinter:
    """Follows every stdout/stderr sink of the tree and prints new lines.

    Sinks are read from output listeners, ahead of history eviction, so a
    chunk longer than the history window still prints in full.
    """

    def __init__(self, manager: ProcManager, console: Console) -> None:
        self._manager = manager
        self._console = console
        self._cursors: dict[str, _SinkCursor] = {}

    def attach(self) -> None:
        self._manager.add_update_listener(self.discover)

    def discover(self) -> None:
        """Subscribe to sinks created since the last structure change."""
        pending = [self._manager.root_token]
        while pending:
            view = self._manager.view(pending.pop())
            if view is None:
                continue
            pending.extend(view.children)
            if view.token in self._cursors or view.proc is not None:
                continue
            if view.name not in (STDOUT_SINK_NAME, STDERR_SINK_NAME):
                continue
            parent = self._manager.view(view.parent_token)
            if parent is None or parent.proc is None:
                continue

            token = view.token
            style = "red" if view.name == STDERR_SINK_NAME else "cyan"
            self._cursors[token] = _SinkCursor(title=parent.name, style=style)
            self._manager.add_output_listener(lambda token=token: self.flush(token), token)

    def flush(self, token: str, final: bool = False) -> None:
        """Print the complete lines of one sink not printed yet."""
        cursor = self._cursors[token]
        view = self._manager.view(token)
        if view is None:
            return

        lines = view.lines if final else view.lines[:-1]
        for line in lines:
            if line.id == MARKER_ID or line.id <= cursor.last_id or line.timestamp is None:
                continue
            cursor.last_id = line.id
            self._console.print(
                Text.assemble((f"{cursor.title}{SEPARATOR}", cursor.style), line.to_text())
            )

    def flush_all(self) -> None:
        for token in list(self._cursors):
            self.flush(token, final=True)


def build_task_tree(
    manager: ProcManager,
    tasks: list[str],
    *,
    serial: bool,
    cwd: str,
    npm_path: str,
) -> str | None:
    """Create a running group with one waiting leaf per task.

    Returns:
        The group's token.
    """
    group = manager.create_node(
        CreateNodeParams(
            name="serial" if serial else "parallel",
            type=ProcNodeType.SERIAL if serial else ProcNodeType.PARALLEL,
            status=ProcStatus.RUNNING,
        )
    )
    if group is None:
        return None
    for task in tasks:
        manager.create_node(
            CreateNodeParams(
                name=task,
                proc_own=ProcOwn(command=f"{npm_path} run {task}", cwd=cwd, npm_path=npm_path),
            ),
            group.token,
        )
    return group.token


class _Interrupt:
    """SIGINT handler that kills the whole tree once."""

    def __init__(self, manager: ProcManager) -> None:
        self._manager = manager
        self.triggered = False
        self.installed = False

    def __call__(self) -> None:
        if not self.triggered:
            log.info("Interrupted, killing all processes")
        self.triggered = True
        self._manager.kill_all_node(None)

    def install(self) -> None:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, self)
        except (NotImplementedError, RuntimeError):
            log.debug("Signal handlers unavailable on this platform")
            return
        self.installed = True

    def uninstall(self) -> None:
        if self.installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
            self.installed = False


async def run_tasks(
    settings: ProcConfig,
    tasks: list[str],
    *,
    serial: bool,
    cwd: str,
    console: Console | None = None,
) -> int:
    """Run tasks to completion, printing their output.

    Ctrl-C kills the whole tree; remaining serial tasks then never start.

    Returns:
        The root's exit code, 130 when interrupted, 1 when the run ended
        without finishing and without an exit code.
    """
    console = console or Console()
    runner = AsyncioProcessRunner()
    manager = ProcManager(settings, runner=runner)

    printer = TaskLogPrinter(manager, console)
    printer.attach()
    interrupt = _Interrupt(manager)
    interrupt.install()

    try:
        build_task_tree(manager, tasks, serial=serial, cwd=cwd, npm_path=settings.npm_path)
        await runner.wait_idle()
    finally:
        interrupt.uninstall()

    printer.flush_all()

    root = manager.root
    log.info("Run finished: %s (exit code %s)", root.status.value, root.exit_code)
    if interrupt.triggered:
        return INTERRUPTED_EXIT_CODE
    if root.exit_code is not None:
        return root.exit_code
    return 0 if root.status is ProcStatus.FINISHED else 1
