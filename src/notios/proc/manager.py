"""Process tree manager.

ProcManager owns the node arena and is the only writer of tree state. Every
mutation (registration, process output, process exit, kill, restart, read
marking) ends in a notify pass on the affected node:

1. schedule children of a running serial/parallel node
2. recompute status and exit code from non-ignored children
3. schedule again against the recomputed status
4. merge newly committed child lines into the node's log
5. run the parent's notify pass (so ancestors merge bottom-up)
6. evict the node's own history
7. fire the node's listeners

Output listeners on a sink fire between decoding and that notify pass, while
the sink still holds every line the chunk committed.

Callers outside this module only ever see ProcNodeView snapshots.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping

from notios.config.schema import ProcConfig
from notios.logging import TRACE, get_logger
from notios.proc.aggregate import (
    aggregate_exit_code,
    aggregate_status,
    disambiguate_titles,
    parallel_startable,
    serial_startable,
)
from notios.proc.bus import UpdateBus, UpdateListener
from notios.proc.log import (
    Clock,
    HistoryWindow,
    MergeSource,
    Palette,
    append_log,
    evict_history,
    mark_read,
    merge_children,
)
from notios.proc.registry import TokenRegistry, random_token
from notios.proc.runner import (
    AsyncioProcessRunner,
    ProcessRunner,
    build_argv,
    build_spawn_env,
    is_color_supported,
)
from notios.proc.types import (
    CreateNodeParams,
    LogOwn,
    ProcNode,
    ProcNodeType,
    ProcStatus,
)
from notios.proc.view import ProcNodeView, project_node

log = get_logger("proc")

ROOT_NAME = "<root>"
STDOUT_SINK_NAME = "<out>"
STDERR_SINK_NAME = "<err>"

KILLED_TEXT = "[NOTIOS] MANUALLY KILLED"
RESTARTED_TEXT = "[NOTIOS] MANUALLY RESTARTED"

NodeRef = ProcNodeView | str | None


class ProcManager:
    """Orchestrates the process tree and its aggregated logs.

    Example:
        ```python
        manager = ProcManager(ProcConfig(npm_path="npm"))
        group = manager.create_node(
            CreateNodeParams(name="build", type=ProcNodeType.SERIAL, status=ProcStatus.RUNNING)
        )
        manager.create_node(
            CreateNodeParams(name="lint", proc_own=ProcOwn("eslint .", "/repo", "npm")),
            group.token,
        )
        ```
    """

    def __init__(
        self,
        settings: ProcConfig | None = None,
        *,
        runner: ProcessRunner | None = None,
        clock: Clock = time.time,
        environ: Mapping[str, str] | None = None,
        color_supported: bool | None = None,
        token_factory: Callable[[], str] = random_token,
    ) -> None:
        """Initialize the manager and its root node.

        Args:
            settings: Process/history settings; defaults when not provided
            runner: Process runner; an AsyncioProcessRunner when not provided
            clock: Source of commit timestamps
            environ: Base environment for children; os.environ at spawn time
                when not provided
            color_supported: Override colour detection
            token_factory: Random token source for the registry
        """
        self._settings = settings or ProcConfig()
        self._runner: ProcessRunner = runner or AsyncioProcessRunner()
        self._clock = clock
        self._environ = environ
        if color_supported is None:
            color_supported = is_color_supported(self._settings.force_no_color)
        self._color_supported = color_supported
        self._palette = Palette.for_color(color_supported)
        self._window = HistoryWindow.from_settings(
            self._settings.history_always_keep_head_size,
            self._settings.history_cache_size,
        )

        self._nodes = TokenRegistry(token_factory)
        self._bus = UpdateBus()
        self._output_bus = UpdateBus()
        self._root = self._new_node(ROOT_NAME, ProcNodeType.NONE, ProcStatus.WAITING)

    @property
    def settings(self) -> ProcConfig:
        return self._settings

    @property
    def runner(self) -> ProcessRunner:
        return self._runner

    @property
    def color_supported(self) -> bool:
        return self._color_supported

    @property
    def root_token(self) -> str:
        return self._root.token

    @property
    def root(self) -> ProcNodeView:
        """Snapshot of the root node."""
        return project_node(self._root)

    # -- lookup --------------------------------------------------------------

    def find_node_by_token(self, token: str | None) -> ProcNodeView | None:
        """Resolve a token; None means the root, an unknown token gives None."""
        node = self._resolve(token)
        return project_node(node) if node is not None else None

    def view(self, node: NodeRef) -> ProcNodeView | None:
        """Fresh snapshot of a node given a view, a token, or None for root."""
        resolved = self._resolve(node)
        return project_node(resolved) if resolved is not None else None

    def _resolve(self, ref: NodeRef) -> ProcNode | None:
        if ref is None:
            return self._root
        if isinstance(ref, ProcNodeView):
            return self._nodes.get(ref.token)
        return self._nodes.get(ref)

    # -- registration --------------------------------------------------------

    def create_node(
        self,
        params: CreateNodeParams,
        parent_token: str | None = None,
    ) -> ProcNodeView | None:
        """Register a node under a parent.

        Returns None without side effects when parent_token no longer
        resolves. A node created as running is started right away; the
        parent's notify pass then runs so scheduling sees the new child.
        """
        parent = self._resolve(parent_token)
        if parent is None:
            log.debug("create_node: unknown parent token %s, ignoring %s", parent_token, params.name)
            return None

        node = self._new_node(
            params.name,
            params.type,
            params.status,
            parent=parent.token,
        )
        node.proc_own = params.proc_own
        node.exit_code = params.exit_code
        parent.children.append(node.token)
        log.debug("Created node %s (%s) under %s", node.name, node.token, parent.name)
        self._bus.notify_global()

        if params.status is ProcStatus.RUNNING:
            self._start_running(node)
        self._notify(parent.token)
        return project_node(node)

    def _new_node(
        self,
        name: str,
        type: ProcNodeType,
        status: ProcStatus,
        *,
        parent: str | None = None,
    ) -> ProcNode:
        node = ProcNode(
            name=name,
            type=type,
            status=status,
            token=self._nodes.new_token(),
            parent=parent,
            log_own=LogOwn(),
        )
        self._nodes.register(node)
        return node

    # -- listeners -----------------------------------------------------------

    def add_update_listener(self, listener: UpdateListener, node: NodeRef = None) -> None:
        """Subscribe to a node's notify passes, or with no node to tree changes."""
        self._bus.add_listener(listener, self._listener_token(node))

    def remove_update_listener(self, listener: UpdateListener, node: NodeRef = None) -> None:
        self._bus.remove_listener(listener, self._listener_token(node))

    def add_output_listener(self, listener: UpdateListener, sink: NodeRef) -> None:
        """Subscribe to bytes appended to a sink.

        Fires right after the bytes are decoded, before the sink's notify
        pass, so every committed line is still in the sink's log.
        """
        self._output_bus.add_listener(listener, self._listener_token(sink))

    def remove_output_listener(self, listener: UpdateListener, sink: NodeRef) -> None:
        self._output_bus.remove_listener(listener, self._listener_token(sink))

    @staticmethod
    def _listener_token(node: NodeRef) -> str | None:
        if isinstance(node, ProcNodeView):
            return node.token
        return node

    # -- notify pass ---------------------------------------------------------

    def _notify(self, token: str) -> None:
        node = self._nodes[token]
        children = [self._nodes[t] for t in node.children]
        children = [c for c in children if not c.ignored]

        self._schedule(node)

        status = aggregate_status([c.status for c in children], node.proc_own is not None)
        if status is not None:
            node.status = status
            node.exit_code = aggregate_exit_code(c.exit_code for c in children)

        self._schedule(node)

        if children:
            node.log.line_count = sum(c.log.line_count for c in children)
            titles = disambiguate_titles(c.name for c in children)
            merge_children(
                node.log,
                [MergeSource(title, c.token, c.log) for title, c in zip(titles, children)],
                track_unread=self._settings.enable_unread_marker,
            )

        if node.parent is not None:
            self._notify(node.parent)

        if evict_history(node, self._window, self._palette):
            log.log(TRACE, "Evicted history of %s (%s)", node.name, node.token)

        self._bus.notify_node(token)

    def _schedule(self, node: ProcNode) -> None:
        """Start children a running serial or parallel node is ready for."""
        if node.status is not ProcStatus.RUNNING:
            return
        if node.type is ProcNodeType.NONE:
            return

        children = [self._nodes[t] for t in node.children]
        children = [c for c in children if not c.ignored]
        statuses = [c.status for c in children]
        if node.type is ProcNodeType.SERIAL:
            indices = serial_startable(statuses)
        else:
            indices = parallel_startable(statuses)

        for i in indices:
            # an earlier start may have already promoted this child
            if children[i].status is ProcStatus.WAITING:
                self._start_running(children[i])

    # -- process lifecycle ---------------------------------------------------

    def _start_running(self, node: ProcNode) -> None:
        node.status = ProcStatus.RUNNING
        proc_own = node.proc_own
        if proc_own is None:
            self._schedule(node)
            return

        stdout = self._new_node(
            STDOUT_SINK_NAME, ProcNodeType.NONE, ProcStatus.RUNNING, parent=node.token
        )
        stderr = self._new_node(
            STDERR_SINK_NAME, ProcNodeType.NONE, ProcStatus.RUNNING, parent=node.token
        )
        node.children = [stdout.token, stderr.token, *node.children]
        sinks = (stdout.token, stderr.token)
        proc_own.sinks = sinks
        self._bus.notify_global()

        env = build_spawn_env(
            os.environ if self._environ is None else self._environ,
            color_supported=self._color_supported,
            root_token=self._root.token,
            parent_token=node.token,
        )
        log.info("Starting %s in %s", node.name, proc_own.cwd)
        proc_own.handle = self._runner.spawn(
            build_argv(proc_own.npm_path, node.name),
            cwd=proc_own.cwd,
            env=env,
            on_stdout=lambda data: self._on_output(stdout.token, data),
            on_stderr=lambda data: self._on_output(stderr.token, data),
            on_exit=lambda code: self._on_exit(node.token, sinks, code),
        )
        self._notify(node.token)

    def _on_output(self, sink_token: str, data: bytes) -> None:
        append_log(
            self._nodes[sink_token],
            data,
            clock=self._clock,
            track_unread=self._settings.enable_unread_marker,
        )
        # before the notify pass, which may evict what was just committed
        self._output_bus.notify_node(sink_token)
        self._notify(sink_token)

    def _on_exit(self, node_token: str, sinks: tuple[str, str], exit_code: int | None) -> None:
        node = self._nodes[node_token]
        log.info("%s exited with code %s", node.name, exit_code)

        for token in sinks:
            sink = self._nodes[token]
            # a killed sink stays killed
            if sink.status is ProcStatus.RUNNING:
                sink.status = ProcStatus.FINISHED
            sink.exit_code = exit_code

        if node.proc_own is not None and node.proc_own.sinks == sinks:
            node.proc_own.handle = None

        for token in sinks:
            self._notify(token)

    def _append_notice(self, sink_token: str, text: str) -> None:
        self._on_output(sink_token, text.encode())

    # -- user operations -----------------------------------------------------

    def kill_node(self, node: NodeRef) -> None:
        """Kill a running process leaf; anything else is a silent no-op."""
        target = self._resolve(node)
        if target is None:
            return
        proc_own = target.proc_own
        if proc_own is None or proc_own.handle is None or proc_own.sinks is None:
            log.debug("kill_node: %s has no live process", target.name)
            return
        if target.status is not ProcStatus.RUNNING:
            log.debug("kill_node: %s is %s", target.name, target.status.value)
            return

        log.info("Killing %s (pid %s)", target.name, proc_own.handle.pid)
        proc_own.handle.terminate()
        proc_own.handle = None

        target.status = ProcStatus.KILLED
        for token in proc_own.sinks:
            self._nodes[token].status = ProcStatus.KILLED
        self._append_notice(proc_own.sinks[0], "\n" + self._palette.notice(KILLED_TEXT) + "\n")

    def kill_all_node(self, node: NodeRef) -> None:
        """Kill a node, then every descendant, pre-order."""
        target = self._resolve(node)
        if target is None:
            return
        self.kill_node(target.token)
        for token in list(target.children):
            self.kill_all_node(token)

    def restart_node(self, node: NodeRef) -> None:
        """Restart a finished or killed process leaf; otherwise a silent no-op."""
        target = self._resolve(node)
        if target is None:
            return
        proc_own = target.proc_own
        if proc_own is None:
            log.debug("restart_node: %s owns no process", target.name)
            return
        if target.status not in (ProcStatus.FINISHED, ProcStatus.KILLED):
            log.debug("restart_node: %s is %s", target.name, target.status.value)
            return

        log.info("Restarting %s", target.name)
        if proc_own.sinks is not None:
            for token in proc_own.sinks:
                self._nodes[token].ignored = True
        self._start_running(target)
        if proc_own.sinks is not None:
            self._append_notice(proc_own.sinks[0], self._palette.notice(RESTARTED_TEXT) + "\n")

    def restart_all_node(self, node: NodeRef) -> None:
        """Restart a node, then every descendant, pre-order."""
        target = self._resolve(node)
        if target is None:
            return
        self.restart_node(target.token)
        for token in list(target.children):
            self.restart_all_node(token)

    def mark_node_as_read(self, node: NodeRef) -> None:
        """Mark every line of a node and its descendants as read."""
        if not self._settings.enable_unread_marker:
            return
        target = self._resolve(node)
        if target is None:
            return

        count = 0
        pending = [target]
        while pending:
            current = pending.pop()
            count += mark_read(current.log)
            pending.extend(self._nodes[t] for t in current.children)
        log.debug("Marked %d lines of %s as read", count, target.name)
        self._notify(target.token)
