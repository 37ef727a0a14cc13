"""Process runner: spawning npm-script processes and wiring their streams.

The runner knows nothing about the tree. ProcManager hands it an argument
vector, a working directory, an environment and three callbacks; the runner
calls on_stdout / on_stderr once per chunk read and on_exit exactly once.

A process that fails to launch is reported through on_exit like any crash
(127 command not found, 126 permission denied, 1 other OS errors).
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Callable, Mapping
from typing import Protocol

import psutil

from notios.logging import get_logger

log = get_logger("runner")

ROOT_TOKEN_ENV = "NOTIOS_ROOT_TOKEN"
PARENT_TOKEN_ENV = "NOTIOS_PARENT_TOKEN"

READ_CHUNK_SIZE = 64 * 1024

DataCallback = Callable[[bytes], None]
ExitCallback = Callable[[int | None], None]

_COLOR_ENV = {
    "npm_config_color": "always",
    "FORCE_COLOR": "true",
    "CARGO_TERM_COLOR": "always",
}
_NO_COLOR_ENV = {
    "npm_config_color": "false",
    "NO_COLOR": "true",
    "FORCE_COLOR": "0",
    "CARGO_TERM_COLOR": "none",
}


class ProcessHandle(Protocol):
    """Live handle of a spawned process."""

    pid: int | None

    def terminate(self) -> None:
        """Send the termination signal; does not wait for the process to die."""
        ...


class ProcessRunner(Protocol):
    """Protocol for spawning processes.

    Implementations:
    - AsyncioProcessRunner: real OS processes on the running asyncio loop
    - test doubles that record spawns and replay output synchronously
    """

    def spawn(
        self,
        argv: list[str],
        *,
        cwd: str,
        env: dict[str, str],
        on_stdout: DataCallback,
        on_stderr: DataCallback,
        on_exit: ExitCallback,
    ) -> ProcessHandle:
        """Start a process with stdin, stdout and stderr piped."""
        ...


def is_color_supported(
    force_no_color: bool,
    environ: Mapping[str, str] | None = None,
    stdout_isatty: bool | None = None,
    platform: str | None = None,
) -> bool:
    """Decide whether child processes should be asked to emit colour.

    Disabled by NO_COLOR or force_no_color. Otherwise enabled by FORCE_COLOR,
    Windows, an interactive stdout on a non-dumb terminal, or a CI environment.
    """
    env = os.environ if environ is None else environ
    if stdout_isatty is None:
        stdout_isatty = sys.stdout.isatty()
    if platform is None:
        platform = sys.platform

    if "NO_COLOR" in env or force_no_color:
        return False
    return (
        "FORCE_COLOR" in env
        or platform == "win32"
        or (stdout_isatty and env.get("TERM") != "dumb")
        or "CI" in env
    )


def build_argv(npm_path: str, task_name: str) -> list[str]:
    return [npm_path, "run", task_name]


def build_spawn_env(
    base_env: Mapping[str, str],
    *,
    color_supported: bool,
    root_token: str,
    parent_token: str,
) -> dict[str, str]:
    """Inherited environment plus colour overrides and the two tree tokens."""
    env = dict(base_env)
    if color_supported:
        env.pop("NO_COLOR", None)
        env.update(_COLOR_ENV)
    else:
        env.update(_NO_COLOR_ENV)
    env[ROOT_TOKEN_ENV] = root_token
    env[PARENT_TOKEN_ENV] = parent_token
    return env


def kill_process_tree(pid: int) -> None:
    """Terminate a process and all of its descendants without waiting."""
    try:
        process = psutil.Process(pid)
    except psutil.Error:
        return
    try:
        children = process.children(recursive=True)
    except psutil.Error:
        children = []

    for proc in [*children, process]:
        try:
            proc.terminate()
        except psutil.Error:
            continue


class AsyncioProcess:
    """Handle for a process started by AsyncioProcessRunner."""

    def __init__(self, argv: list[str]) -> None:
        self.argv = argv
        self.pid: int | None = None
        self.returncode: int | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._terminate_requested = False

    def terminate(self) -> None:
        self._terminate_requested = True
        if self._process is not None and self._process.returncode is None:
            log.debug("Terminating process tree of pid %s", self._process.pid)
            kill_process_tree(self._process.pid)

    def _attach(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self.pid = process.pid
        if self._terminate_requested:
            # terminate() arrived before the process existed
            kill_process_tree(process.pid)

    def __repr__(self) -> str:
        return f"<AsyncioProcess pid={self.pid} argv={self.argv!r}>"


class AsyncioProcessRunner:
    """Spawn processes on the running asyncio event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def spawn(
        self,
        argv: list[str],
        *,
        cwd: str,
        env: dict[str, str],
        on_stdout: DataCallback,
        on_stderr: DataCallback,
        on_exit: ExitCallback,
    ) -> AsyncioProcess:
        handle = AsyncioProcess(argv)
        task = asyncio.get_running_loop().create_task(
            self._run(handle, cwd, env, on_stdout, on_stderr, on_exit)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    @property
    def active(self) -> int:
        """Number of processes not yet reported as exited."""
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until every spawned process has been reported as exited."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _run(
        self,
        handle: AsyncioProcess,
        cwd: str,
        env: dict[str, str],
        on_stdout: DataCallback,
        on_stderr: DataCallback,
        on_exit: ExitCallback,
    ) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *handle.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
            )
        except FileNotFoundError:
            log.warning("Command not found: %s", handle.argv[0])
            handle.returncode = 127
            on_exit(127)
            return
        except PermissionError:
            log.warning("Permission denied: %s", handle.argv[0])
            handle.returncode = 126
            on_exit(126)
            return
        except OSError as e:
            log.warning("Failed to spawn %s: %s", handle.argv, e)
            handle.returncode = 1
            on_exit(1)
            return

        handle._attach(process)
        log.info("Spawned pid %s: %s", process.pid, " ".join(handle.argv))

        assert process.stdout is not None and process.stderr is not None
        await asyncio.gather(
            _pump(process.stdout, on_stdout),
            _pump(process.stderr, on_stderr),
        )
        returncode = await process.wait()

        # Negative return codes mean "killed by signal": no exit code
        exit_code = returncode if returncode >= 0 else None
        if exit_code is None:
            log.info("pid %s terminated by signal %d", process.pid, -returncode)
        else:
            log.info("pid %s exited with code %d", process.pid, exit_code)
        handle.returncode = exit_code
        on_exit(exit_code)


async def _pump(stream: asyncio.StreamReader, callback: DataCallback) -> None:
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            return
        callback(chunk)
