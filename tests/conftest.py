"""Root pytest configuration for all tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from notios.config.schema import ProcConfig
from notios.proc.manager import ProcManager

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@dataclass(eq=False)
class FakeHandle:
    """Process handle recorded by FakeRunner; tests drive its callbacks."""

    argv: list[str]
    cwd: str
    env: dict[str, str]
    on_stdout: Any
    on_stderr: Any
    on_exit: Any
    pid: int | None = 4242
    terminated: bool = False

    def terminate(self) -> None:
        self.terminated = True

    def stdout(self, data: bytes | str) -> None:
        self.on_stdout(data.encode() if isinstance(data, str) else data)

    def stderr(self, data: bytes | str) -> None:
        self.on_stderr(data.encode() if isinstance(data, str) else data)

    def exit(self, code: int | None) -> None:
        self.on_exit(code)


@dataclass
class FakeRunner:
    """Runner that spawns nothing and records every spawn request."""

    spawns: list[FakeHandle] = field(default_factory=list)

    def spawn(self, argv, *, cwd, env, on_stdout, on_stderr, on_exit) -> FakeHandle:
        handle = FakeHandle(
            argv=list(argv),
            cwd=cwd,
            env=env,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
            on_exit=on_exit,
            pid=4242 + len(self.spawns),
        )
        self.spawns.append(handle)
        return handle

    def for_task(self, name: str) -> FakeHandle:
        """Most recent spawn of an npm task."""
        for handle in reversed(self.spawns):
            if handle.argv[-1] == name:
                return handle
        raise KeyError(name)


class FakeClock:
    """Monotonic clock advancing one second per reading."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_manager(runner: FakeRunner, clock: FakeClock):
    """Factory for managers wired to the fake runner and clock."""

    def factory(settings: ProcConfig | None = None, color_supported: bool = False) -> ProcManager:
        return ProcManager(
            settings or ProcConfig(),
            runner=runner,
            clock=clock,
            environ={"PATH": "/usr/bin", "NO_COLOR": "1"},
            color_supported=color_supported,
        )

    return factory


@pytest.fixture
def manager(make_manager) -> ProcManager:
    return make_manager()
