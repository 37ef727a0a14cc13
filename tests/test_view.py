"""Tests for the read-only projection of the tree."""

from __future__ import annotations

import dataclasses

import pytest
from rich.text import Text

from notios.proc.types import (
    CreateNodeParams,
    PrintToken,
    ProcNode,
    ProcNodeType,
    ProcOwn,
    ProcStatus,
    StyleToken,
)
from notios.proc.view import LogLineView, content_ansi, content_plain, project_node


class TestContentRendering:
    def test_plain_drops_styles(self) -> None:
        content = [StyleToken(b"\x1b[31m"), PrintToken(ord("h")), PrintToken(ord("i"))]
        assert content_plain(content) == "hi"
        assert content_ansi(content) == "\x1b[31mhi"

    def test_utf8_reassembled(self) -> None:
        content = [PrintToken(b) for b in "héllo".encode()]
        assert content_plain(content) == "héllo"

    def test_to_text(self) -> None:
        line = LogLineView(
            title="t",
            id=0,
            timestamp=1.0,
            read=False,
            content=(StyleToken(b"\x1b[0m\x1b[31m"), PrintToken(ord("x"))),
        )
        text = line.to_text()
        assert isinstance(text, Text)
        assert text.plain == "x"


class TestProjection:
    """Test that views are frozen snapshots."""

    def test_views_are_frozen(self, manager) -> None:
        root = manager.root
        with pytest.raises(dataclasses.FrozenInstanceError):
            root.name = "other"  # type: ignore[misc]

    def test_view_is_snapshot(self, manager, runner) -> None:
        group = manager.create_node(
            CreateNodeParams(name="g", type=ProcNodeType.PARALLEL, status=ProcStatus.RUNNING)
        )
        before = manager.view(group)
        manager.create_node(
            CreateNodeParams(name="a", proc_own=ProcOwn("a", "/", "npm")), group.token
        )

        assert before.children == ()
        assert len(manager.view(group).children) == 1

    def test_projection_has_no_side_effects(self, manager, runner) -> None:
        group = manager.create_node(
            CreateNodeParams(name="g", type=ProcNodeType.PARALLEL, status=ProcStatus.RUNNING)
        )
        leaf = manager.create_node(
            CreateNodeParams(name="a", proc_own=ProcOwn("cmd", "/w", "npm")), group.token
        )
        runner.for_task("a").stdout("x\n")

        first = manager.view(leaf)
        second = manager.view(leaf)
        assert first == second
        assert first.proc.command == "cmd"
        assert first.proc.cwd == "/w"
        assert first.committed_lines[0].plain == "x"

    def test_project_node_direct(self) -> None:
        node = ProcNode(name="n", type=ProcNodeType.SERIAL, status=ProcStatus.WAITING, token="tok")
        view = project_node(node)
        assert view.token == "tok"
        assert view.type is ProcNodeType.SERIAL
        assert view.proc is None
        assert view.lines == ()
        assert view.unread_count == 0
