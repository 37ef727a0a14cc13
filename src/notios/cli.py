"""Command-line interface for notios."""

from __future__ import annotations

import argparse
import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.table import Table

from notios import __version__
from notios.errors import NotiosError

console = Console(stderr=True)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="notios",
        description="Run npm scripts as a process tree with merged, bounded logs",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file layered over system/user/project config",
    )
    parser.add_argument(
        "--cwd",
        default=None,
        help="Project directory (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="mode", help="Operating mode")

    run_parser = subparsers.add_parser(
        "run",
        help="Run npm scripts and stream their output",
    )
    run_parser.add_argument(
        "tasks",
        nargs="+",
        metavar="TASK",
        help="npm script names",
    )
    run_parser.add_argument(
        "--serial",
        action="store_true",
        help="Run tasks one after another, stopping at the first that does not finish",
    )
    run_parser.add_argument(
        "--npm-path",
        help="Executable used as `<npm-path> run <task>`",
    )
    run_parser.add_argument(
        "--no-color",
        action="store_true",
        help="Do not ask child processes for colour output",
    )

    keys_parser = subparsers.add_parser(
        "keys",
        help="Show effective keymappings",
    )
    keys_parser.add_argument(
        "--page",
        help="Only show this page",
    )
    keys_parser.add_argument(
        "--probe",
        action="store_true",
        help="Read keystrokes and print the actions they trigger (requires --page)",
    )

    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.mode is None:
        parser.print_help()
        return 1

    from notios.config import load_config
    from notios.logging import setup_logging

    cwd = os.path.abspath(parsed.cwd or os.getcwd())
    try:
        config = load_config(project_root=cwd, config_file=parsed.config)
    except NotiosError as e:
        console.print(f"[red]Config error: {e}[/red]")
        return 2

    if parsed.verbose:
        config.logging.verbose = parsed.verbose
    setup_logging(config.logging)

    if parsed.mode == "run":
        from notios.headless import run_tasks

        if parsed.npm_path:
            config.proc.npm_path = parsed.npm_path
        if parsed.no_color:
            config.proc.force_no_color = True
        return asyncio.run(
            run_tasks(config.proc, parsed.tasks, serial=parsed.serial, cwd=cwd)
        )
    elif parsed.mode == "keys":
        return _run_keys(config.keymappings, parsed.page, parsed.probe)
    else:
        parser.print_help()
        return 1


def _run_keys(keymappings: dict, page: str | None, probe: bool) -> int:
    from notios.keymapping.actions import PAGE_ACTIONS, build_page_trie, page_matcher
    from notios.keymapping.keys import sequence_repr

    if page is not None and page not in PAGE_ACTIONS:
        console.print(f"[red]Unknown page: {page}[/red]")
        return 2

    if probe:
        if page is None:
            console.print("[red]--probe requires --page[/red]")
            return 2
        from notios.keyprobe import probe_keys

        try:
            matcher = page_matcher(keymappings, page)
        except NotiosError as e:
            console.print(f"[red]Keymapping error: {e}[/red]")
            return 2
        asyncio.run(probe_keys(matcher, console))
        return 0

    pages = [name for name in sorted(PAGE_ACTIONS) if page is None or name == page]
    try:
        for name in pages:
            build_page_trie(keymappings, name)
    except NotiosError as e:
        console.print(f"[red]Keymapping error: {e}[/red]")
        return 2

    out = Console()
    for name in pages:
        table = Table(title=name)
        table.add_column("Action", style="cyan")
        table.add_column("Keys")
        for action, sequences in sorted(keymappings.get(name, {}).items()):
            table.add_row(action, ", ".join(sequence_repr(seq) for seq in sequences))
        out.print(table)
    return 0


def main() -> int:
    """Main entry point for the notios CLI."""
    import sys

    return run_cli(sys.argv[1:])
