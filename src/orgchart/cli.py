"""CLI entry point for orgchart."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import config_path, load_config, render_default_config
from .errors import OrgchartError
from .seed import load_roster, seed_team
from .stores.state import resolve_state_dir, scaffold_state_dir
from .stores.team import TeamStore
from .team import Team, parse_actor
from .team import main as team_main

logger = logging.getLogger("orgchart")


def configure_logging(level: str = "INFO", *, console: Console | None = None) -> None:
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root = logging.getLogger("orgchart")
    root.handlers[:] = [handler]
    root.setLevel(level)


def cmd_init(argv: list[str], console: Console) -> int:
    p = argparse.ArgumentParser(prog="orgchart init", description="Create .orgchart/ here.")
    p.add_argument("--force", action="store_true", help="Overwrite an existing config.toml")
    args = p.parse_args(argv)

    state_dir = scaffold_state_dir(
        Path.cwd(), config_text=render_default_config(), force=args.force
    )
    TeamStore(state_dir).ensure_schema()
    console.print(
        Panel(
            f"Initialized [bold].orgchart/[/bold] in {Path.cwd()}",
            style="green",
            expand=False,
        )
    )
    return 0


def cmd_serve(argv: list[str], console: Console) -> int:
    config = load_config(Path.cwd())
    if config.error:
        logger.warning("%s; using default settings", config.error)

    p = argparse.ArgumentParser(prog="orgchart serve", description="Start the HTTP API.")
    p.add_argument("--host", default=config.server.host, help="Bind address")
    p.add_argument("--port", type=int, default=config.server.port, help="Bind port")
    p.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = p.parse_args(argv)

    # The app factory resolves the state dir from the environment in the worker.
    os.environ.setdefault("ORGCHART_STATE_DIR", str(resolve_state_dir(Path.cwd())))
    console.print(
        Panel(
            f"Starting web server at [bold]http://{args.host}:{args.port}[/bold]",
            title="orgchart serve",
            style="cyan",
            expand=False,
        )
    )
    uvicorn.run(
        "orgchart.web:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=config.log_level.lower(),
    )
    return 0


def cmd_seed(argv: list[str], console: Console) -> int:
    p = argparse.ArgumentParser(
        prog="orgchart seed",
        description="Load an initial team from a roster file.",
    )
    p.add_argument("path", help="Roster file (.json, .yaml or .yml)")
    p.add_argument("--replace", action="store_true", help="Delete the current team first")
    p.add_argument("--actor", help="Who is seeding (or ORGCHART_ACTOR)")
    args = p.parse_args(argv)

    actor = parse_actor(args.actor or os.environ.get("ORGCHART_ACTOR"))
    team = Team.from_workdir(Path.cwd())
    try:
        roster = load_roster(Path(args.path))
        summary = seed_team(team.store, roster, actor=actor, replace=args.replace)
    except OrgchartError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    console.print(
        Panel(
            f"Seeded [bold]{summary['members']}[/bold] member(s) and "
            f"[bold]{summary['relationships']}[/bold] extra reporting line(s)",
            style="green",
            expand=False,
        )
    )
    return 0


def _print_help(console: Console) -> None:
    help_text = Text()
    help_text.append("orgchart", style="bold")
    help_text.append(f" {__version__}", style="dim")
    help_text.append(" - team directory and reporting hierarchy")
    console.print(help_text)
    console.print()

    cmds = Table(show_header=False, expand=False, show_edge=False, pad_edge=False, box=None)
    cmds.add_column("Command", style="bold cyan")
    cmds.add_column("Description")
    cmds.add_row("orgchart init", "Scaffold .orgchart/ directory")
    cmds.add_row("orgchart seed <roster>", "Load the initial team")
    cmds.add_row("orgchart team <command>", "Manage members and reporting lines")
    cmds.add_row("orgchart serve", "Start the HTTP API")
    console.print(cmds)
    console.print()

    opts = Table(show_header=False, expand=False, show_edge=False, pad_edge=False, box=None)
    opts.add_column("Option", style="bold")
    opts.add_column("Description", style="dim")
    opts.add_row("--version", "Show version")
    opts.add_row("-h, --help", "Show this help")
    console.print(opts)
    console.print()
    console.print(f"[dim]config: {config_path(Path.cwd())}[/dim]")


def main(argv: list[str] | None = None) -> None:
    raw = argv if argv is not None else sys.argv[1:]
    console = Console()

    if "--version" in raw:
        console.print(Text(f"orgchart {__version__}", style="bold"))
        sys.exit(0)
    if not raw or raw == ["--help"] or raw == ["-h"]:
        _print_help(console)
        sys.exit(0)

    config = load_config(Path.cwd())
    configure_logging(config.log_level)

    if raw[0] == "init":
        sys.exit(cmd_init(raw[1:], console))

    if raw[0] == "serve":
        sys.exit(cmd_serve(raw[1:], console))

    if raw[0] == "seed":
        sys.exit(cmd_seed(raw[1:], console))

    if raw[0] == "team":
        team_main(raw[1:])
        sys.exit(0)

    console.print(f"[red]error:[/red] unknown command: {raw[0]}")
    _print_help(console)
    sys.exit(2)


if __name__ == "__main__":
    main()
