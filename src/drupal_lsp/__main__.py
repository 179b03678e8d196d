"""drupal-lsp - Drupal service, route and link intelligence over LSP."""

import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_HELP = """\
Usage: drupal-lsp [--stdio] [--log-level <level>]
       drupal-lsp index [--dir <path>]

Server options:
  --stdio              Serve over stdin/stdout (default)
  --log-level <level>  DEBUG, INFO, WARNING or ERROR (default: $DRUPAL_LSP_LOG_LEVEL or INFO)
  --help, -h           Show this help message and exit

The index command scans a Drupal project once and prints what was found.
"""


def main() -> None:
    """Entry point for the drupal-lsp CLI."""
    args = sys.argv[1:]

    if args and args[0] == "index":
        _run_index(args[1:])
        return
    if "--help" in args or "-h" in args:
        print(_HELP)
        sys.exit(0)
    _run_server(args)


def _configure_logging(level: str) -> None:
    """Log to stderr through rich; stdout carries the protocol."""
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _run_server(args: list[str]) -> None:
    """Parse server flags and serve over stdio."""
    from drupal_lsp.core.config import EnvSettings

    log_level = EnvSettings().log_level
    i = 0
    while i < len(args):
        if args[i] == "--stdio":
            i += 1
        elif args[i] == "--log-level" and i + 1 < len(args):
            log_level = args[i + 1]
            i += 2
        else:
            print(f"Unknown argument: {args[i]}", file=sys.stderr)
            print("Run 'drupal-lsp --help' for usage.", file=sys.stderr)
            sys.exit(1)

    _configure_logging(log_level)

    from drupal_lsp.server import create_server

    create_server().start_io()


def _run_index(args: list[str]) -> None:
    """Parse index sub-command flags, scan once and print a summary table."""
    project_dir = Path.cwd()

    i = 0
    while i < len(args):
        if args[i] == "--dir" and i + 1 < len(args):
            project_dir = Path(args[i + 1])
            i += 2
        else:
            print(f"Unknown argument: {args[i]}")
            print("Usage: drupal-lsp index [--dir <path>]")
            sys.exit(1)

    from drupal_lsp.core.config import EnvSettings

    _configure_logging(EnvSettings().log_level)

    from rich.console import Console
    from rich.table import Table

    from drupal_lsp.core.session import Session
    from drupal_lsp.index.schema import EntityKind

    console = Console()
    session = Session(project_dir)
    if not session.detected:
        console.print(f"[yellow]No Drupal installation found in {project_dir}[/yellow]")
        sys.exit(1)

    console.print(f"Indexing {session.drupal_root}...")
    asyncio.run(session.scan_and_populate())
    stats = session.index.get_stats()

    table = Table(title=f"{stats.total_entities} entities from {stats.total_files} files")
    table.add_column("Kind")
    tiers = ["custom", "contrib", "core"]
    for tier in tiers:
        table.add_column(tier.capitalize(), justify="right")
    table.add_column("Total", justify="right", style="bold")

    for kind in EntityKind:
        entities = session.list_all(kind)
        per_tier = [
            sum(1 for e in entities if e.tier is not None and e.tier.value == tier)
            for tier in tiers
        ]
        table.add_row(kind.value, *(str(n) for n in per_tier), str(len(entities)))
    console.print(table)


if __name__ == "__main__":
    main()
