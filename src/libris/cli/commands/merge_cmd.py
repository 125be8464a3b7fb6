# ABOUTME: The `libris merge-authors` and `libris merge-series` commands.
# ABOUTME: Consolidate authors or series whose names normalize to the same form.

from pathlib import Path

import click
from rich.console import Console

from libris.cli.options import db_option, dry_run_option
from libris.core.consolidate import (
    ConsolidationResult,
    consolidate_duplicate_authors,
    consolidate_duplicate_series,
)
from libris.db.catalog import LibraryCatalog
from libris.db.connection import open_catalog


def _print_groups(console: Console, result: ConsolidationResult, dry_run: bool) -> None:
    for name in result.merged_names:
        console.print(f"  {name}")
    prefix = "Would merge" if dry_run else "Merged"
    console.print(f"{prefix} [bold]{result.groups}[/bold] group(s):", end=" ")


@click.command("merge-authors")
@db_option
@dry_run_option
def merge_authors(db_path: Path | None, dry_run: bool) -> None:
    """Merge duplicate author rows into one canonical author each."""
    console = Console()

    conn = open_catalog(db_path)
    try:
        result = consolidate_duplicate_authors(LibraryCatalog(conn), dry_run=dry_run)
    finally:
        conn.close()

    if not result.groups:
        console.print("[green]No duplicate authors found.[/green]")
        return

    _print_groups(console, result, dry_run)
    console.print(
        f"{result.reassigned} link(s) moved, {result.removed} duplicate link(s) dropped, "
        f"{result.deleted} author(s) removed"
    )


@click.command("merge-series")
@db_option
@dry_run_option
def merge_series(db_path: Path | None, dry_run: bool) -> None:
    """Merge duplicate series into one canonical series each."""
    console = Console()

    conn = open_catalog(db_path)
    try:
        result = consolidate_duplicate_series(LibraryCatalog(conn), dry_run=dry_run)
    finally:
        conn.close()

    if not result.groups:
        console.print("[green]No duplicate series found.[/green]")
        return

    _print_groups(console, result, dry_run)
    console.print(f"{result.reassigned} book(s) moved, {result.deleted} series removed")
