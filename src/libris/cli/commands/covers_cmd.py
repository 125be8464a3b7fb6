# ABOUTME: The `libris audit-covers` command.
# ABOUTME: Validates every stored cover in parallel and clears the ones that fail.

from collections import Counter
from pathlib import Path

import click
from rich.console import Console

from libris.cli.options import db_option, dry_run_option
from libris.cli.progress import make_progress
from libris.cli.providers import create_validator
from libris.core.cover_audit import DEFAULT_WORKERS, audit_covers
from libris.db.catalog import LibraryCatalog
from libris.db.connection import open_catalog


@click.command("audit-covers")
@db_option
@click.option(
    "-w", "--workers",
    type=click.IntRange(min=1),
    default=DEFAULT_WORKERS,
    show_default=True,
    help="Concurrent cover downloads.",
)
@dry_run_option
def audit_covers_command(db_path: Path | None, workers: int, dry_run: bool) -> None:
    """Check every cover and clear placeholders and bad images."""
    console = Console()

    conn = open_catalog(db_path)
    try:
        catalog = LibraryCatalog(conn)
        total = len(catalog.list_with_covers())
        if not total:
            console.print("[yellow]No covers to audit.[/yellow]")
            return
        with make_progress(console) as progress:
            task = progress.add_task("Auditing covers", total=total)
            result = audit_covers(
                catalog,
                create_validator(),
                workers=workers,
                dry_run=dry_run,
                on_checked=lambda book, check: progress.advance(task),
            )
    finally:
        conn.close()

    verb = "would be cleared" if dry_run else "cleared"
    console.print(
        f"{result.checked} checked, [green]{result.valid} valid[/green], "
        f"[red]{result.cleared} {verb}[/red]"
    )
    if result.unreachable:
        console.print(f"[yellow]{result.unreachable} unreachable, kept for the next audit[/yellow]")
    reasons = Counter(reason for _, reason in result.failures)
    for reason, count in reasons.most_common():
        console.print(f"  [dim]{reason}:[/dim] {count}")
