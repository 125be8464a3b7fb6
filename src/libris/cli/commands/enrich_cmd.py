# ABOUTME: The `libris enrich` and `libris enrich-authors` commands.
# ABOUTME: Drive the enrichment orchestrator with a Rich progress bar and print summaries.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from libris.cli.options import (
    approvals_file_option,
    db_option,
    dry_run_option,
    google_api_key_option,
    progress_file_option,
)
from libris.cli.progress import make_progress
from libris.cli.providers import create_providers, create_validator
from libris.core.approvals import ApprovalReportError, merge_reports, read_report, write_report
from libris.core.enrichment import (
    DEFAULT_BATCH_SIZE,
    EnrichmentOptions,
    EnrichmentSummary,
    Enricher,
)
from libris.core.progress import ProgressStore
from libris.db.catalog import LibraryCatalog
from libris.db.connection import open_catalog
from libris.metadata.types import RETRYABLE_STATUSES, EnrichmentStatus


def _summary_table(summary: EnrichmentSummary) -> Table:
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Outcome", style="bold", width=18)
    table.add_column("Count", justify="right")
    table.add_row("Processed", str(summary.processed))
    table.add_row("[green]Enriched[/green]", str(summary.enriched))
    table.add_row("[cyan]Partial[/cyan]", str(summary.partial))
    table.add_row("[yellow]Not found[/yellow]", str(summary.not_found))
    table.add_row("[red]Failed[/red]", str(summary.failed))
    table.add_row("Low confidence", str(summary.low_confidence))
    table.add_row("Rejected covers", str(summary.rejected_covers))
    for source, count in sorted(summary.by_source.items()):
        table.add_row(f"[dim]From {source}[/dim]", str(count))
    return table


@click.command("enrich")
@db_option
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=DEFAULT_BATCH_SIZE,
    show_default=True,
    help="Books per batch; the cursor is saved after each one.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after enriching this many books.",
)
@click.option(
    "--resume/--restart",
    default=True,
    help="Continue from the saved cursor, or start the pass over.",
)
@click.option(
    "--replace-bad-covers",
    is_flag=True,
    default=False,
    help="Also re-check existing covers and replace those that fail validation.",
)
@progress_file_option
@approvals_file_option
@google_api_key_option
@dry_run_option
def enrich(
    db_path: Path | None,
    batch_size: int,
    limit: int | None,
    resume: bool,
    replace_bad_covers: bool,
    progress_file: Path,
    approvals_file: Path,
    google_api_key: str | None,
    dry_run: bool,
) -> None:
    """Fill missing descriptions and covers from Open Library and Google Books."""
    console = Console()
    options = EnrichmentOptions(
        batch_size=batch_size,
        limit=limit,
        resume=resume,
        replace_bad_covers=replace_bad_covers,
        dry_run=dry_run,
    )

    conn = open_catalog(db_path)
    try:
        catalog = LibraryCatalog(conn)
        statuses = set(EnrichmentStatus) if replace_bad_covers else RETRYABLE_STATUSES
        eligible = catalog.count_by_status(statuses)
        if not eligible:
            console.print("[green]Nothing to enrich.[/green]")
            return
        if dry_run:
            console.print("[dim]Dry run: nothing will be written.[/dim]")

        enricher = Enricher(
            catalog,
            create_providers(google_api_key),
            create_validator(),
            options,
            progress_store=ProgressStore(progress_file),
        )
        total = min(eligible, limit) if limit else eligible
        with make_progress(console) as progress:
            task = progress.add_task("Enriching", total=total)

            def on_book(book, outcome) -> None:
                progress.update(task, advance=1, description=book.title[:40])

            summary = enricher.run(on_book=on_book)
    finally:
        conn.close()

    console.print(_summary_table(summary))
    if summary.completed_pass:
        console.print("[dim]Reached the end of the catalog; cursor reset.[/dim]")
    elif not dry_run:
        console.print(f"[dim]Cursor saved at offset {summary.cursor.last_offset}.[/dim]")

    if summary.pending:
        if dry_run:
            console.print(f"[yellow]{len(summary.pending)} cover(s) would need approval.[/yellow]")
            return
        try:
            merged = merge_reports(read_report(approvals_file), summary.pending)
        except ApprovalReportError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise SystemExit(1) from exc
        write_report(approvals_file, merged)
        console.print(
            f"[yellow]{len(summary.pending)} cover(s) need approval;[/yellow] "
            f"see {approvals_file}"
        )


@click.command("enrich-authors")
@db_option
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after looking up this many authors.",
)
@dry_run_option
def enrich_authors(db_path: Path | None, limit: int | None, dry_run: bool) -> None:
    """Fill author bios, photos, and dates from Open Library."""
    console = Console()

    conn = open_catalog(db_path)
    try:
        catalog = LibraryCatalog(conn)
        enricher = Enricher(
            catalog,
            create_providers(),
            create_validator(),
            EnrichmentOptions(dry_run=dry_run),
        )
        with make_progress(console) as progress:
            task = progress.add_task("Authors", total=limit)

            def on_author(author, updated) -> None:
                progress.update(task, advance=1, description=author.name[:40])

            summary = enricher.enrich_authors(limit=limit, on_author=on_author)
    finally:
        conn.close()

    parts = [f"{summary.processed} checked", f"[green]{summary.updated} updated[/green]"]
    if summary.not_found:
        parts.append(f"[yellow]{summary.not_found} not found[/yellow]")
    if summary.failed:
        parts.append(f"[red]{summary.failed} failed[/red]")
    console.print(", ".join(parts))
