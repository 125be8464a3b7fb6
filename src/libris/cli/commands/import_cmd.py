# ABOUTME: The `libris import` command for merging Goodreads, Kindle, and Audible exports.
# ABOUTME: Resolves each export entry against the catalog and reports created/updated counts.

from pathlib import Path

import click
from rich.console import Console

from libris.cli.options import db_option, dry_run_option
from libris.cli.progress import make_progress
from libris.core.exports import SOURCES, ExportFormatError, load_exclusions, load_export
from libris.core.importer import import_records
from libris.core.resolver import METHOD_NONE
from libris.db.catalog import LibraryCatalog
from libris.db.connection import open_catalog


@click.command("import")
@click.argument("source", type=click.Choice(SOURCES))
@click.argument(
    "path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@db_option
@click.option(
    "--create-missing/--no-create-missing",
    default=None,
    help="Create books for unmatched entries (default: on for goodreads, off otherwise).",
)
@click.option(
    "--exclude-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='JSON file of {"excludedTitles": [...]} to skip.',
)
@dry_run_option
def import_command(
    source: str,
    path: Path,
    db_path: Path | None,
    create_missing: bool | None,
    exclude_file: Path | None,
    dry_run: bool,
) -> None:
    """Import a SOURCE export (goodreads, kindle, audible) from PATH."""
    console = Console()

    try:
        records = load_export(path, source)
        exclusions = load_exclusions(exclude_file) if exclude_file else []
    except ExportFormatError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    if not records:
        console.print(f"[yellow]No entries found in {path}[/yellow]")
        return

    if create_missing is None:
        create_missing = source == "goodreads"

    console.print(f"Read [bold]{len(records)}[/bold] {source} entry(ies)")
    if dry_run:
        console.print("[dim]Dry run: nothing will be written.[/dim]")

    conn = open_catalog(db_path)
    try:
        catalog = LibraryCatalog(conn)
        with make_progress(console) as progress:
            task = progress.add_task("Importing", total=len(records))
            result = import_records(
                records,
                catalog,
                create_missing=create_missing,
                exclusions=exclusions,
                dry_run=dry_run,
                on_record=lambda record, resolution: progress.advance(task),
            )
    finally:
        conn.close()

    parts = [
        f"[green]{result.created} created[/green]",
        f"[cyan]{result.updated} updated[/cyan]",
    ]
    if result.skipped:
        parts.append(f"[yellow]{result.skipped} skipped[/yellow]")
    if result.excluded:
        parts.append(f"[dim]{result.excluded} excluded[/dim]")
    if result.errors:
        parts.append(f"[red]{result.errors} error(s)[/red]")
    console.print(", ".join(parts))

    matched = {
        method: count for method, count in result.by_method.items() if method != METHOD_NONE
    }
    if matched:
        summary = ", ".join(f"{method}: {count}" for method, count in sorted(matched.items()))
        console.print(f"[dim]Matched by {summary}[/dim]")

    if result.unmatched:
        console.print(f"\n[yellow]{len(result.unmatched)} entr(ies) matched no book:[/yellow]")
        for record in result.unmatched:
            author = f" by {record.author}" if record.author else ""
            console.print(f"  [dim]{record.title}{author}[/dim]")

    if result.error_details:
        console.print(f"\n[yellow]{result.errors} entr(ies) could not be imported:[/yellow]")
        for title, msg in result.error_details:
            console.print(f"  [dim]{title}:[/dim] {msg}")
