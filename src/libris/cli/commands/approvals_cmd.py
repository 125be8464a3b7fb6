# ABOUTME: The `libris approvals` command group for reviewing proposed cover replacements.
# ABOUTME: Lists the pending-approval report and applies selected (or all) entries.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from libris.cli.options import approvals_file_option, db_option
from libris.cli.providers import create_validator
from libris.core.approvals import (
    ApprovalReportError,
    PendingApproval,
    apply_approvals,
    read_report,
    write_report,
)
from libris.db.catalog import LibraryCatalog
from libris.db.connection import open_catalog


def _load(console: Console, path: Path) -> list[PendingApproval]:
    try:
        return read_report(path)
    except ApprovalReportError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc


@click.group("approvals")
def approvals() -> None:
    """Review low-confidence cover replacements."""


@approvals.command("list")
@approvals_file_option
def list_approvals(approvals_file: Path) -> None:
    """Show pending cover approvals."""
    console = Console()
    pending = _load(console, approvals_file)
    if not pending:
        console.print("[green]No pending approvals.[/green]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=6)
    table.add_column("Title", style="bold")
    table.add_column("Matched author")
    table.add_column("Source")
    table.add_column("Conf.", justify="right", width=5)
    table.add_column("Proposed cover", overflow="fold")
    for approval in pending:
        table.add_row(
            str(approval.entity_id),
            approval.title,
            approval.matched_author or "",
            approval.source_provider,
            str(approval.confidence),
            approval.proposed_cover_ref,
        )
    console.print(table)
    console.print(f"\n[dim]{len(pending)} pending approval(s)[/dim]")


@approvals.command("apply")
@click.argument("book_ids", nargs=-1, type=int)
@click.option("--all", "apply_all", is_flag=True, default=False, help="Apply every entry.")
@db_option
@approvals_file_option
def apply_command(
    book_ids: tuple[int, ...],
    apply_all: bool,
    db_path: Path | None,
    approvals_file: Path,
) -> None:
    """Apply approved covers for BOOK_IDS (or --all) and drop them from the report."""
    console = Console()
    if not book_ids and not apply_all:
        console.print("[red]Error:[/red] give one or more book IDs, or --all")
        raise SystemExit(1)

    pending = _load(console, approvals_file)
    if not pending:
        console.print("[green]No pending approvals.[/green]")
        return

    conn = open_catalog(db_path)
    try:
        result = apply_approvals(
            LibraryCatalog(conn),
            pending,
            create_validator(),
            selected=None if apply_all else set(book_ids),
        )
    finally:
        conn.close()

    write_report(approvals_file, result.remaining)
    parts = [f"[green]{result.applied} applied[/green]"]
    if result.rejected:
        parts.append(f"[red]{result.rejected} rejected[/red]")
    if result.missing:
        parts.append(f"[yellow]{result.missing} missing[/yellow]")
    parts.append(f"{len(result.remaining)} remaining")
    console.print(", ".join(parts))
