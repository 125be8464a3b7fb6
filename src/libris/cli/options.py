# ABOUTME: Shared Click options for Libris CLI commands.
# ABOUTME: Provides reusable decorators for the database, progress, and approval-report paths.

from pathlib import Path

import click

from libris.db.connection import DEFAULT_DATA_DIR, DEFAULT_DB_PATH

DEFAULT_PROGRESS_PATH = DEFAULT_DATA_DIR / "enrich-progress.json"
DEFAULT_APPROVALS_PATH = DEFAULT_DATA_DIR / "pending-approvals.json"

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    envvar="LIBRIS_DB",
    help=f"Path to catalog database (default: {DEFAULT_DB_PATH})",
)

progress_file_option = click.option(
    "--progress-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_PROGRESS_PATH,
    show_default=True,
    help="Where the resumable enrichment cursor is kept.",
)

approvals_file_option = click.option(
    "--approvals-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_APPROVALS_PATH,
    show_default=True,
    help="Pending-approval report for low-confidence cover replacements.",
)

dry_run_option = click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Show what would change without writing to the catalog.",
)

google_api_key_option = click.option(
    "--google-api-key",
    envvar="GOOGLE_BOOKS_API_KEY",
    default=None,
    help="Google Books API key (optional).",
)
