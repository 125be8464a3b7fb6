# ABOUTME: CLI package for Libris, built on Click.
# ABOUTME: Defines the root command group, installs Rich logging, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from libris.cli.commands import (
    approvals_cmd,
    covers_cmd,
    enrich_cmd,
    import_cmd,
    merge_cmd,
)


def setup_logging(verbose: bool) -> None:
    """Route the libris loggers through Rich; -v shows DEBUG output."""
    logger = logging.getLogger("libris")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(show_path=False, rich_tracebacks=True, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)


@click.group()
@click.version_option(package_name="libris")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Libris - build and enrich a personal book catalog."""
    setup_logging(verbose)


cli.add_command(import_cmd.import_command)
cli.add_command(enrich_cmd.enrich)
cli.add_command(enrich_cmd.enrich_authors)
cli.add_command(covers_cmd.audit_covers_command)
cli.add_command(merge_cmd.merge_authors)
cli.add_command(merge_cmd.merge_series)
cli.add_command(approvals_cmd.approvals)
