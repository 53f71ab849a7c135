"""Show command implementation for npmaudit.

Replays the last report saved by ``npmaudit audit``. Only the package ids,
declared versions and dependency types were saved; package data is read
back from the persistent cache, so no network access is needed.

Typical usage::

    $ npmaudit show
    $ npmaudit show --outdated outdated --format json
    $ npmaudit show --clear
"""

from __future__ import annotations

import sys
import click
import asyncio

from npmaudit.context import pass_context, NpmAuditContext
from npmaudit.exceptions import NpmAuditError
from npmaudit.core import SQLitePackageStore, load_report
from npmaudit.core.report import DEP_TYPES, OUTDATED_FILTERS
from npmaudit.commands.audit import render_result, report_store
from npmaudit.utils import get_logger, print_error, print_success, print_warning

logger = get_logger("commands.show")


@click.command()
@click.option(
    "--type",
    "dep_type",
    type=click.Choice(DEP_TYPES, case_sensitive=False),
    default="all",
    help="Show regular dependencies, dev dependencies, or both.",
)
@click.option(
    "--outdated",
    type=click.Choice(OUTDATED_FILTERS, case_sensitive=False),
    default="all",
    help="Only show packages with this kind of drift.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.option(
    "--clear",
    is_flag=True,
    help="Forget the saved report instead of showing it.",
)
@pass_context
def show(
    ctx: NpmAuditContext,
    dep_type: str,
    outdated: str,
    format: str,
    clear: bool,
) -> None:
    """Show the last saved audit report."""
    store = report_store(ctx.config)

    try:
        if clear:
            if store.clear():
                print_success("Saved report cleared")
            else:
                print_warning("No saved report")
            return

        saved = store.load()
        if saved is None:
            print_warning("No saved report; run 'npmaudit audit' first")
            return

        logger.info("Loaded saved report '%s' from %s", saved.name, store.path)
        cache = SQLitePackageStore(ctx.config.cache_path)
        result = asyncio.run(load_report(saved, cache))
        render_result(result, dep_type=dep_type, outdated=outdated, format=format)

    except NpmAuditError as e:
        print_error(f"{e}")
        sys.exit(1)
