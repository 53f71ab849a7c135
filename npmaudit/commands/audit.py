"""Audit command implementation for npmaudit.

Reads a ``package.json`` manifest, resolves every dependency through the
metadata refresh pipeline and prints the outdated-dependency report along
with the ``npm i`` command that upgrades the outdated packages shown.

The command wires together:

1. :func:`~npmaudit.core.manifest.load_manifest` for the input,
2. a package cache (:class:`SQLitePackageStore`, or
   :class:`MemoryPackageStore` with ``--no-cache``),
3. :class:`MetadataRefreshPipeline` for the lookups,
4. :class:`ReportStore` to remember the report for ``npmaudit show``.

Typical usage::

    $ npmaudit audit package.json
    $ npmaudit audit --outdated major --type dep
    $ cat package.json | npmaudit audit - --format json
    $ npmaudit audit --target react@17.0.2
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from npmaudit.config import NpmAuditConfig
from npmaudit.constants import SAVED_REPORT_FILENAME
from npmaudit.context import pass_context, NpmAuditContext
from npmaudit.exceptions import NpmAuditError
from npmaudit.models import NOT_FOUND, AuditEntry, AuditResult
from npmaudit.core import (
    Manifest,
    MemoryPackageStore,
    MetadataRefreshPipeline,
    NpmRegistryClient,
    PackageCacheStore,
    ReportStore,
    SQLitePackageStore,
    build_saved_report,
    filter_entries,
    load_manifest,
    npm_install_command,
    parse_manifest,
)
from npmaudit.core.report import DEP_TYPES, OUTDATED_FILTERS
from npmaudit.utils import (
    HTTPClient,
    get_logger,
    print_error,
    print_success,
    print_warning,
    colorize_outdated,
    not_found_marker,
    print_audit_table,
    print_upgrade_command,
)

logger = get_logger("commands.audit")


@click.command()
@click.argument(
    "manifest",
    type=click.Path(dir_okay=False, allow_dash=True, path_type=Path),
    default="package.json",
)
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
    "--batch-size",
    type=click.IntRange(min=1),
    default=None,
    help="Registry lookups per batch (overrides config).",
)
@click.option(
    "--no-cache",
    is_flag=True,
    help="Use a throwaway in-memory cache instead of the persistent one.",
)
@click.option(
    "--target",
    "targets",
    multiple=True,
    metavar="NAME@VERSION",
    help="Upgrade NAME to VERSION instead of the latest (repeatable).",
)
@click.option(
    "--save/--no-save",
    default=True,
    help="Remember this report for 'npmaudit show'.",
)
@pass_context
def audit(
    ctx: NpmAuditContext,
    manifest: Path,
    dep_type: str,
    outdated: str,
    format: str,
    batch_size: Optional[int],
    no_cache: bool,
    targets: Tuple[str, ...],
    save: bool,
) -> None:
    """Report outdated dependencies of a package.json MANIFEST.

    Use ``-`` to read the manifest from standard input.
    """
    try:
        parsed = _read_manifest(manifest)
        result = asyncio.run(
            _audit_async(
                ctx.config,
                parsed,
                batch_size=batch_size,
                no_cache=no_cache,
            )
        )
        result.records = apply_targets(result.records, targets)

        if save and not no_cache:
            report_store(ctx.config).save(build_saved_report(result))

        render_result(result, dep_type=dep_type, outdated=outdated, format=format)

    except NpmAuditError as e:
        print_error(f"{e}")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def _read_manifest(path: Path) -> Manifest:
    if str(path) == "-":
        text = click.get_text_stream("stdin").read()
        return parse_manifest(text, source="<stdin>")
    return load_manifest(path)


async def _audit_async(
    config: NpmAuditConfig,
    manifest: Manifest,
    *,
    batch_size: Optional[int],
    no_cache: bool,
) -> AuditResult:
    """Run the refresh pipeline over ``manifest``."""
    size = batch_size or config.batch_size
    store: PackageCacheStore = (
        MemoryPackageStore() if no_cache else SQLitePackageStore(config.cache_path)
    )
    logger.info(
        "Using %s package cache",
        "in-memory" if no_cache else str(config.cache_path),
    )

    async with HTTPClient(max_concurrency=size) as http:
        pipeline = MetadataRefreshPipeline(
            store,
            NpmRegistryClient(http, config.registry_url),
            batch_size=size,
            resolve_timeout=config.resolve_timeout,
        )
        return await pipeline.audit(manifest)


def report_store(config: NpmAuditConfig) -> ReportStore:
    """Return the saved-report store that lives next to the package cache."""
    return ReportStore(config.cache_path.parent / SAVED_REPORT_FILENAME)


def parse_target(spec: str) -> Tuple[str, str]:
    """Split ``name@version`` (scoped names allowed) into its parts.

    Raises:
        click.BadParameter: ``spec`` has no version part.
    """
    name, sep, version = spec.rpartition("@")
    if not sep or not name or not version:
        raise click.BadParameter(
            f"expected NAME@VERSION, got '{spec}'", param_hint="--target"
        )
    return name, version


def apply_targets(
    entries: List[AuditEntry], targets: Sequence[str]
) -> List[AuditEntry]:
    """Return ``entries`` with user-selected target versions applied."""
    chosen = dict(parse_target(spec) for spec in targets)
    known = {entry.package_name for entry in entries}

    for name in chosen.keys() - known:
        print_warning(f"--target {name}: package is not in the manifest")

    return [
        entry.with_target(chosen[entry.package_name])
        if entry.package_name in chosen
        else entry
        for entry in entries
    ]


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def render_result(
    result: AuditResult,
    *,
    dep_type: str = "all",
    outdated: str = "all",
    format: str = "table",
) -> None:
    """Filter ``result`` and print it with its upgrade command."""
    entries = filter_entries(result.records, dep_type=dep_type, outdated=outdated)
    upgrades = [e for e in entries if e.found and (e.is_outdated or not e.targets_latest)]
    command = npm_install_command(upgrades)

    if format == "json":
        data = AuditResult(result.project_name, entries).to_json()
        data["install_command"] = command
        click.echo(json.dumps(data, indent=2))
        return

    if not entries:
        print_success("No packages match the current filters")
        return

    print_audit_table(result.project_name, [_create_table_row(e) for e in entries])

    if result.not_found_count:
        print_warning(f"{result.not_found_count} package(s) could not be resolved")
    print_upgrade_command(command)


def _create_table_row(entry: AuditEntry) -> Dict[str, str]:
    """Build a Rich-formatted table row for one entry."""
    dep_type = "dev" if entry.instance.is_dev else "dep"

    if entry.package is None:
        return {
            "Package": entry.package_name,
            "Type": dep_type,
            "Declared": entry.instance.version,
            "Latest": not_found_marker(NOT_FOUND),
            "Target": "-",
            "Outdated": "-",
            "Link": not_found_marker(NOT_FOUND),
        }

    return {
        "Package": entry.package_name,
        "Type": dep_type,
        "Declared": entry.instance.version,
        "Latest": entry.package.latest_version,
        "Target": entry.instance.target_version,
        "Outdated": colorize_outdated(entry.instance.outdated),
        "Link": entry.package.npm_page or "-",
    }
