"""Report helpers for npmaudit.

Everything that happens to an :class:`AuditResult` after the pipeline has
produced it:

* narrowing it down with :func:`filter_entries`,
* turning a selection into an ``npm i`` command with
  :func:`npm_install_command`,
* saving the minimal replay key with :class:`ReportStore` and rebuilding
  the full report from the package cache with :func:`load_report`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from npmaudit.core.cache_store import PackageCacheStore
from npmaudit.exceptions import FileOperationError
from npmaudit.models.audit import (
    AuditEntry,
    AuditInstance,
    AuditResult,
    ReportRecord,
    SavedReport,
)
from npmaudit.utils.filesystem import safe_delete_file, safe_read_file, safe_write_file
from npmaudit.utils.logger import get_logger
from npmaudit.utils.semver import classify_delta

logger = get_logger("report")

__all__ = [
    "DEP_TYPES",
    "OUTDATED_FILTERS",
    "ReportStore",
    "build_saved_report",
    "filter_entries",
    "load_report",
    "npm_install_command",
]

DEP_TYPES = ("all", "dep", "dev")
OUTDATED_FILTERS = ("all", "outdated", "major", "minor", "patch")


# ---------------------------------------------------------------------------
# Filtering and upgrade command
# ---------------------------------------------------------------------------


def filter_entries(
    entries: Iterable[AuditEntry],
    *,
    dep_type: str = "all",
    outdated: str = "all",
) -> List[AuditEntry]:
    """Return the entries matching a dependency type and outdated filter.

    Args:
        entries: Entries to filter; order is preserved.
        dep_type: ``all``, ``dep`` (regular only) or ``dev``.
        outdated: ``all``, ``outdated`` (anything but ok), or one of
            ``major`` / ``minor`` / ``patch``.

    Raises:
        ValueError: Unknown filter value.
    """
    if dep_type not in DEP_TYPES:
        raise ValueError(f"Unknown dependency type filter: {dep_type}")
    if outdated not in OUTDATED_FILTERS:
        raise ValueError(f"Unknown outdated filter: {outdated}")

    result = list(entries)

    if dep_type == "dep":
        result = [e for e in result if not e.instance.is_dev]
    elif dep_type == "dev":
        result = [e for e in result if e.instance.is_dev]

    if outdated == "outdated":
        result = [e for e in result if e.is_outdated]
    elif outdated != "all":
        result = [e for e in result if e.instance.outdated == outdated]

    return result


def npm_install_command(entries: Iterable[AuditEntry]) -> str:
    """Build the ``npm i`` command that upgrades ``entries``.

    Regular and dev dependencies get separate installs joined with ``&&``.
    A package targeting its latest version is written ``name@latest``.

    Example::

        npm i react@latest lodash@4.17.20 && npm i -D eslint@latest
    """
    deps: List[str] = []
    dev_deps: List[str] = []

    for entry in entries:
        version = "latest" if entry.targets_latest else entry.instance.target_version
        spec = f"{entry.package_name}@{version}"
        (dev_deps if entry.instance.is_dev else deps).append(spec)

    commands = []
    if deps:
        commands.append(f"npm i {' '.join(deps)}")
    if dev_deps:
        commands.append(f"npm i -D {' '.join(dev_deps)}")
    return " && ".join(commands)


# ---------------------------------------------------------------------------
# Saved reports
# ---------------------------------------------------------------------------


def build_saved_report(result: AuditResult) -> SavedReport:
    """Reduce a result to ``(package_id, version, is_dev)`` tuples."""
    return SavedReport(
        name=result.project_name,
        records=[
            ReportRecord(
                package_id=entry.package.id if entry.package else None,
                version=entry.instance.version,
                is_dev=entry.instance.is_dev,
            )
            for entry in result.records
        ],
    )


async def load_report(saved: SavedReport, store: PackageCacheStore) -> AuditResult:
    """Rebuild a full report from a saved replay key.

    Packages are re-read from the cache by id; records whose package was
    never resolved are dropped. Outdated status is recomputed against the
    cached latest version and the target reset to it. Regular dependencies
    come first, then dev dependencies, each sorted by name.
    """
    by_id: Dict[str, ReportRecord] = {}
    for r in saved.records:
        if r.package_id:
            by_id.setdefault(r.package_id, r)
    packages = await store.find_by_ids(by_id)

    entries: List[AuditEntry] = []
    for package in packages:
        record = by_id[package.id]
        entries.append(
            AuditEntry(
                package_name=package.name,
                package=package,
                instance=AuditInstance(
                    is_dev=record.is_dev,
                    version=record.version,
                    target_version=package.latest_version,
                    outdated=classify_delta(record.version, package.latest_version),
                ),
            )
        )

    missing = len(by_id) - len(packages)
    if missing:
        logger.warning("%d saved package(s) are no longer in the cache", missing)

    entries.sort(key=lambda e: (e.instance.is_dev, e.package_name))
    return AuditResult(project_name=saved.name, records=entries)


class ReportStore:
    """JSON file holding the most recently saved report.

    Args:
        path: Location of the report file.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save(self, report: SavedReport) -> Path:
        """Write ``report``, replacing any previous one."""
        logger.debug("Saving report '%s' to %s", report.name, self.path)
        return safe_write_file(self.path, json.dumps(report.to_json(), indent=2))

    def load(self) -> Optional[SavedReport]:
        """Return the saved report, or ``None`` if there is none.

        Raises:
            FileOperationError: The file exists but is not a valid report.
        """
        if not self.path.exists():
            return None

        try:
            data = json.loads(safe_read_file(self.path))
        except json.JSONDecodeError as exc:
            raise FileOperationError(
                f"Saved report is corrupt: {exc.msg}",
                file_path=str(self.path),
                operation="read",
                original_error=exc,
            ) from exc

        if not isinstance(data, dict):
            raise FileOperationError(
                "Saved report is corrupt: expected a JSON object",
                file_path=str(self.path),
                operation="read",
            )
        return SavedReport.from_json(data)

    def clear(self) -> bool:
        """Forget the saved report. Returns True if one was removed."""
        return safe_delete_file(self.path)
