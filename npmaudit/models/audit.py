"""
Audit data model for npmaudit.

This module defines the values that flow through an audit: the declared
dependencies read from a manifest, the per-package audit entries produced
by the refresh pipeline, and the minimal replay key used to persist a
report between sessions.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from npmaudit.constants import DEFAULT_PROJECT_NAME
from npmaudit.exceptions import NpmAuditError
from npmaudit.models.package import PackageRecord
from npmaudit.utils.semver import Outdated, is_outdated

#: Label shown in place of version data for unresolved packages.
NOT_FOUND = "Not Found"


@dataclass(frozen=True)
class DependencyDeclaration:
    """A single ``name: range`` pair from a manifest section.

    Attributes:
        name: Package name.
        version_range: Version range as written, e.g. ``^1.2.3``.
        is_dev: True when declared under ``devDependencies``.
    """

    name: str
    version_range: str
    is_dev: bool = False


@dataclass(frozen=True)
class AuditInstance:
    """How the audited project uses a package.

    Attributes:
        is_dev: True for dev dependencies.
        version: Declared version range.
        target_version: Version to upgrade to; defaults to the latest.
        outdated: Drift between ``version`` and the latest version.
    """

    is_dev: bool
    version: str
    target_version: str
    outdated: Outdated = "ok"


@dataclass(frozen=True)
class AuditEntry:
    """Outcome of resolving one declared dependency.

    ``package`` is ``None`` only when neither the cache nor the registry
    could provide data; such entries are always ``outdated == "ok"``.
    """

    package_name: str
    package: Optional[PackageRecord]
    instance: AuditInstance

    @property
    def found(self) -> bool:
        """True if registry data is available for this entry."""
        return self.package is not None

    @property
    def is_outdated(self) -> bool:
        """True if the declared version lags behind the latest."""
        return is_outdated(self.instance.outdated)

    @property
    def targets_latest(self) -> bool:
        """True if the selected target is the package's latest version."""
        return (
            self.package is not None
            and self.package.latest_version == self.instance.target_version
        )

    def with_target(self, version: str) -> "AuditEntry":
        """Return a copy of this entry upgrading to ``version``.

        Raises:
            NpmAuditError: The package is unresolved or ``version`` is not
                among its cached versions.
        """
        if self.package is None:
            raise NpmAuditError(
                f"Cannot select a target for unresolved package '{self.package_name}'",
                {"package": self.package_name},
            )
        if not self.package.has_version(version):
            raise NpmAuditError(
                f"Unknown version '{version}' for package '{self.package_name}'",
                {"package": self.package_name, "version": version},
            )
        return replace(self, instance=replace(self.instance, target_version=version))

    def to_json(self) -> Dict[str, Any]:
        """Serialize the entry to a JSON-compatible dictionary."""
        return {
            "package_name": self.package_name,
            "package": self.package.to_json() if self.package else None,
            "instance": {
                "is_dev": self.instance.is_dev,
                "version": self.instance.version,
                "target_version": self.instance.target_version,
                "outdated": self.instance.outdated,
            },
        }


@dataclass
class AuditResult:
    """A complete report: the project name and its ordered entries."""

    project_name: str = DEFAULT_PROJECT_NAME
    records: List[AuditEntry] = field(default_factory=list)

    @property
    def outdated_count(self) -> int:
        return sum(1 for entry in self.records if entry.is_outdated)

    @property
    def not_found_count(self) -> int:
        return sum(1 for entry in self.records if not entry.found)

    def to_json(self) -> Dict[str, Any]:
        return {
            "project_name": self.project_name,
            "records": [entry.to_json() for entry in self.records],
        }


@dataclass(frozen=True)
class ReportRecord:
    """Minimal replay key for one entry of a saved report."""

    package_id: Optional[str]
    version: str
    is_dev: bool

    def to_json(self) -> Dict[str, Any]:
        return {
            "package_id": self.package_id,
            "version": self.version,
            "is_dev": self.is_dev,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ReportRecord":
        return cls(
            package_id=data.get("package_id"),
            version=str(data.get("version", "Unknown")),
            is_dev=bool(data.get("is_dev", False)),
        )


@dataclass
class SavedReport:
    """A report reduced to what is needed to rebuild it from the cache."""

    name: str
    records: List[ReportRecord] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "records": [record.to_json() for record in self.records],
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SavedReport":
        return cls(
            name=str(data.get("name", DEFAULT_PROJECT_NAME)),
            records=[ReportRecord.from_json(r) for r in data.get("records", [])],
        )
