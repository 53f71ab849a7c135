"""
Unified data model exports for npmaudit.

Example:
    >>> from npmaudit.models import AuditEntry, PackageRecord
"""

from __future__ import annotations

from npmaudit.models.package import PackageRecord
from npmaudit.models.audit import (
    NOT_FOUND,
    AuditEntry,
    AuditInstance,
    AuditResult,
    DependencyDeclaration,
    ReportRecord,
    SavedReport,
)

__all__ = [
    "NOT_FOUND",
    "AuditEntry",
    "AuditInstance",
    "AuditResult",
    "DependencyDeclaration",
    "PackageRecord",
    "ReportRecord",
    "SavedReport",
]
