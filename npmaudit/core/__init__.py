"""
Core functionality exports for npmaudit.

Importing from here keeps user-facing imports clean and stable:

    from npmaudit.core import MetadataRefreshPipeline, parse_manifest
"""

from __future__ import annotations

from npmaudit.core.manifest import Manifest, load_manifest, parse_manifest
from npmaudit.core.registry import NpmRegistryClient, RegistryMetadata
from npmaudit.core.cache_store import (
    MemoryPackageStore,
    PackageCacheStore,
    SQLitePackageStore,
)
from npmaudit.core.pipeline import MetadataRefreshPipeline
from npmaudit.core.report import (
    ReportStore,
    build_saved_report,
    filter_entries,
    load_report,
    npm_install_command,
)

__all__ = [
    "Manifest",
    "load_manifest",
    "parse_manifest",
    "NpmRegistryClient",
    "RegistryMetadata",
    "PackageCacheStore",
    "SQLitePackageStore",
    "MemoryPackageStore",
    "MetadataRefreshPipeline",
    "ReportStore",
    "build_saved_report",
    "filter_entries",
    "load_report",
    "npm_install_command",
]
