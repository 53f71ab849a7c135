"""
Cached registry record for an npm package.

A :class:`PackageRecord` is the last known registry state of one package.
Records live in the persistent cache store, keyed by ``name``, and are
shared by every audit run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from npmaudit.constants import CACHE_TTL


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PackageRecord:
    """
    Last known registry metadata for a package.

    Attributes:
        id: Store-assigned identifier, stable across refreshes.
        name: Package name as published (unique key).
        latest_version: The registry's ``dist-tags.latest``.
        versions: Up to 30 most recent versions, newest first.
        npm_page: Link to the package page on npmjs.com.
        created_at: When the record was first cached.
        updated_at: When the record was last refreshed from the registry.
    """

    id: str
    name: str
    latest_version: str
    versions: List[str] = field(default_factory=list)
    npm_page: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        """
        Check whether the record can be trusted without a registry fetch.

        Args:
            now: Reference time; defaults to the current UTC time.

        Returns:
            True if the record was refreshed less than 24 hours ago.
        """
        now = now or utcnow()
        return now - self.updated_at < CACHE_TTL

    def has_version(self, version: str) -> bool:
        """Return True if ``version`` is the latest or a cached version."""
        return version == self.latest_version or version in self.versions

    def to_json(self) -> Dict[str, Any]:
        """
        Serialize the record to a JSON-compatible dictionary.

        Returns:
            JSON-safe representation with ISO-8601 timestamps.
        """
        return {
            "id": self.id,
            "name": self.name,
            "latest_version": self.latest_version,
            "versions": list(self.versions),
            "npm_page": self.npm_page,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def __str__(self) -> str:
        return f"{self.name}@{self.latest_version}"
