"""Persistent package cache for npmaudit.

The refresh pipeline talks to the cache through the
:class:`PackageCacheStore` protocol. Two implementations are provided:

* :class:`SQLitePackageStore` persists records in a local SQLite database
  and is shared by every run on the machine.
* :class:`MemoryPackageStore` keeps records in a dict for the lifetime of
  the process (``--no-cache`` runs and tests).

Both enforce a unique ``name`` and expose an ``upsert`` that is safe to
call concurrently for the same package.
"""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from npmaudit.exceptions import CacheStoreError
from npmaudit.models.package import PackageRecord, utcnow
from npmaudit.utils.logger import get_logger

logger = get_logger("cache_store")

__all__ = ["PackageCacheStore", "SQLitePackageStore", "MemoryPackageStore"]

_UPDATABLE_FIELDS = ("latest_version", "versions", "npm_page")


class PackageCacheStore(Protocol):
    """Record store keyed by package name."""

    async def find_by_name(self, name: str) -> Optional[PackageRecord]:
        ...

    async def find_by_ids(self, ids: Iterable[str]) -> List[PackageRecord]:
        ...

    async def create(
        self,
        name: str,
        latest_version: str,
        versions: Sequence[str],
        npm_page: Optional[str] = None,
    ) -> PackageRecord:
        ...

    async def update(self, name: str, **fields: Any) -> PackageRecord:
        ...

    async def upsert(
        self,
        name: str,
        latest_version: str,
        versions: Sequence[str],
        npm_page: Optional[str] = None,
    ) -> PackageRecord:
        ...


def _new_id() -> str:
    return uuid.uuid4().hex


def _check_fields(name: str, fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(_UPDATABLE_FIELDS)
    if unknown:
        raise CacheStoreError(
            f"Cannot update fields: {', '.join(sorted(unknown))}",
            package_name=name,
        )


# ---------------------------------------------------------------------------
# SQLite-backed store
# ---------------------------------------------------------------------------


_SCHEMA = """
CREATE TABLE IF NOT EXISTS packages (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    latest_version TEXT NOT NULL,
    versions TEXT NOT NULL DEFAULT '',
    npm_page TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

_COLUMNS = "id, name, latest_version, versions, npm_page, created_at, updated_at"


class SQLitePackageStore:
    """Package cache persisted in a SQLite database file.

    Every operation opens its own short-lived connection and runs in a
    worker thread, so concurrent resolutions never block the event loop.
    Versions are stored comma-joined.

    Args:
        db_path: Database file; parent directories are created. ``":memory:"``
            is not supported because each call uses a fresh connection.
        clock: Source of ``created_at`` / ``updated_at`` timestamps.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db_path = Path(db_path)
        self.clock = clock
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheStoreError(
                f"Cannot create package cache directory {self.db_path.parent}: {exc}",
                original_error=exc,
            ) from exc
        self._run(self._init_schema)

    # -- public async API ---------------------------------------------------

    async def find_by_name(self, name: str) -> Optional[PackageRecord]:
        return await asyncio.to_thread(self._run, self._find_by_name, name)

    async def find_by_ids(self, ids: Iterable[str]) -> List[PackageRecord]:
        return await asyncio.to_thread(self._run, self._find_by_ids, list(ids))

    async def create(
        self,
        name: str,
        latest_version: str,
        versions: Sequence[str],
        npm_page: Optional[str] = None,
    ) -> PackageRecord:
        return await asyncio.to_thread(
            self._run, self._create, name, latest_version, list(versions), npm_page
        )

    async def update(self, name: str, **fields: Any) -> PackageRecord:
        _check_fields(name, fields)
        return await asyncio.to_thread(self._run, self._update, name, fields)

    async def upsert(
        self,
        name: str,
        latest_version: str,
        versions: Sequence[str],
        npm_page: Optional[str] = None,
    ) -> PackageRecord:
        return await asyncio.to_thread(
            self._run, self._upsert, name, latest_version, list(versions), npm_page
        )

    # -- blocking helpers (run in a worker thread) --------------------------

    def _run(self, operation: Callable[..., Any], *args: Any) -> Any:
        """Run ``operation(conn, *args)`` in a committed transaction."""
        try:
            with closing(sqlite3.connect(self.db_path)) as conn:
                with conn:
                    return operation(conn, *args)
        except sqlite3.Error as exc:
            raise CacheStoreError(
                f"Package cache error: {exc}",
                original_error=exc,
            ) from exc

    @staticmethod
    def _init_schema(conn: sqlite3.Connection) -> None:
        conn.execute(_SCHEMA)

    def _find_by_name(
        self, conn: sqlite3.Connection, name: str
    ) -> Optional[PackageRecord]:
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM packages WHERE name = ?", (name,)
        ).fetchone()
        return _row_to_record(row) if row else None

    def _find_by_ids(
        self, conn: sqlite3.Connection, ids: List[str]
    ) -> List[PackageRecord]:
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM packages WHERE id IN ({placeholders})", ids
        ).fetchall()
        return [_row_to_record(row) for row in rows]

    def _create(
        self,
        conn: sqlite3.Connection,
        name: str,
        latest_version: str,
        versions: List[str],
        npm_page: Optional[str],
    ) -> PackageRecord:
        now = self.clock().isoformat()
        try:
            conn.execute(
                f"INSERT INTO packages ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (_new_id(), name, latest_version, ",".join(versions), npm_page, now, now),
            )
        except sqlite3.IntegrityError as exc:
            raise CacheStoreError(
                f"Package '{name}' is already cached",
                package_name=name,
                original_error=exc,
            ) from exc
        return self._find_by_name(conn, name)

    def _update(
        self, conn: sqlite3.Connection, name: str, fields: Dict[str, Any]
    ) -> PackageRecord:
        values = dict(fields)
        if "versions" in values:
            values["versions"] = ",".join(values["versions"])
        values["updated_at"] = self.clock().isoformat()

        assignments = ", ".join(f"{column} = ?" for column in values)
        cursor = conn.execute(
            f"UPDATE packages SET {assignments} WHERE name = ?",
            (*values.values(), name),
        )
        if cursor.rowcount == 0:
            raise CacheStoreError(
                f"Package '{name}' is not cached",
                package_name=name,
            )
        return self._find_by_name(conn, name)

    def _upsert(
        self,
        conn: sqlite3.Connection,
        name: str,
        latest_version: str,
        versions: List[str],
        npm_page: Optional[str],
    ) -> PackageRecord:
        now = self.clock().isoformat()
        conn.execute(
            f"""
            INSERT INTO packages ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                latest_version = excluded.latest_version,
                versions = excluded.versions,
                npm_page = excluded.npm_page,
                updated_at = excluded.updated_at
            """,
            (_new_id(), name, latest_version, ",".join(versions), npm_page, now, now),
        )
        return self._find_by_name(conn, name)


def _row_to_record(row: Sequence[Any]) -> PackageRecord:
    record_id, name, latest, versions, npm_page, created_at, updated_at = row
    return PackageRecord(
        id=record_id,
        name=name,
        latest_version=latest,
        versions=versions.split(",") if versions else [],
        npm_page=npm_page,
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
    )


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class MemoryPackageStore:
    """Dict-backed package cache with the same semantics as the SQLite store.

    Operations complete without awaiting anything, so no two coroutines
    can interleave inside one of them.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock
        self._records: Dict[str, PackageRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def find_by_name(self, name: str) -> Optional[PackageRecord]:
        return self._records.get(name)

    async def find_by_ids(self, ids: Iterable[str]) -> List[PackageRecord]:
        wanted = set(ids)
        return [r for r in self._records.values() if r.id in wanted]

    async def create(
        self,
        name: str,
        latest_version: str,
        versions: Sequence[str],
        npm_page: Optional[str] = None,
    ) -> PackageRecord:
        if name in self._records:
            raise CacheStoreError(
                f"Package '{name}' is already cached",
                package_name=name,
            )
        now = self.clock()
        record = PackageRecord(
            id=_new_id(),
            name=name,
            latest_version=latest_version,
            versions=list(versions),
            npm_page=npm_page,
            created_at=now,
            updated_at=now,
        )
        self._records[name] = record
        return record

    async def update(self, name: str, **fields: Any) -> PackageRecord:
        _check_fields(name, fields)
        existing = self._records.get(name)
        if existing is None:
            raise CacheStoreError(
                f"Package '{name}' is not cached",
                package_name=name,
            )
        if "versions" in fields:
            fields["versions"] = list(fields["versions"])
        record = PackageRecord(
            id=existing.id,
            name=name,
            latest_version=fields.get("latest_version", existing.latest_version),
            versions=fields.get("versions", existing.versions),
            npm_page=fields.get("npm_page", existing.npm_page),
            created_at=existing.created_at,
            updated_at=self.clock(),
        )
        self._records[name] = record
        return record

    async def upsert(
        self,
        name: str,
        latest_version: str,
        versions: Sequence[str],
        npm_page: Optional[str] = None,
    ) -> PackageRecord:
        if name in self._records:
            return await self.update(
                name,
                latest_version=latest_version,
                versions=versions,
                npm_page=npm_page,
            )
        return await self.create(name, latest_version, versions, npm_page)
