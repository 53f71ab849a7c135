"""Metadata refresh pipeline for npmaudit.

Resolves declared dependencies to :class:`AuditEntry` objects. Each package
is served from the persistent cache while its record is younger than 24
hours, and refreshed from the npm registry otherwise. Registry lookups run
in fixed-size batches: every name in a batch is resolved concurrently, and
the next batch starts only once the whole batch has finished.

A registry failure (network error, malformed document, deadline) never
fails the audit; the package is reported as "Not Found" instead. Cache
store failures are not recovered.

Typical usage::

    async with HTTPClient() as http:
        pipeline = MetadataRefreshPipeline(
            SQLitePackageStore(cache_path),
            NpmRegistryClient(http),
        )
        result = await pipeline.audit(parse_manifest(text))
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence

from npmaudit.constants import DEFAULT_BATCH_SIZE, MAX_CACHED_VERSIONS
from npmaudit.core.cache_store import PackageCacheStore
from npmaudit.core.manifest import Manifest
from npmaudit.core.registry import NpmRegistryClient, RegistryMetadata
from npmaudit.exceptions import RegistryError
from npmaudit.models.audit import AuditEntry, AuditInstance, AuditResult
from npmaudit.models.package import PackageRecord, utcnow
from npmaudit.utils.logger import get_logger
from npmaudit.utils.semver import classify_delta

logger = get_logger("pipeline")

__all__ = ["MetadataRefreshPipeline", "partition"]


class MetadataRefreshPipeline:
    """Cache-aware, batched resolver of declared dependencies.

    Args:
        store: Persistent package cache.
        registry: npm registry client.
        batch_size: Number of names resolved concurrently per batch.
        resolve_timeout: Optional deadline in seconds for each registry
            fetch. A fetch that misses it is treated as a failed fetch.
        max_versions: Number of most recent versions kept per record.
        clock: Returns the current UTC time; used for cache freshness.

    Raises:
        ValueError: If ``batch_size`` is smaller than 1.
    """

    def __init__(
        self,
        store: PackageCacheStore,
        registry: NpmRegistryClient,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        resolve_timeout: Optional[float] = None,
        max_versions: int = MAX_CACHED_VERSIONS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        _check_batch_size(batch_size)
        self.store = store
        self.registry = registry
        self.batch_size = batch_size
        self.resolve_timeout = resolve_timeout
        self.max_versions = max_versions
        self.clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def audit(self, manifest: Manifest) -> AuditResult:
        """Resolve a whole manifest.

        Regular dependencies come first, then dev dependencies, each in
        declaration order.
        """
        logger.info(
            "Auditing %s (%d packages)", manifest.name, len(manifest)
        )
        records = await self.resolve_all(manifest.dependencies, is_dev=False)
        records += await self.resolve_all(manifest.dev_dependencies, is_dev=True)
        return AuditResult(project_name=manifest.name, records=records)

    async def resolve_all(
        self,
        declarations: Mapping[str, str],
        is_dev: bool,
        batch_size: Optional[int] = None,
    ) -> List[AuditEntry]:
        """Resolve ``name -> range`` declarations in sequential batches.

        At most ``batch_size`` resolutions are in flight at any time. The
        result has one entry per declaration, in declaration order.
        """
        size = self.batch_size if batch_size is None else batch_size
        _check_batch_size(size)

        entries: List[AuditEntry] = []
        batches = partition(list(declarations), size)

        for number, batch in enumerate(batches, start=1):
            logger.info(
                "Resolving batch %d/%d (%d %s packages)",
                number,
                len(batches),
                len(batch),
                "dev" if is_dev else "regular",
            )
            entries.extend(
                await asyncio.gather(
                    *(self.resolve(name, declarations[name], is_dev) for name in batch)
                )
            )

        return entries

    async def resolve(
        self,
        name: str,
        version_range: str,
        is_dev: bool,
    ) -> AuditEntry:
        """Resolve one declared dependency.

        Serves a fresh cached record directly. Otherwise fetches from the
        registry and upserts the cache once; if the fetch fails the entry
        is returned without a package.
        """
        record = await self.store.find_by_name(name)

        if record is not None and record.is_fresh(self.clock()):
            logger.debug("Cache hit for %s (updated %s)", name, record.updated_at)
            return _build_entry(name, version_range, is_dev, record)

        logger.debug("Cache %s for %s", "stale" if record else "miss", name)

        metadata = await self._fetch(name)
        if metadata is None:
            return AuditEntry(
                package_name=name,
                package=None,
                instance=AuditInstance(
                    is_dev=is_dev,
                    version=version_range,
                    target_version=version_range,
                ),
            )

        record = await self.store.upsert(
            name,
            latest_version=metadata.latest_version,
            versions=metadata.versions_newest_first[: self.max_versions],
            npm_page=metadata.page,
        )
        return _build_entry(name, version_range, is_dev, record)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch(self, name: str) -> Optional[RegistryMetadata]:
        """Fetch registry metadata, or ``None`` if it is unavailable."""
        try:
            if self.resolve_timeout is None:
                return await self.registry.fetch_metadata(name)
            return await asyncio.wait_for(
                self.registry.fetch_metadata(name),
                timeout=self.resolve_timeout,
            )
        except RegistryError as exc:
            logger.warning("Could not fetch '%s' from the registry: %s", name, exc)
        except asyncio.TimeoutError:
            logger.warning(
                "Registry lookup for '%s' exceeded %.1fs", name, self.resolve_timeout
            )
        return None


def partition(names: Sequence[str], size: int) -> List[List[str]]:
    """Split ``names`` into consecutive slices of at most ``size``.

    Example::

        >>> partition(["a", "b", "c"], 2)
        [['a', 'b'], ['c']]
    """
    _check_batch_size(size)
    return [list(names[i : i + size]) for i in range(0, len(names), size)]


def _check_batch_size(size: int) -> None:
    if size < 1:
        raise ValueError(f"batch_size must be at least 1, got {size}")


def _build_entry(
    name: str,
    version_range: str,
    is_dev: bool,
    record: PackageRecord,
) -> AuditEntry:
    return AuditEntry(
        package_name=name,
        package=record,
        instance=AuditInstance(
            is_dev=is_dev,
            version=version_range,
            target_version=record.latest_version,
            outdated=classify_delta(version_range, record.latest_version),
        ),
    )
