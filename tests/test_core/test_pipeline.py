"""Unit tests for npmaudit.core.pipeline.

Test Coverage:
- Cache hits, misses and stale records
- Upsert of refreshed metadata and version truncation
- Batch partitioning and the in-flight bound
- Registry failures and deadlines turning into "Not Found" entries
- Whole-manifest audits, including a repeat audit served from the cache
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from npmaudit.core.cache_store import MemoryPackageStore
from npmaudit.core.manifest import parse_manifest
from npmaudit.core.pipeline import MetadataRefreshPipeline, partition
from npmaudit.core.registry import NpmRegistryClient, RegistryMetadata
from npmaudit.exceptions import CacheStoreError, RegistryError
from npmaudit.utils.http import HTTPClient


# ============================================================================
# Fixtures
# ============================================================================


class FakeClock:
    """Manually advanced UTC clock shared by the store and the pipeline."""

    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeRegistry:
    """Registry double that records calls and the peak number in flight."""

    def __init__(self, latest: Dict[str, str], delay: float = 0.0) -> None:
        self.latest = latest
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def fetch_metadata(self, name: str) -> RegistryMetadata:
        self.calls.append(name)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if name not in self.latest:
                raise RegistryError(f"Resource not found: {name}", package_name=name)
            latest = self.latest[name]
            return RegistryMetadata(
                latest_version=latest,
                versions_newest_first=[latest, "0.0.2", "0.0.1"],
                page=f"https://www.npmjs.com/package/{name}",
            )
        finally:
            self.in_flight -= 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryPackageStore:
    return MemoryPackageStore(clock=clock)


def _pipeline(
    store: MemoryPackageStore,
    registry: object,
    clock: FakeClock,
    **kwargs: object,
) -> MetadataRefreshPipeline:
    return MetadataRefreshPipeline(store, registry, clock=clock, **kwargs)  # type: ignore[arg-type]


# ============================================================================
# partition
# ============================================================================


@pytest.mark.unit
class TestPartition:
    def test_splits_into_consecutive_slices(self) -> None:
        assert partition(["a", "b", "c", "d", "e"], 2) == [["a", "b"], ["c", "d"], ["e"]]

    def test_exact_multiple(self) -> None:
        assert partition(list("abcd"), 2) == [["a", "b"], ["c", "d"]]

    def test_empty_input(self) -> None:
        assert partition([], 10) == []

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            partition(["a"], 0)


# ============================================================================
# resolve
# ============================================================================


@pytest.mark.unit
class TestResolve:
    """Tests for MetadataRefreshPipeline.resolve."""

    @pytest.mark.asyncio
    async def test_fresh_record_skips_registry(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        await store.create("react", "18.2.0", ["18.2.0"], "page")
        clock.advance(hours=23)
        registry = FakeRegistry({"react": "99.0.0"})

        entry = await _pipeline(store, registry, clock).resolve("react", "^16.0.0", False)

        assert registry.calls == []
        assert entry.package.latest_version == "18.2.0"
        assert entry.instance.target_version == "18.2.0"
        assert entry.instance.outdated == "major"

    @pytest.mark.asyncio
    async def test_miss_fetches_once_and_upserts(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        registry = FakeRegistry({"left-pad": "1.3.0"})

        entry = await _pipeline(store, registry, clock).resolve("left-pad", "^1.0.0", True)

        assert registry.calls == ["left-pad"]
        cached = await store.find_by_name("left-pad")
        assert cached is not None
        assert cached.updated_at == clock.now
        assert entry.package == cached
        assert entry.instance.is_dev is True
        assert entry.instance.outdated == "minor"

    @pytest.mark.asyncio
    async def test_stale_record_is_refreshed_in_place(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        original = await store.create("react", "17.0.2", ["17.0.2"])
        clock.advance(hours=24)
        registry = FakeRegistry({"react": "18.2.0"})

        entry = await _pipeline(store, registry, clock).resolve("react", "^17.0.0", False)

        assert registry.calls == ["react"]
        assert entry.package.id == original.id
        assert entry.package.latest_version == "18.2.0"
        assert entry.package.updated_at == clock.now
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_versions_truncated_to_max(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        registry = MagicMock(spec=NpmRegistryClient)
        registry.fetch_metadata = AsyncMock(
            return_value=RegistryMetadata(
                latest_version="40.0.0",
                versions_newest_first=[f"{n}.0.0" for n in range(40, 0, -1)],
                page="page",
            )
        )

        entry = await _pipeline(store, registry, clock).resolve("big", "1.0.0", False)

        assert len(entry.package.versions) == 30
        assert entry.package.versions[0] == "40.0.0"

    @pytest.mark.asyncio
    async def test_registry_failure_gives_not_found_entry(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        registry = FakeRegistry({})

        entry = await _pipeline(store, registry, clock).resolve("ghost", "^2.0.0", False)

        assert entry.package is None
        assert entry.found is False
        assert entry.instance.version == "^2.0.0"
        assert entry.instance.target_version == "^2.0.0"
        assert entry.instance.outdated == "ok"
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_stale_record_kept_when_refresh_fails(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        """Test a failed refresh leaves the stale record untouched."""
        original = await store.create("react", "17.0.2", ["17.0.2"])
        clock.advance(days=2)

        entry = await _pipeline(store, FakeRegistry({}), clock).resolve(
            "react", "^17.0.0", False
        )

        assert entry.package is None
        assert await store.find_by_name("react") == original

    @pytest.mark.asyncio
    async def test_deadline_exceeded_gives_not_found_entry(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        registry = FakeRegistry({"slow": "1.0.0"}, delay=1.0)

        entry = await _pipeline(
            store, registry, clock, resolve_timeout=0.01
        ).resolve("slow", "1.0.0", False)

        assert entry.package is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, clock: FakeClock) -> None:
        store = MagicMock()
        store.find_by_name = AsyncMock(side_effect=CacheStoreError("disk I/O error"))

        with pytest.raises(CacheStoreError):
            await _pipeline(store, FakeRegistry({}), clock).resolve("a", "1.0.0", False)


# ============================================================================
# resolve_all
# ============================================================================


@pytest.mark.unit
class TestResolveAll:
    """Tests for MetadataRefreshPipeline.resolve_all."""

    @pytest.mark.asyncio
    async def test_one_entry_per_declaration_in_order(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        names = [f"pkg-{i}" for i in range(23)]
        registry = FakeRegistry({n: "1.0.0" for n in names if n != "pkg-7"})
        declarations = {n: "^1.0.0" for n in names}

        entries = await _pipeline(store, registry, clock).resolve_all(
            declarations, is_dev=False
        )

        assert [e.package_name for e in entries] == names
        assert sum(1 for e in entries if not e.found) == 1
        assert entries[7].package is None

    @pytest.mark.asyncio
    async def test_at_most_batch_size_in_flight(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        names = [f"pkg-{i}" for i in range(25)]
        registry = FakeRegistry({n: "1.0.0" for n in names}, delay=0.01)

        await _pipeline(store, registry, clock, batch_size=10).resolve_all(
            {n: "1.0.0" for n in names}, is_dev=False
        )

        assert len(registry.calls) == 25
        assert registry.peak_in_flight == 10

    @pytest.mark.asyncio
    async def test_batches_run_sequentially(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        """Test a batch starts only after every lookup of the previous one."""
        names = [f"pkg-{i}" for i in range(7)]
        registry = FakeRegistry({n: "1.0.0" for n in names}, delay=0.01)
        batch_sizes = []
        real_gather = asyncio.gather

        def counting_gather(*aws: object, **kwargs: object):  # type: ignore[no-untyped-def]
            batch_sizes.append(len(aws))
            return real_gather(*aws, **kwargs)

        pipeline = _pipeline(store, registry, clock, batch_size=3)
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("npmaudit.core.pipeline.asyncio.gather", counting_gather)
            await pipeline.resolve_all({n: "1.0.0" for n in names}, is_dev=False)

        assert batch_sizes == [3, 3, 1]
        assert registry.peak_in_flight == 3

    @pytest.mark.asyncio
    async def test_batch_size_override(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        names = [f"pkg-{i}" for i in range(6)]
        registry = FakeRegistry({n: "1.0.0" for n in names}, delay=0.01)

        await _pipeline(store, registry, clock).resolve_all(
            {n: "1.0.0" for n in names}, is_dev=False, batch_size=2
        )

        assert registry.peak_in_flight == 2

    @pytest.mark.asyncio
    async def test_empty_declarations(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        entries = await _pipeline(store, FakeRegistry({}), clock).resolve_all(
            {}, is_dev=True
        )

        assert entries == []

    def test_rejects_invalid_batch_size(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            _pipeline(store, FakeRegistry({}), clock, batch_size=0)

    @pytest.mark.asyncio
    async def test_transport_errors_give_not_found_entries(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        """Test a dropped connection fails only the affected lookups."""
        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request, patch(
            "npmaudit.utils.http.asyncio.sleep", new_callable=AsyncMock
        ):
            mock_request.side_effect = httpx.RemoteProtocolError(
                "Server disconnected without sending a response."
            )
            async with HTTPClient(max_retries=1) as http:
                pipeline = _pipeline(store, NpmRegistryClient(http), clock)
                entries = await pipeline.resolve_all(
                    {"left-pad": "1.0.0", "eslint": "^7.0.0"}, is_dev=False
                )

        assert [e.package_name for e in entries] == ["left-pad", "eslint"]
        assert all(e.package is None for e in entries)
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_rate_limit_with_http_date_gives_not_found_entries(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        rate_limited = MagicMock(spec=httpx.Response)
        rate_limited.status_code = 429
        rate_limited.headers = {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}

        with patch.object(
            httpx.AsyncClient, "request", new_callable=AsyncMock
        ) as mock_request, patch(
            "npmaudit.utils.http.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            mock_request.return_value = rate_limited
            async with HTTPClient() as http:
                pipeline = _pipeline(store, NpmRegistryClient(http), clock)
                entries = await pipeline.resolve_all(
                    {"left-pad": "1.0.0", "eslint": "^7.0.0"}, is_dev=False
                )

        assert all(not e.found for e in entries)
        assert all(call.args == (0.0,) for call in mock_sleep.await_args_list)


# ============================================================================
# audit
# ============================================================================


@pytest.mark.unit
class TestAudit:
    """End-to-end audits over an in-memory cache."""

    MANIFEST = """
    {
        "name": "demo",
        "dependencies": {"left-pad": "^1.0.0"},
        "devDependencies": {"eslint": "^8.0.0"}
    }
    """

    @pytest.mark.asyncio
    async def test_audit_manifest(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        registry = FakeRegistry({"left-pad": "1.3.0", "eslint": "9.1.0"})

        result = await _pipeline(store, registry, clock).audit(
            parse_manifest(self.MANIFEST)
        )

        assert result.project_name == "demo"
        left_pad, eslint = result.records
        assert (left_pad.package_name, left_pad.instance.is_dev) == ("left-pad", False)
        assert left_pad.instance.outdated == "minor"
        assert left_pad.instance.target_version == "1.3.0"
        assert (eslint.package_name, eslint.instance.is_dev) == ("eslint", True)
        assert eslint.instance.outdated == "major"
        assert sorted(registry.calls) == ["eslint", "left-pad"]

    @pytest.mark.asyncio
    async def test_repeat_audit_within_a_day_uses_cache(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        registry = FakeRegistry({"left-pad": "1.3.0", "eslint": "9.1.0"})
        pipeline = _pipeline(store, registry, clock)
        manifest = parse_manifest(self.MANIFEST)

        first = await pipeline.audit(manifest)
        registry.calls.clear()
        clock.advance(hours=12)
        second = await pipeline.audit(manifest)

        assert registry.calls == []
        assert [e.to_json() for e in second.records] == [
            e.to_json() for e in first.records
        ]

    @pytest.mark.asyncio
    async def test_repeat_audit_after_a_day_refreshes(
        self, store: MemoryPackageStore, clock: FakeClock
    ) -> None:
        registry = FakeRegistry({"left-pad": "1.3.0", "eslint": "9.1.0"})
        pipeline = _pipeline(store, registry, clock)
        manifest = parse_manifest(self.MANIFEST)

        await pipeline.audit(manifest)
        registry.calls.clear()
        clock.advance(hours=25)
        await pipeline.audit(manifest)

        assert sorted(registry.calls) == ["eslint", "left-pad"]
        assert len(store) == 2
