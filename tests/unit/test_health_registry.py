import asyncio
from datetime import datetime, timezone

import pytest

from image_relay.config.settings import Settings
from image_relay.database.repositories.health_repository import HealthRepository
from image_relay.health.base import BaseHealthStore
from image_relay.health.exceptions import HealthStoreError
from image_relay.health.factory import HealthStoreFactory
from image_relay.health.memory_store import InMemoryHealthStore
from image_relay.health.models import ProviderHealthRecord, rank_records
from image_relay.health.registry import ProviderHealthRegistry

PROVIDERS = ["imgbb", "cloudinary", "imgur", "postimage"]


def _record(
    name: str,
    *,
    active: bool = True,
    total: int = 10,
    successful: int = 10,
    latency: float | None = 100.0,
) -> ProviderHealthRecord:
    return ProviderHealthRecord(
        service_name=name,
        is_active=active,
        total_uploads=total,
        successful_uploads=successful,
        last_response_time_ms=latency,
    )


class SlowHealthStore(InMemoryHealthStore):
    """Yields between read and write so unsynchronised updates would interleave."""

    async def record_outcome(
        self,
        service_name: str,
        success: bool,
        response_time_ms: float,
        error_message: str | None = None,
    ) -> ProviderHealthRecord:
        current = self._records.get(service_name) or ProviderHealthRecord(service_name)
        await asyncio.sleep(0)
        updated = current.with_outcome(
            success=success,
            response_time_ms=response_time_ms,
            error_message=error_message,
            checked_at=datetime.now(timezone.utc),
        )
        self._records[service_name] = updated
        return updated


class BrokenHealthStore(BaseHealthStore):
    async def get_all(self) -> list[ProviderHealthRecord]:
        raise HealthStoreError("connection refused")

    async def get_active_ranked_by_performance(self) -> list[ProviderHealthRecord]:
        raise HealthStoreError("connection refused")

    async def record_outcome(
        self,
        service_name: str,
        success: bool,
        response_time_ms: float,
        error_message: str | None = None,
    ) -> ProviderHealthRecord:
        raise HealthStoreError("connection refused")


class TestProviderHealthRecord:
    def test_success_rate_zero_without_uploads(self) -> None:
        assert ProviderHealthRecord("imgbb").success_rate == 0.0

    def test_success_rate_is_percentage(self) -> None:
        assert _record("imgbb", total=4, successful=3).success_rate == 75.0

    def test_failure_outcome_updates_counters_and_error(self) -> None:
        now = datetime.now(timezone.utc)
        updated = _record("imgbb", total=2, successful=2).with_outcome(
            success=False, response_time_ms=42.0, error_message="HTTP 500", checked_at=now
        )
        assert updated.total_uploads == 3
        assert updated.successful_uploads == 2
        assert updated.is_active is False
        assert updated.last_error_message == "HTTP 500"
        assert updated.last_response_time_ms == 42.0
        assert updated.last_checked_at == now

    def test_success_outcome_clears_error(self) -> None:
        failed = ProviderHealthRecord("imgur", last_error_message="boom")
        updated = failed.with_outcome(
            success=True,
            response_time_ms=10.0,
            error_message=None,
            checked_at=datetime.now(timezone.utc),
        )
        assert updated.is_active is True
        assert updated.last_error_message is None


class TestRankRecords:
    def test_orders_by_success_rate(self) -> None:
        records = [
            _record("imgbb", total=10, successful=5),
            _record("cloudinary", total=10, successful=9),
        ]
        assert [r.service_name for r in rank_records(records)] == ["cloudinary", "imgbb"]

    def test_ties_broken_by_latency(self) -> None:
        records = [
            _record("imgbb", latency=500.0),
            _record("imgur", latency=120.0),
        ]
        assert [r.service_name for r in rank_records(records)] == ["imgur", "imgbb"]

    def test_unknown_latency_sorts_last(self) -> None:
        records = [_record("imgbb", latency=None), _record("imgur", latency=900.0)]
        assert [r.service_name for r in rank_records(records)] == ["imgur", "imgbb"]

    def test_excludes_inactive(self) -> None:
        records = [_record("imgbb", active=False), _record("imgur")]
        assert [r.service_name for r in rank_records(records)] == ["imgur"]


class TestRank:
    @pytest.mark.asyncio
    async def test_bootstrap_uses_declaration_order(self) -> None:
        registry = ProviderHealthRegistry(InMemoryHealthStore(), PROVIDERS)

        assert await registry.rank() == PROVIDERS

    @pytest.mark.asyncio
    async def test_is_deterministic_for_unchanged_store(self) -> None:
        store = InMemoryHealthStore(
            [
                _record("imgbb", total=10, successful=8, latency=300.0),
                _record("imgur", total=10, successful=8, latency=300.0),
                _record("cloudinary", total=5, successful=5, latency=900.0),
            ]
        )
        registry = ProviderHealthRegistry(store, PROVIDERS)

        first = await registry.rank()
        second = await registry.rank()

        assert first == second
        assert first[0] == "cloudinary"

    @pytest.mark.asyncio
    async def test_returns_only_active_providers(self) -> None:
        store = InMemoryHealthStore(
            [_record("imgbb", active=False), _record("postimage", latency=50.0)]
        )
        registry = ProviderHealthRegistry(store, PROVIDERS)

        assert await registry.rank() == ["postimage"]

    @pytest.mark.asyncio
    async def test_ignores_unconfigured_providers(self) -> None:
        store = InMemoryHealthStore([_record("retired"), _record("imgur")])
        registry = ProviderHealthRegistry(store, PROVIDERS)

        assert await registry.rank() == ["imgur"]

    @pytest.mark.asyncio
    async def test_falls_back_when_only_unconfigured_are_active(self) -> None:
        store = InMemoryHealthStore([_record("retired")])
        registry = ProviderHealthRegistry(store, ["imgbb", "imgur"])

        assert await registry.rank() == ["imgbb", "imgur"]

    @pytest.mark.asyncio
    async def test_rank_propagates_store_errors(self) -> None:
        registry = ProviderHealthRegistry(BrokenHealthStore(), PROVIDERS)

        with pytest.raises(HealthStoreError):
            await registry.rank()

    @pytest.mark.asyncio
    async def test_safe_rank_degrades_to_declaration_order(self) -> None:
        registry = ProviderHealthRegistry(BrokenHealthStore(), PROVIDERS)

        assert await registry.safe_rank() == PROVIDERS


class TestRecordOutcome:
    @pytest.mark.asyncio
    async def test_creates_record_on_first_outcome(self) -> None:
        registry = ProviderHealthRegistry(InMemoryHealthStore(), PROVIDERS)

        record = await registry.record_outcome("imgbb", True, 250.0)

        assert record.total_uploads == 1
        assert record.successful_uploads == 1
        assert record.is_active is True
        assert await registry.rank() == ["imgbb"]

    @pytest.mark.asyncio
    async def test_counters_stay_consistent(self) -> None:
        registry = ProviderHealthRegistry(InMemoryHealthStore(), PROVIDERS)
        outcomes = [True, False, True, True, False]

        for success in outcomes:
            record = await registry.record_outcome("imgur", success, 10.0, None if success else "x")
            assert 0 <= record.successful_uploads <= record.total_uploads

        assert record.total_uploads == 5
        assert record.successful_uploads == 3
        assert record.success_rate == 60.0
        assert record.is_active is False

    @pytest.mark.asyncio
    async def test_concurrent_outcomes_are_not_lost(self) -> None:
        registry = ProviderHealthRegistry(SlowHealthStore(), PROVIDERS)

        await asyncio.gather(
            *(registry.record_outcome("imgbb", i % 2 == 0, float(i)) for i in range(20))
        )

        (record,) = await registry.snapshot()
        assert record.total_uploads == 20
        assert record.successful_uploads == 10

    @pytest.mark.asyncio
    async def test_failure_deactivates_provider(self) -> None:
        store = InMemoryHealthStore([_record("imgbb"), _record("imgur")])
        registry = ProviderHealthRegistry(store, PROVIDERS)

        await registry.record_outcome("imgbb", False, 30000.0, "timed out")

        assert await registry.rank() == ["imgur"]

    @pytest.mark.asyncio
    async def test_snapshot_includes_unconfigured_records(self) -> None:
        store = InMemoryHealthStore([_record("retired"), _record("imgbb")])
        registry = ProviderHealthRegistry(store, PROVIDERS)

        names = [r.service_name for r in await registry.snapshot()]

        assert names == ["imgbb", "retired"]

    def test_provider_names_is_a_copy(self) -> None:
        registry = ProviderHealthRegistry(InMemoryHealthStore(), PROVIDERS)
        registry.provider_names.append("other")
        assert registry.provider_names == PROVIDERS


class TestHealthStoreFactory:
    def test_creates_memory_store(self) -> None:
        store = HealthStoreFactory.create(Settings(_env_file=None, health_store="memory"))
        assert isinstance(store, InMemoryHealthStore)

    def test_creates_postgres_repository(self) -> None:
        store = HealthStoreFactory.create(Settings(_env_file=None, health_store="POSTGRES"))
        assert isinstance(store, HealthRepository)

    def test_unknown_store_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown health store 'redis'"):
            HealthStoreFactory.create(Settings(_env_file=None, health_store="redis"))
