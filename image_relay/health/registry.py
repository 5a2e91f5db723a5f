import asyncio
from collections import defaultdict

from image_relay.health.base import BaseHealthStore
from image_relay.health.exceptions import HealthStoreError
from image_relay.health.models import ProviderHealthRecord, rank_records
from image_relay.logging.logger import Log


class ProviderHealthRegistry:
    """Ranks configured providers by observed health and records attempt outcomes.

    The registry is shared by every concurrent upload; outcomes for the same
    provider are applied one at a time.
    """

    def __init__(self, store: BaseHealthStore, provider_names: list[str]) -> None:
        self._store = store
        self._provider_names = list(provider_names)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def provider_names(self) -> list[str]:
        return list(self._provider_names)

    async def rank(self) -> list[str]:
        """Active configured providers, best first.

        Falls back to declaration order when no configured provider is active.

        Raises:
            HealthStoreError: if the store cannot be read.
        """
        records = rank_records(await self._store.get_active_ranked_by_performance())
        ranked = [r.service_name for r in records if r.service_name in self._provider_names]
        if not ranked:
            Log.info(
                f"No active providers in health registry, using declaration order: "
                f"{self._provider_names}"
            )
            return self.provider_names
        Log.debug(f"Provider ranking: {ranked}")
        return ranked

    async def record_outcome(
        self,
        provider_name: str,
        success: bool,
        response_time_ms: float,
        error_message: str | None = None,
    ) -> ProviderHealthRecord:
        """Apply one attempt outcome to the provider's record.

        Raises:
            HealthStoreError: if the store cannot be written.
        """
        async with self._locks[provider_name]:
            record = await self._store.record_outcome(
                provider_name, success, response_time_ms, error_message
            )
        Log.debug(
            f"Health updated for {provider_name}",
            success=success,
            total=record.total_uploads,
            successful=record.successful_uploads,
            rate=f"{record.success_rate:.1f}",
        )
        return record

    async def snapshot(self) -> list[ProviderHealthRecord]:
        """Every stored record, including providers that are no longer configured."""
        return await self._store.get_all()

    async def safe_rank(self) -> list[str]:
        """``rank()`` that degrades to declaration order when the store is unavailable."""
        try:
            return await self.rank()
        except HealthStoreError as exc:
            Log.warning(f"Health store unavailable, using declaration order: {exc}")
            return self.provider_names
