from datetime import datetime, timezone

from image_relay.health.base import BaseHealthStore
from image_relay.health.models import ProviderHealthRecord, rank_records


class InMemoryHealthStore(BaseHealthStore):
    """Process-local health store. Not durable; for development, dry runs and tests."""

    def __init__(self, records: list[ProviderHealthRecord] | None = None) -> None:
        self._records: dict[str, ProviderHealthRecord] = {
            r.service_name: r for r in records or []
        }

    async def get_all(self) -> list[ProviderHealthRecord]:
        return [self._records[name] for name in sorted(self._records)]

    async def get_active_ranked_by_performance(self) -> list[ProviderHealthRecord]:
        return rank_records(await self.get_all())

    async def record_outcome(
        self,
        service_name: str,
        success: bool,
        response_time_ms: float,
        error_message: str | None = None,
    ) -> ProviderHealthRecord:
        current = self._records.get(service_name) or ProviderHealthRecord(service_name)
        updated = current.with_outcome(
            success=success,
            response_time_ms=response_time_ms,
            error_message=error_message,
            checked_at=datetime.now(timezone.utc),
        )
        self._records[service_name] = updated
        return updated
