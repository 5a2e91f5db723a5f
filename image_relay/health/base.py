from abc import ABC, abstractmethod

from image_relay.health.models import ProviderHealthRecord


class BaseHealthStore(ABC):
    """Contract for durable provider health storage."""

    @abstractmethod
    async def get_all(self) -> list[ProviderHealthRecord]:
        """Return every known record, ordered by service name."""

    @abstractmethod
    async def get_active_ranked_by_performance(self) -> list[ProviderHealthRecord]:
        """Return active records, best success rate first, ties by fastest response."""

    @abstractmethod
    async def record_outcome(
        self,
        service_name: str,
        success: bool,
        response_time_ms: float,
        error_message: str | None = None,
    ) -> ProviderHealthRecord:
        """Apply one attempt outcome, creating the record on first sight.

        Raises:
            HealthStoreError: if the store cannot be written.
        """
