from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True)
class ProviderHealthRecord:
    """Running statistics for one upload provider.

    ``success_rate`` is derived from the counters and never stored on its own.
    ``is_active`` reflects only the most recent attempt.
    """

    service_name: str
    is_active: bool = False
    total_uploads: int = 0
    successful_uploads: int = 0
    last_response_time_ms: float | None = None
    last_error_message: str | None = None
    last_checked_at: datetime | None = None

    @property
    def success_rate(self) -> float:
        if self.total_uploads == 0:
            return 0.0
        return self.successful_uploads / self.total_uploads * 100

    def with_outcome(
        self,
        *,
        success: bool,
        response_time_ms: float,
        error_message: str | None,
        checked_at: datetime,
    ) -> "ProviderHealthRecord":
        """Return a copy updated with one attempt outcome."""
        return replace(
            self,
            is_active=success,
            total_uploads=self.total_uploads + 1,
            successful_uploads=self.successful_uploads + (1 if success else 0),
            last_response_time_ms=response_time_ms,
            last_error_message=None if success else error_message,
            last_checked_at=checked_at,
        )


def rank_key(record: ProviderHealthRecord) -> tuple[float, float]:
    """Sort key: higher success rate first, then faster last response; unknown latency last."""
    latency = record.last_response_time_ms
    return (-record.success_rate, latency if latency is not None else float("inf"))


def rank_records(records: list[ProviderHealthRecord]) -> list[ProviderHealthRecord]:
    """Active records ordered by performance. Stable for equal keys."""
    return sorted((r for r in records if r.is_active), key=rank_key)
