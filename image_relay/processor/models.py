from dataclasses import dataclass
from enum import Enum

from image_relay.records.models import ImageRecord
from image_relay.upload.models import UploadResult


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    PERSIST_FAILED = "persist_failed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class UploadOutcome:
    """What happened to one input: the upload result and record when they exist."""

    source: str
    status: OutcomeStatus
    result: UploadResult | None = None
    record: ImageRecord | None = None
    error_message: str = ""

    @property
    def url(self) -> str | None:
        return self.result.remote_url if self.result is not None else None
