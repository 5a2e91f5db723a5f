import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class UploadStatus(str, Enum):
    UPLOADING = "uploading"
    RETRYING = "retrying"
    COMPLETED = "completed"
    ERROR = "error"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification emitted while an upload is orchestrated."""

    service: str
    status: UploadStatus
    loaded: int = 0
    total: int = 100

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.loaded / self.total * 100)

    @classmethod
    def attempt_started(cls, service: str, attempt: int) -> "ProgressEvent":
        status = UploadStatus.RETRYING if attempt > 0 else UploadStatus.UPLOADING
        return cls(service=service, status=status)

    @classmethod
    def completed(cls, service: str) -> "ProgressEvent":
        return cls(service=service, status=UploadStatus.COMPLETED, loaded=100)

    @classmethod
    def failed(cls, service: str) -> "ProgressEvent":
        return cls(service=service, status=UploadStatus.ERROR)


@dataclass(frozen=True)
class UploadAttempt:
    """One call to one provider. Kept for logs and error reports only."""

    provider_name: str
    attempt_index: int
    started_at: datetime
    outcome: AttemptOutcome
    response_time_ms: float
    error_message: str | None = None


@dataclass(frozen=True)
class UploadMetadata:
    filename: str
    original_filename: str
    size_bytes: int
    width: int
    height: int
    mime_type: str


@dataclass(frozen=True)
class UploadResult:
    """Terminal success value of one orchestrated upload."""

    remote_url: str
    provider_name: str
    metadata: UploadMetadata
    attempts: list[UploadAttempt] = field(default_factory=list)


def safe_filename(name: str) -> str:
    """Replace every character other than ASCII letters, digits, '.' and '-' with '_'."""
    return re.sub(r"[^a-zA-Z0-9.-]", "_", name)
