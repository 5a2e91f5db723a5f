from dataclasses import dataclass
from datetime import datetime

UPDATABLE_FIELDS = frozenset(
    {"url", "filename", "original_filename", "category", "alt_text", "description"}
)


@dataclass(frozen=True)
class NewImageRecord:
    """Fields written when an uploaded image is first saved."""

    url: str
    filename: str
    original_filename: str
    upload_service: str
    category: str
    file_size: int | None = None
    width: int | None = None
    height: int | None = None
    mime_type: str | None = None
    alt_text: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ImageRecord:
    """Represents a row from the uploaded_images table."""

    id: str
    url: str
    filename: str
    original_filename: str
    upload_service: str
    category: str
    file_size: int | None = None
    width: int | None = None
    height: int | None = None
    mime_type: str | None = None
    alt_text: str | None = None
    description: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ImageRecordFilter:
    """Query filter; records are always restricted to active ones, newest first."""

    category: str | None = None
    search: str | None = None
    service: str | None = None
    limit: int | None = None
    offset: int | None = None


def validate_patch(patch: dict[str, object]) -> dict[str, object]:
    """Reject patches touching fields that are not user-editable."""
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(
            f"Cannot update fields {sorted(unknown)}; allowed: {sorted(UPDATABLE_FIELDS)}"
        )
    return dict(patch)
