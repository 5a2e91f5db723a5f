import uuid
from dataclasses import asdict, replace
from datetime import datetime, timezone

from image_relay.records.base import BaseImageRecordStore
from image_relay.records.exceptions import RecordNotFoundError
from image_relay.records.models import (
    ImageRecord,
    ImageRecordFilter,
    NewImageRecord,
    validate_patch,
)

DEFAULT_PAGE_SIZE = 50


class InMemoryImageRecordStore(BaseImageRecordStore):
    """Process-local record store. Not durable; for development, dry runs and tests."""

    def __init__(self) -> None:
        self._records: dict[str, ImageRecord] = {}

    async def save(self, record: NewImageRecord) -> ImageRecord:
        now = datetime.now(timezone.utc)
        saved = ImageRecord(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            **asdict(record),
        )
        self._records[saved.id] = saved
        return saved

    async def update(self, record_id: str, patch: dict[str, object]) -> ImageRecord:
        changes = validate_patch(patch)
        current = self._get(record_id)
        updated = replace(current, **changes, updated_at=datetime.now(timezone.utc))
        self._records[record_id] = updated
        return updated

    async def soft_delete(self, record_id: str) -> ImageRecord:
        current = self._get(record_id)
        deleted = replace(current, is_active=False, updated_at=datetime.now(timezone.utc))
        self._records[record_id] = deleted
        return deleted

    async def query(self, filters: ImageRecordFilter | None = None) -> list[ImageRecord]:
        f = filters or ImageRecordFilter()
        # Insertion order is creation order; newest first.
        matches = [r for r in reversed(self._records.values()) if r.is_active]
        if f.category:
            matches = [r for r in matches if r.category == f.category]
        if f.service:
            matches = [r for r in matches if r.upload_service == f.service]
        if f.search:
            needle = f.search.lower()
            matches = [
                r
                for r in matches
                if any(
                    needle in (value or "").lower()
                    for value in (r.filename, r.description, r.alt_text)
                )
            ]

        start = f.offset or 0
        if f.limit is not None:
            return matches[start : start + f.limit]
        if f.offset:
            return matches[start : start + DEFAULT_PAGE_SIZE]
        return matches

    async def get_by_url(self, url: str) -> ImageRecord | None:
        for record in self._records.values():
            if record.url == url and record.is_active:
                return record
        return None

    def _get(self, record_id: str) -> ImageRecord:
        record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Image record {record_id} not found")
        return record
