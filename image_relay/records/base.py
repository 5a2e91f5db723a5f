from abc import ABC, abstractmethod

from image_relay.records.models import ImageRecord, ImageRecordFilter, NewImageRecord


class BaseImageRecordStore(ABC):
    """Contract for the durable store of uploaded image records."""

    @abstractmethod
    async def save(self, record: NewImageRecord) -> ImageRecord:
        """Insert a new active record.

        Raises:
            RecordStoreError: if the write is rejected.
        """

    @abstractmethod
    async def update(self, record_id: str, patch: dict[str, object]) -> ImageRecord:
        """Update editable fields of a record.

        Raises:
            ValueError: if ``patch`` names a non-editable field.
            RecordNotFoundError: if the record does not exist.
        """

    @abstractmethod
    async def soft_delete(self, record_id: str) -> ImageRecord:
        """Mark a record inactive; it stays in storage.

        Raises:
            RecordNotFoundError: if the record does not exist.
        """

    @abstractmethod
    async def query(self, filters: ImageRecordFilter | None = None) -> list[ImageRecord]:
        """Active records matching ``filters``, newest first."""

    @abstractmethod
    async def get_by_url(self, url: str) -> ImageRecord | None:
        """The active record stored for ``url``, if any."""

    async def list_by_category(self, category: str, limit: int = 20) -> list[ImageRecord]:
        return await self.query(ImageRecordFilter(category=category, limit=limit))
