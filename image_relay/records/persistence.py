from image_relay.logging.logger import Log
from image_relay.records.base import BaseImageRecordStore
from image_relay.records.exceptions import PersistenceError, RecordStoreError
from image_relay.records.models import ImageRecord, NewImageRecord
from image_relay.upload.models import UploadResult, safe_filename


class ResultPersistenceAdapter:
    """Writes a successful upload into the image record store.

    A failed write leaves the remote asset orphaned; the caller gets a
    PersistenceError holding the UploadResult so the write can be retried.
    """

    def __init__(self, store: BaseImageRecordStore) -> None:
        self._store = store

    async def persist(
        self,
        result: UploadResult,
        category: str,
        *,
        fallback_filename: str = "image",
    ) -> ImageRecord:
        """Save ``result`` under ``category``.

        Raises:
            PersistenceError: if the store rejects the write.
        """
        record = self.to_new_record(result, category, fallback_filename=fallback_filename)
        try:
            saved = await self._store.save(record)
        except RecordStoreError as exc:
            Log.error(
                f"Uploaded {result.remote_url} via {result.provider_name} "
                f"but could not save record: {exc}"
            )
            raise PersistenceError(f"Failed to save image record: {exc}", result) from exc
        Log.info(f"Saved image record {saved.id} for {saved.url}")
        return saved

    @staticmethod
    def to_new_record(
        result: UploadResult,
        category: str,
        *,
        fallback_filename: str = "image",
    ) -> NewImageRecord:
        metadata = result.metadata
        original = metadata.original_filename or fallback_filename
        return NewImageRecord(
            url=result.remote_url,
            filename=metadata.filename or safe_filename(original),
            original_filename=original,
            upload_service=result.provider_name,
            category=category,
            file_size=metadata.size_bytes,
            width=metadata.width,
            height=metadata.height,
            mime_type=metadata.mime_type or None,
        )
