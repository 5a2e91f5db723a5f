from unittest.mock import AsyncMock, MagicMock

import pytest

from image_relay.records.exceptions import PersistenceError, RecordStoreError
from image_relay.records.memory_store import InMemoryImageRecordStore
from image_relay.records.persistence import ResultPersistenceAdapter
from image_relay.upload.models import UploadMetadata, UploadResult


def _result(**metadata_overrides: object) -> UploadResult:
    metadata: dict[str, object] = {
        "filename": "summer_photo.jpg",
        "original_filename": "summer photo.jpg",
        "size_bytes": 2048,
        "width": 640,
        "height": 480,
        "mime_type": "image/jpeg",
    }
    metadata.update(metadata_overrides)
    return UploadResult(
        remote_url="https://i.ibb.co/abc/summer_photo.jpg",
        provider_name="imgbb",
        metadata=UploadMetadata(**metadata),  # type: ignore[arg-type]
    )


class TestToNewRecord:
    def test_maps_result_fields(self) -> None:
        record = ResultPersistenceAdapter.to_new_record(_result(), "banners")

        assert record.url == "https://i.ibb.co/abc/summer_photo.jpg"
        assert record.filename == "summer_photo.jpg"
        assert record.original_filename == "summer photo.jpg"
        assert record.upload_service == "imgbb"
        assert record.category == "banners"
        assert record.file_size == 2048
        assert (record.width, record.height) == (640, 480)
        assert record.mime_type == "image/jpeg"
        assert record.alt_text is None

    def test_uses_fallback_name_when_original_missing(self) -> None:
        record = ResultPersistenceAdapter.to_new_record(
            _result(filename="", original_filename=""),
            "general",
            fallback_filename="pasted image.png",
        )

        assert record.original_filename == "pasted image.png"
        assert record.filename == "pasted_image.png"


class TestPersist:
    @pytest.mark.asyncio
    async def test_saves_record(self) -> None:
        store = InMemoryImageRecordStore()

        saved = await ResultPersistenceAdapter(store).persist(_result(), "products")

        assert saved.is_active is True
        assert saved.category == "products"
        assert await store.get_by_url("https://i.ibb.co/abc/summer_photo.jpg") == saved

    @pytest.mark.asyncio
    async def test_store_failure_raises_persistence_error_with_result(self) -> None:
        store = MagicMock()
        store.save = AsyncMock(side_effect=RecordStoreError("connection lost"))
        result = _result()

        with pytest.raises(PersistenceError, match="connection lost") as exc_info:
            await ResultPersistenceAdapter(store).persist(result, "products")

        assert exc_info.value.result is result
        assert exc_info.value.result.remote_url == "https://i.ibb.co/abc/summer_photo.jpg"
