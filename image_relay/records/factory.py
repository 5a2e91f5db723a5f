from image_relay.config.settings import Settings
from image_relay.database.repositories.image_repository import ImageRepository
from image_relay.records.base import BaseImageRecordStore
from image_relay.records.memory_store import InMemoryImageRecordStore


class RecordStoreFactory:
    """Creates the record store selected by ``settings.record_store``."""

    ADAPTERS: dict[str, type[BaseImageRecordStore]] = {
        "postgres": ImageRepository,
        "memory": InMemoryImageRecordStore,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseImageRecordStore:
        kind = settings.record_store.lower()
        adapter_cls = cls.ADAPTERS.get(kind)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown record store '{kind}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls()
