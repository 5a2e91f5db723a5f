from image_relay.config.settings import Settings
from image_relay.database.repositories.health_repository import HealthRepository
from image_relay.health.base import BaseHealthStore
from image_relay.health.memory_store import InMemoryHealthStore


class HealthStoreFactory:
    """Creates the health store selected by ``settings.health_store``."""

    ADAPTERS: dict[str, type[BaseHealthStore]] = {
        "postgres": HealthRepository,
        "memory": InMemoryHealthStore,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseHealthStore:
        kind = settings.health_store.lower()
        adapter_cls = cls.ADAPTERS.get(kind)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown health store '{kind}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls()
