from collections.abc import Callable
from typing import ClassVar

import httpx

from image_relay.config.settings import Settings
from image_relay.logging.logger import Log
from image_relay.providers.base import BaseUploadProvider
from image_relay.providers.cloudinary_adapter import CloudinaryAdapter
from image_relay.providers.example_provider import ExampleProvider
from image_relay.providers.imgbb_adapter import ImgbbAdapter
from image_relay.providers.imgur_adapter import ImgurAdapter
from image_relay.providers.postimage_adapter import PostImageAdapter

_Builder = Callable[[Settings, httpx.AsyncClient], BaseUploadProvider | None]


def _build_imgbb(settings: Settings, client: httpx.AsyncClient) -> BaseUploadProvider | None:
    if not settings.imgbb_api_key:
        return None
    return ImgbbAdapter(client, api_key=settings.imgbb_api_key)


def _build_cloudinary(settings: Settings, client: httpx.AsyncClient) -> BaseUploadProvider | None:
    if not settings.cloudinary_cloud_name or not settings.cloudinary_upload_preset:
        return None
    return CloudinaryAdapter(
        client,
        cloud_name=settings.cloudinary_cloud_name,
        upload_preset=settings.cloudinary_upload_preset,
    )


def _build_imgur(settings: Settings, client: httpx.AsyncClient) -> BaseUploadProvider | None:
    if not settings.imgur_client_id:
        return None
    return ImgurAdapter(client, client_id=settings.imgur_client_id)


def _build_postimage(settings: Settings, client: httpx.AsyncClient) -> BaseUploadProvider | None:
    if not settings.postimage_upload_url:
        return None
    return PostImageAdapter(client, upload_url=settings.postimage_upload_url)


def _build_example(settings: Settings, client: httpx.AsyncClient) -> BaseUploadProvider | None:
    return ExampleProvider()


class ProviderFactory:
    """Creates the configured provider adapters, in declaration order."""

    BUILDERS: ClassVar[dict[str, _Builder]] = {
        "imgbb": _build_imgbb,
        "cloudinary": _build_cloudinary,
        "imgur": _build_imgur,
        "postimage": _build_postimage,
        "example": _build_example,
    }

    @classmethod
    def create_all(cls, settings: Settings, client: httpx.AsyncClient) -> list[BaseUploadProvider]:
        """Build every provider named in ``settings.upload_providers``.

        Providers missing credentials are skipped with a warning.

        Raises:
            ValueError: for an unknown provider name, or if no provider is usable.
        """
        providers: list[BaseUploadProvider] = []
        for name in settings.provider_names():
            builder = cls.BUILDERS.get(name)
            if builder is None:
                raise ValueError(
                    f"Unknown upload provider '{name}'. Choose from: {list(cls.BUILDERS)}"
                )
            provider = builder(settings, client)
            if provider is None:
                Log.warning(f"Upload provider '{name}' is missing credentials, skipping")
                continue
            providers.append(provider)

        if not providers:
            raise ValueError(
                "No usable upload providers configured; check upload_providers and credentials"
            )
        Log.info(f"Configured upload providers: {[p.name for p in providers]}")
        return providers
