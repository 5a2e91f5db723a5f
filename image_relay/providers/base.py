from abc import ABC, abstractmethod
from typing import Any

import httpx

from image_relay.providers.exceptions import (
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)


class BaseUploadProvider(ABC):
    """Contract for all image-hosting provider adapters."""

    name: str

    @abstractmethod
    async def upload(self, blob: bytes, filename: str) -> str:
        """Upload an encoded image and return its public URL.

        Args:
            blob: Encoded image bytes.
            filename: Name reported to the remote service.

        Returns:
            Remote URL of the stored image.

        Raises:
            ProviderError: on any failure.
        """


class HttpUploadProvider(BaseUploadProvider):
    """Shared multipart POST handling for providers reached over HTTP."""

    display_name: str = ""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _post_multipart(
        self,
        url: str,
        *,
        file_field: str,
        blob: bytes,
        filename: str,
        data: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        label = self.display_name or self.name
        try:
            response = await self._client.post(
                url,
                data=data or {},
                files={file_field: (filename, blob, "image/jpeg")},
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(f"{label} upload timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{label} upload network error: {exc}") from exc

        if not response.is_success:
            raise ProviderResponseError(f"{label} upload failed: {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderResponseError(f"{label} upload failed: invalid JSON response") from exc
        if not isinstance(body, dict):
            raise ProviderResponseError(f"{label} upload failed: unexpected response body")
        return body
