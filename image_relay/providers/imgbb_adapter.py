import httpx

from image_relay.providers.base import HttpUploadProvider
from image_relay.providers.exceptions import ProviderResponseError


class ImgbbAdapter(HttpUploadProvider):
    """Uploads to ImgBB using an API key form field."""

    name = "imgbb"
    display_name = "ImgBB"
    UPLOAD_URL = "https://api.imgbb.com/1/upload"

    def __init__(self, client: httpx.AsyncClient, *, api_key: str) -> None:
        super().__init__(client)
        self._api_key = api_key

    async def upload(self, blob: bytes, filename: str) -> str:
        body = await self._post_multipart(
            self.UPLOAD_URL,
            file_field="image",
            blob=blob,
            filename=filename,
            data={"key": self._api_key},
        )
        data = body.get("data") or {}
        url = data.get("url") if isinstance(data, dict) else None
        if not body.get("success") or not url:
            error = body.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise ProviderResponseError(message or "ImgBB upload failed")
        return str(url)
