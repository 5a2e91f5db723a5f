import httpx

from image_relay.providers.base import HttpUploadProvider
from image_relay.providers.exceptions import ProviderResponseError


class ImgurAdapter(HttpUploadProvider):
    """Anonymous Imgur upload authorised by a Client-ID header."""

    name = "imgur"
    display_name = "Imgur"
    UPLOAD_URL = "https://api.imgur.com/3/image"

    def __init__(self, client: httpx.AsyncClient, *, client_id: str) -> None:
        super().__init__(client)
        self._client_id = client_id

    async def upload(self, blob: bytes, filename: str) -> str:
        body = await self._post_multipart(
            self.UPLOAD_URL,
            file_field="image",
            blob=blob,
            filename=filename,
            headers={"Authorization": f"Client-ID {self._client_id}"},
        )
        data = body.get("data") or {}
        link = data.get("link") if isinstance(data, dict) else None
        if not body.get("success") or not link:
            raise ProviderResponseError("Imgur upload failed: no URL returned")
        return str(link)
