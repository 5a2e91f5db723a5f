import httpx

from image_relay.providers.base import HttpUploadProvider
from image_relay.providers.exceptions import ProviderResponseError


class PostImageAdapter(HttpUploadProvider):
    name = "postimage"
    display_name = "PostImage"

    def __init__(self, client: httpx.AsyncClient, *, upload_url: str) -> None:
        super().__init__(client)
        self._upload_url = upload_url

    async def upload(self, blob: bytes, filename: str) -> str:
        body = await self._post_multipart(
            self._upload_url,
            file_field="upload",
            blob=blob,
            filename=filename,
        )
        url = body.get("url")
        if not url:
            raise ProviderResponseError("PostImage upload failed: no URL returned")
        return str(url)
