import httpx

from image_relay.providers.base import HttpUploadProvider
from image_relay.providers.exceptions import ProviderResponseError


class CloudinaryAdapter(HttpUploadProvider):
    """Unsigned Cloudinary upload through an upload preset."""

    name = "cloudinary"
    display_name = "Cloudinary"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        cloud_name: str,
        upload_preset: str,
    ) -> None:
        super().__init__(client)
        self._upload_url = f"https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
        self._upload_preset = upload_preset

    async def upload(self, blob: bytes, filename: str) -> str:
        body = await self._post_multipart(
            self._upload_url,
            file_field="file",
            blob=blob,
            filename=filename,
            data={"upload_preset": self._upload_preset},
        )
        url = body.get("secure_url")
        if not url:
            raise ProviderResponseError("Cloudinary upload failed: no URL returned")
        return str(url)
