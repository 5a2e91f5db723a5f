"""Example upload provider.

Use this module as a reference when implementing new provider adapters.
Implement BaseUploadProvider and register the provider in ProviderFactory.
"""

import hashlib

from image_relay.providers.base import BaseUploadProvider


class ExampleProvider(BaseUploadProvider):
    """Provider that stores nothing and returns a content-addressed fake URL.

    No network calls. Useful for local development and dry runs.
    """

    name = "example"
    BASE_URL = "https://images.example.invalid"

    def __init__(self) -> None:
        self.uploaded: list[str] = []

    async def upload(self, blob: bytes, filename: str) -> str:
        digest = hashlib.sha256(blob).hexdigest()[:16]
        url = f"{self.BASE_URL}/{digest}/{filename}"
        self.uploaded.append(url)
        return url
