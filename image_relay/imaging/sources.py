import mimetypes
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO
from urllib.parse import urlparse

import httpx

from image_relay.imaging.exceptions import ImagingError, InputRejectedError, SourceFetchError
from image_relay.imaging.models import SourceImage
from image_relay.imaging.preprocessor import decode_image
from image_relay.logging.logger import Log

DEFAULT_MAX_INPUT_BYTES = 32 * 1024 * 1024


def _format_limit(max_bytes: int) -> str:
    if max_bytes >= 1024 * 1024:
        return f"{max_bytes / (1024 * 1024):g}MB"
    return f"{max_bytes} bytes"


def _too_large(filename: str, size_bytes: int, max_bytes: int) -> InputRejectedError:
    return InputRejectedError(
        f"'{filename}' is {size_bytes} bytes, limit is {_format_limit(max_bytes)}"
    )


def validate_source(source: SourceImage, max_bytes: int = DEFAULT_MAX_INPUT_BYTES) -> None:
    """Reject inputs that are not declared as images or exceed the size ceiling.

    Raises:
        InputRejectedError: on a non-image MIME type or oversized input.
    """
    if not source.mime_type.startswith("image/"):
        raise InputRejectedError(
            f"'{source.filename}' is not an image (mime type '{source.mime_type}')"
        )
    if source.size_bytes > max_bytes:
        raise _too_large(source.filename, source.size_bytes, max_bytes)


def clipboard_source(data: bytes, mime_type: str, now: datetime | None = None) -> SourceImage:
    """Wrap pasted image bytes with a generated ``clipboard-<timestamp>.<ext>`` filename."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    timestamp = f"{moment:%Y-%m-%dT%H-%M-%S}-{moment.microsecond // 1000:03d}Z"
    extension = mime_type.split("/")[1] if "/" in mime_type else ""
    return SourceImage(
        data=data,
        filename=f"clipboard-{timestamp}.{extension or 'png'}",
        mime_type=mime_type,
    )


def _filename_from_url(url: str) -> str:
    return Path(urlparse(url).path).name or "image"


async def _download(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout_seconds: float,
    max_bytes: int,
) -> tuple[bytes, str]:
    """Stream ``url`` into memory, stopping as soon as it exceeds ``max_bytes``.

    Returns the body and the bare content type (empty when the server sends none).

    Raises:
        SourceFetchError: on network failure or a non-2xx response.
        InputRejectedError: if the declared or received size exceeds ``max_bytes``.
    """
    filename = _filename_from_url(url)
    try:
        async with client.stream(
            "GET", url, follow_redirects=True, timeout=timeout_seconds
        ) as response:
            response.raise_for_status()
            mime_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > max_bytes:
                raise _too_large(filename, int(declared), max_bytes)

            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise _too_large(filename, received, max_bytes)
                chunks.append(chunk)
    except httpx.HTTPError as exc:
        raise SourceFetchError(f"Failed to fetch {url}: {exc}") from exc
    return b"".join(chunks), mime_type


class SourceLoader:
    """Reads raw image input from a file path, an HTTP(S) URL or stdin.

    The size ceiling is checked before an input is read into memory: from the
    file size on disk, or from the response headers and the running byte count
    while downloading.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_bytes: int = DEFAULT_MAX_INPUT_BYTES,
        timeout_seconds: float = 10.0,
        stdin_mime_type: str = "image/png",
    ) -> None:
        self._client = client
        self._max_bytes = max_bytes
        self._timeout_seconds = timeout_seconds
        self._stdin_mime_type = stdin_mime_type

    def load_path(self, path: Path) -> SourceImage:
        """Read a file from disk; the MIME type is guessed from its extension.

        Raises:
            SourceFetchError: if the file does not exist or cannot be read.
            InputRejectedError: if the file is larger than the size ceiling.
        """
        if not path.is_file():
            raise SourceFetchError(f"File not found: {path}")
        mime_type, _ = mimetypes.guess_type(path.name)
        try:
            size_bytes = path.stat().st_size
            if size_bytes > self._max_bytes:
                raise _too_large(path.name, size_bytes, self._max_bytes)
            data = path.read_bytes()
        except OSError as exc:
            raise SourceFetchError(f"Could not read {path}: {exc}") from exc
        return SourceImage(
            data=data,
            filename=path.name,
            mime_type=mime_type or "application/octet-stream",
        )

    def load_stream(self, stream: BinaryIO, mime_type: str) -> SourceImage:
        """Read pasted image bytes from a binary stream (stdin for the CLI).

        At most one byte past the size ceiling is read.

        Raises:
            InputRejectedError: if the stream holds more than the size ceiling.
        """
        data = stream.read(self._max_bytes + 1)
        source = clipboard_source(data, mime_type)
        if len(data) > self._max_bytes:
            raise _too_large(source.filename, len(data), self._max_bytes)
        return source

    async def fetch_url(self, url: str) -> SourceImage:
        """Download an image over HTTP(S).

        Raises:
            SourceFetchError: on network failure or a non-2xx response.
            InputRejectedError: if the response is not an image or is too large.
        """
        data, mime_type = await _download(
            self._client,
            url,
            timeout_seconds=self._timeout_seconds,
            max_bytes=self._max_bytes,
        )
        source = SourceImage(
            data=data,
            filename=_filename_from_url(url),
            mime_type=mime_type or "application/octet-stream",
        )
        validate_source(source, self._max_bytes)
        Log.info(f"Fetched {source.size_bytes} bytes from {url}")
        return source

    async def load(self, location: str) -> SourceImage:
        """Dispatch on the location: ``-`` is stdin, http(s) is a download, else a path."""
        if location == "-":
            return self.load_stream(sys.stdin.buffer, self._stdin_mime_type)
        if urlparse(location).scheme in ("http", "https"):
            return await self.fetch_url(location)
        return self.load_path(Path(location))


@dataclass(frozen=True)
class ImageUrlCheck:
    valid: bool
    width: int | None = None
    height: int | None = None


async def validate_image_url(
    client: httpx.AsyncClient,
    url: str,
    timeout_seconds: float = 10.0,
    max_bytes: int = DEFAULT_MAX_INPUT_BYTES,
) -> ImageUrlCheck:
    """Check that ``url`` serves a decodable image. Never raises for bad URLs."""
    try:
        data, _ = await _download(
            client, url, timeout_seconds=timeout_seconds, max_bytes=max_bytes
        )
        image = decode_image(data)
    except ImagingError as exc:
        Log.debug(f"Image URL {url} failed validation: {exc}")
        return ImageUrlCheck(valid=False)
    return ImageUrlCheck(valid=True, width=image.width, height=image.height)
