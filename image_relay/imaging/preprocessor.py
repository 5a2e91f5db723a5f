import io

from PIL import Image, ImageOps, UnidentifiedImageError

from image_relay.imaging.exceptions import DecodeError
from image_relay.imaging.models import PreprocessedImage
from image_relay.logging.logger import Log

OUTPUT_MIME_TYPE = "image/jpeg"
QUALITY_STEP = 10


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Scale (width, height) down to fit both bounds, preserving aspect ratio.

    The longer side is clamped first, then the other side is re-checked and
    clamped again. Images already within bounds are returned unchanged.
    """
    if width <= max_width and height <= max_height:
        return width, height

    aspect_ratio = width / height
    new_width: float = width
    new_height: float = height
    if width > height:
        new_width = max_width
        new_height = new_width / aspect_ratio
        if new_height > max_height:
            new_height = max_height
            new_width = new_height * aspect_ratio
    else:
        new_height = max_height
        new_width = new_height * aspect_ratio
        if new_width > max_width:
            new_width = max_width
            new_height = new_width / aspect_ratio

    return max(1, round(new_width)), max(1, round(new_height))


def decode_image(raw_bytes: bytes) -> Image.Image:
    """Decode bytes into a fully loaded, orientation-corrected Pillow image.

    Raises:
        DecodeError: if the bytes are not a valid raster image.
    """
    if not raw_bytes:
        raise DecodeError("Image data is empty")
    try:
        image = Image.open(io.BytesIO(raw_bytes))
        image.load()
    except (
        UnidentifiedImageError,
        OSError,
        SyntaxError,
        EOFError,
        ValueError,
        Image.DecompressionBombError,
    ) as exc:
        raise DecodeError(f"Failed to decode image: {exc}") from exc
    return ImageOps.exif_transpose(image)


def encode_jpeg(image: Image.Image, quality: float) -> bytes:
    buf = io.BytesIO()
    rgb = image if image.mode == "RGB" else image.convert("RGB")
    rgb.save(buf, format="JPEG", quality=max(1, round(quality * 100)))
    return buf.getvalue()


class ImagePreprocessor:
    """Resizes and re-encodes raw image bytes into a bounded, transmittable JPEG."""

    def __init__(
        self,
        *,
        max_width: int = 1920,
        max_height: int = 1080,
        initial_quality: float = 0.85,
        min_quality: float = 0.3,
        size_cap_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self._max_width = max_width
        self._max_height = max_height
        self._initial_quality = initial_quality
        self._min_quality = min_quality
        self._size_cap_bytes = size_cap_bytes

    def preprocess(self, raw_bytes: bytes) -> PreprocessedImage:
        """Decode, resize and re-encode an image.

        Quality is lowered in steps of 0.1, never below the floor, while the
        encoded blob exceeds the size cap. The floor encoding is returned even
        if it is still over the cap.

        Raises:
            DecodeError: if the bytes are not a valid raster image.
        """
        image = decode_image(raw_bytes)
        source_width, source_height = image.size
        width, height = fit_within(
            source_width, source_height, self._max_width, self._max_height
        )
        if (width, height) != image.size:
            image = image.resize((width, height), Image.Resampling.LANCZOS)
            Log.debug(f"Resized image {source_width}x{source_height} -> {width}x{height}")

        quality_pct = round(self._initial_quality * 100)
        floor_pct = round(self._min_quality * 100)
        blob = encode_jpeg(image, quality_pct / 100)
        while len(blob) > self._size_cap_bytes and quality_pct > floor_pct:
            quality_pct = max(floor_pct, quality_pct - QUALITY_STEP)
            Log.debug(
                f"Encoded image is {len(blob)} bytes, over cap {self._size_cap_bytes}; "
                f"retrying at quality {quality_pct / 100:.2f}"
            )
            blob = encode_jpeg(image, quality_pct / 100)

        if len(blob) > self._size_cap_bytes:
            Log.warning(
                f"Image still {len(blob)} bytes at minimum quality, returning best effort"
            )

        return PreprocessedImage(
            blob=blob,
            mime_type=OUTPUT_MIME_TYPE,
            width=width,
            height=height,
            quality=quality_pct / 100,
        )
