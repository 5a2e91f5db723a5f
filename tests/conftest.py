import io
import random
from collections.abc import Callable

import pytest
from PIL import Image


def encode(image: Image.Image, fmt: str = "JPEG") -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def make_image_bytes() -> Callable[..., bytes]:
    """Factory for solid-colour images of a given size and format."""

    def _make(
        width: int,
        height: int,
        fmt: str = "JPEG",
        color: tuple[int, int, int] = (200, 30, 30),
    ) -> bytes:
        return encode(Image.new("RGB", (width, height), color), fmt)

    return _make


@pytest.fixture()
def small_jpeg_bytes(make_image_bytes: Callable[..., bytes]) -> bytes:
    """A 64x48 JPEG."""
    return make_image_bytes(64, 48)


@pytest.fixture()
def noisy_png_bytes() -> bytes:
    """A 300x200 PNG of random pixels; compresses badly as JPEG."""
    rng = random.Random(1234)
    image = Image.new("RGB", (300, 200))
    image.putdata(
        [(rng.randrange(256), rng.randrange(256), rng.randrange(256)) for _ in range(300 * 200)]
    )
    return encode(image, "PNG")


@pytest.fixture()
def split_color_png_bytes() -> bytes:
    """A 100x50 PNG: left half red, right half blue."""
    image = Image.new("RGB", (100, 50), (255, 0, 0))
    image.paste((0, 0, 255), (50, 0, 100, 50))
    return encode(image, "PNG")
