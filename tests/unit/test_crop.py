import io
import math
from unittest.mock import patch

import pytest
from PIL import Image

from image_relay.imaging.crop import CropEngine, rotated_bounding_box
from image_relay.imaging.exceptions import DecodeError, RenderContextError
from image_relay.imaging.models import (
    ASPECT_RATIOS,
    CropSpecification,
    Flip,
    PixelRect,
    cropped_filename,
)


def _decode(blob: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(blob))
    image.load()
    return image.convert("RGB")


def _is_red(pixel: tuple[int, int, int]) -> bool:
    return pixel[0] > 200 and pixel[2] < 60


def _is_blue(pixel: tuple[int, int, int]) -> bool:
    return pixel[2] > 200 and pixel[0] < 60


class TestRotatedBoundingBox:
    def test_no_rotation_keeps_size(self) -> None:
        assert rotated_bounding_box(100, 50, 0) == pytest.approx((100, 50))

    def test_quarter_turn_swaps_sides(self) -> None:
        assert rotated_bounding_box(100, 50, 90) == pytest.approx((50, 100))

    def test_half_turn_keeps_size(self) -> None:
        assert rotated_bounding_box(100, 50, 180) == pytest.approx((100, 50))

    def test_45_degrees_square(self) -> None:
        width, height = rotated_bounding_box(100, 100, 45)
        assert width == pytest.approx(100 * math.sqrt(2), abs=0.01)
        assert height == pytest.approx(141.42, abs=0.01)

    def test_negative_rotation_is_symmetric(self) -> None:
        assert rotated_bounding_box(80, 30, -30) == pytest.approx(rotated_bounding_box(80, 30, 30))


class TestCropEngine:
    def test_output_has_rect_dimensions(self, split_color_png_bytes: bytes) -> None:
        spec = CropSpecification(pixel_rect=PixelRect(x=10, y=5, width=40, height=30))

        result = CropEngine().crop(split_color_png_bytes, spec)

        assert (result.width, result.height) == (40, 30)
        assert result.mime_type == "image/jpeg"
        assert _decode(result.blob).size == (40, 30)

    def test_plain_crop_keeps_pixels(self, split_color_png_bytes: bytes) -> None:
        spec = CropSpecification(pixel_rect=PixelRect(x=0, y=0, width=100, height=50))

        decoded = _decode(CropEngine().crop(split_color_png_bytes, spec).blob)

        assert _is_red(decoded.getpixel((10, 25)))
        assert _is_blue(decoded.getpixel((90, 25)))

    def test_horizontal_flip_mirrors_pixels(self, split_color_png_bytes: bytes) -> None:
        spec = CropSpecification(
            pixel_rect=PixelRect(x=0, y=0, width=100, height=50),
            flip=Flip(horizontal=True),
        )

        decoded = _decode(CropEngine().crop(split_color_png_bytes, spec).blob)

        assert _is_blue(decoded.getpixel((10, 25)))
        assert _is_red(decoded.getpixel((90, 25)))

    def test_vertical_flip_keeps_left_right(self, split_color_png_bytes: bytes) -> None:
        spec = CropSpecification(
            pixel_rect=PixelRect(x=0, y=0, width=100, height=50),
            flip=Flip(vertical=True),
        )

        decoded = _decode(CropEngine().crop(split_color_png_bytes, spec).blob)

        assert _is_red(decoded.getpixel((10, 25)))

    def test_clockwise_quarter_turn(self, split_color_png_bytes: bytes) -> None:
        spec = CropSpecification(
            pixel_rect=PixelRect(x=0, y=0, width=50, height=100),
            rotation_degrees=90,
        )

        result = CropEngine().crop(split_color_png_bytes, spec)
        decoded = _decode(result.blob)

        assert decoded.size == (50, 100)
        assert _is_red(decoded.getpixel((25, 10)))
        assert _is_blue(decoded.getpixel((25, 90)))

    def test_region_outside_canvas_is_black(self, split_color_png_bytes: bytes) -> None:
        spec = CropSpecification(pixel_rect=PixelRect(x=80, y=0, width=40, height=50))

        decoded = _decode(CropEngine().crop(split_color_png_bytes, spec).blob)

        assert decoded.size == (40, 50)
        assert max(decoded.getpixel((35, 25))) < 40

    def test_uses_configured_quality(self, split_color_png_bytes: bytes) -> None:
        spec = CropSpecification(pixel_rect=PixelRect(x=0, y=0, width=20, height=20))

        result = CropEngine(quality=0.6).crop(split_color_png_bytes, spec)

        assert result.quality == 0.6

    def test_invalid_source_raises_decode_error(self) -> None:
        spec = CropSpecification(pixel_rect=PixelRect(x=0, y=0, width=10, height=10))
        with pytest.raises(DecodeError):
            CropEngine().crop(b"not an image", spec)

    def test_allocation_failure_raises_render_context_error(
        self, split_color_png_bytes: bytes
    ) -> None:
        spec = CropSpecification(pixel_rect=PixelRect(x=0, y=0, width=10, height=10))

        with patch.object(Image, "new", side_effect=MemoryError("out of memory")):
            with pytest.raises(RenderContextError):
                CropEngine().crop(split_color_png_bytes, spec)


class TestCropSpecification:
    def test_defaults(self) -> None:
        spec = CropSpecification(pixel_rect=PixelRect(x=0, y=0, width=10, height=10))
        assert spec.rotation_degrees == 0
        assert spec.flip == Flip(horizontal=False, vertical=False)
        assert spec.aspect_ratio is None

    @pytest.mark.parametrize("rotation", [-181, 181, 360])
    def test_rejects_rotation_out_of_range(self, rotation: float) -> None:
        with pytest.raises(ValueError, match="rotation_degrees"):
            CropSpecification(
                pixel_rect=PixelRect(x=0, y=0, width=10, height=10),
                rotation_degrees=rotation,
            )

    def test_accepts_rotation_bounds(self) -> None:
        for rotation in (-180, 180):
            CropSpecification(
                pixel_rect=PixelRect(x=0, y=0, width=10, height=10),
                rotation_degrees=rotation,
            )

    def test_rejects_empty_rect(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            CropSpecification(pixel_rect=PixelRect(x=0, y=0, width=0, height=10))

    def test_aspect_ratio_must_match_rect(self) -> None:
        with pytest.raises(ValueError, match="aspect ratio"):
            CropSpecification(
                pixel_rect=PixelRect(x=0, y=0, width=100, height=100),
                aspect_ratio=ASPECT_RATIOS["LANDSCAPE_16_9"],
            )

    def test_aspect_ratio_allows_one_pixel_rounding(self) -> None:
        spec = CropSpecification(
            pixel_rect=PixelRect(x=0, y=0, width=161, height=90),
            aspect_ratio=ASPECT_RATIOS["LANDSCAPE_16_9"],
        )
        assert spec.aspect_ratio == pytest.approx(16 / 9)


class TestCroppedFilename:
    def test_appends_suffix_and_subtype(self) -> None:
        assert cropped_filename("holiday.png") == "holiday_cropped.jpeg"

    def test_uses_given_mime_type(self) -> None:
        assert cropped_filename("scan.jpg", "image/webp") == "scan_cropped.webp"

    def test_keeps_inner_dots_in_stem(self) -> None:
        assert cropped_filename("a.b.c.png") == "a.b.c_cropped.jpeg"
