import math

from PIL import Image, ImageOps

from image_relay.imaging.exceptions import RenderContextError
from image_relay.imaging.models import CropSpecification, PreprocessedImage
from image_relay.imaging.preprocessor import OUTPUT_MIME_TYPE, decode_image, encode_jpeg
from image_relay.logging.logger import Log


def rotated_bounding_box(
    width: float, height: float, rotation_degrees: float
) -> tuple[float, float]:
    """Axis-aligned bounding box of a width x height rectangle rotated about its centre."""
    theta = math.radians(rotation_degrees)
    cos_t = abs(math.cos(theta))
    sin_t = abs(math.sin(theta))
    return cos_t * width + sin_t * height, sin_t * width + cos_t * height


class CropEngine:
    """Rotates, flips and crops an image into a new JPEG blob."""

    def __init__(self, quality: float = 0.85) -> None:
        self._quality = quality

    def crop(self, source_blob: bytes, spec: CropSpecification) -> PreprocessedImage:
        """Apply ``spec`` to ``source_blob``.

        The source is flipped, rotated clockwise by ``spec.rotation_degrees``
        about its centre and drawn onto a canvas the size of the rotated
        bounding box; ``spec.pixel_rect`` is then cut out of that canvas.
        Regions of the rectangle outside the canvas come out black.

        Raises:
            DecodeError: if ``source_blob`` is not a valid image.
            RenderContextError: if a drawing surface cannot be allocated.
        """
        source = decode_image(source_blob).convert("RGB")
        rendered = self._render_rotated(source, spec)

        rect = spec.pixel_rect
        left = round(rect.x)
        top = round(rect.y)
        out_width = max(1, round(rect.width))
        out_height = max(1, round(rect.height))
        try:
            output = Image.new("RGB", (out_width, out_height))
            output.paste(rendered.crop((left, top, left + out_width, top + out_height)))
        except (MemoryError, ValueError) as exc:
            raise RenderContextError(f"Could not allocate crop output: {exc}") from exc

        Log.debug(
            f"Cropped {out_width}x{out_height} at ({left},{top}) "
            f"from {rendered.width}x{rendered.height} canvas"
        )
        return PreprocessedImage(
            blob=encode_jpeg(output, self._quality),
            mime_type=OUTPUT_MIME_TYPE,
            width=out_width,
            height=out_height,
            quality=self._quality,
        )

    @staticmethod
    def _render_rotated(source: Image.Image, spec: CropSpecification) -> Image.Image:
        bbox_width, bbox_height = rotated_bounding_box(
            source.width, source.height, spec.rotation_degrees
        )
        canvas_size = (max(1, int(bbox_width)), max(1, int(bbox_height)))

        flipped = source
        if spec.flip.horizontal:
            flipped = ImageOps.mirror(flipped)
        if spec.flip.vertical:
            flipped = ImageOps.flip(flipped)

        try:
            canvas = Image.new("RGB", canvas_size)
            # Pillow rotates counter-clockwise; positive degrees here mean clockwise.
            rotated = flipped.rotate(
                -spec.rotation_degrees,
                resample=Image.Resampling.BICUBIC,
                expand=True,
            )
        except (MemoryError, ValueError) as exc:
            raise RenderContextError(f"Could not allocate render canvas: {exc}") from exc

        offset = (
            (canvas_size[0] - rotated.width) // 2,
            (canvas_size[1] - rotated.height) // 2,
        )
        canvas.paste(rotated, offset)
        return canvas
