from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath


@dataclass(frozen=True)
class SourceImage:
    """Raw input as received from a file, URL or clipboard, before any processing."""

    data: bytes
    filename: str
    mime_type: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class PreprocessedImage:
    """Resized, re-encoded image ready for transmission.

    ``width`` and ``height`` always describe the encoded ``blob``, not the source.
    """

    blob: bytes
    mime_type: str
    width: int
    height: int
    quality: float = 0.85

    @property
    def size_bytes(self) -> int:
        return len(self.blob)


@dataclass(frozen=True)
class PixelRect:
    """Crop rectangle in pixels, relative to the rotated bounding box."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Flip:
    horizontal: bool = False
    vertical: bool = False


class CropShape(str, Enum):
    RECT = "rect"
    ROUND = "round"


ASPECT_RATIOS: dict[str, float | None] = {
    "FREE": None,
    "SQUARE": 1.0,
    "LANDSCAPE_4_3": 4 / 3,
    "LANDSCAPE_16_9": 16 / 9,
    "LANDSCAPE_3_2": 3 / 2,
    "PORTRAIT_3_4": 3 / 4,
    "PORTRAIT_9_16": 9 / 16,
    "PORTRAIT_2_3": 2 / 3,
}


@dataclass(frozen=True)
class CropSpecification:
    """User-chosen crop: rectangle, rotation, flip and optional aspect constraint.

    ``shape`` is a presentation hint only; the stored pixels are always the
    full rectangle.
    """

    pixel_rect: PixelRect
    rotation_degrees: float = 0.0
    flip: Flip = field(default_factory=Flip)
    aspect_ratio: float | None = None
    shape: CropShape = CropShape.RECT

    def __post_init__(self) -> None:
        if not -180 <= self.rotation_degrees <= 180:
            raise ValueError(
                f"rotation_degrees must be within -180..180, got {self.rotation_degrees}"
            )
        if self.pixel_rect.width <= 0 or self.pixel_rect.height <= 0:
            raise ValueError("pixel_rect width and height must be positive")
        if self.aspect_ratio is not None:
            if self.aspect_ratio <= 0:
                raise ValueError("aspect_ratio must be positive")
            expected_width = self.pixel_rect.height * self.aspect_ratio
            # One pixel of slack absorbs rounding in the selection tool.
            if abs(self.pixel_rect.width - expected_width) > 1:
                raise ValueError(
                    f"pixel_rect {self.pixel_rect.width}x{self.pixel_rect.height} "
                    f"does not match aspect ratio {self.aspect_ratio:.4f}"
                )


def cropped_filename(filename: str, mime_type: str = "image/jpeg") -> str:
    """Name for a cropped upload: ``<stem>_cropped.<subtype>``."""
    extension = mime_type.split("/")[1] if "/" in mime_type else ""
    extension = extension or "jpg"
    return f"{PurePath(filename).stem or filename}_cropped.{extension}"
