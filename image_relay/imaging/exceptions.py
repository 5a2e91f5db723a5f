class ImagingError(Exception):
    """Base exception for all image handling errors."""


class DecodeError(ImagingError):
    """Raised when input bytes are not a decodable raster image."""


class RenderContextError(ImagingError):
    """Raised when a drawing surface for the crop engine cannot be acquired."""


class InputRejectedError(ImagingError):
    """Raised when an input is rejected before processing (wrong MIME type, too large)."""


class SourceFetchError(ImagingError):
    """Raised when an image cannot be read from its source (path or URL)."""
