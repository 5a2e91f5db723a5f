from image_relay.upload.models import UploadAttempt


class UploadError(Exception):
    """Base exception for upload orchestration errors."""


class AllProvidersExhaustedError(UploadError):
    """Raised when every provider's retry budget is spent without a success."""

    def __init__(self, last_error: str | None, attempts: list[UploadAttempt]) -> None:
        super().__init__(
            f"All upload services failed. Last error: {last_error or 'Unknown error'}"
        )
        self.last_error = last_error
        self.attempts = attempts
