from image_relay.upload.models import UploadResult


class RecordStoreError(Exception):
    """Raised when the image record store rejects an operation."""


class RecordNotFoundError(RecordStoreError):
    """Raised when no image record exists for the given id."""


class PersistenceError(Exception):
    """Raised when a successful upload could not be written to the record store.

    The remote asset already exists; ``result`` can be persisted again later.
    """

    def __init__(self, message: str, result: UploadResult) -> None:
        super().__init__(message)
        self.result = result
