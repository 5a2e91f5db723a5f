from image_relay.upload.exceptions import AllProvidersExhaustedError, UploadError
from image_relay.upload.models import ProgressEvent, UploadResult, UploadStatus
from image_relay.upload.orchestrator import UploadOrchestrator

__all__ = [
    "AllProvidersExhaustedError",
    "ProgressEvent",
    "UploadError",
    "UploadOrchestrator",
    "UploadResult",
    "UploadStatus",
]
