from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from image_relay.imaging.models import CropSpecification, PreprocessedImage, SourceImage
from image_relay.records.models import ImageRecord
from image_relay.upload.models import UploadResult
from image_relay.upload.progress import NullProgressSink, ProgressSink


@dataclass(slots=True)
class PipelineContext:
    source: SourceImage
    category: str
    crop: CropSpecification | None = None
    progress: ProgressSink = field(default_factory=NullProgressSink)
    max_retries_per_provider: int | None = None
    preprocessed: PreprocessedImage | None = None
    upload_filename: str = ""
    upload_result: UploadResult | None = None
    record: ImageRecord | None = None
    error_message: str = ""


class PipelineStep(ABC):
    @abstractmethod
    async def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
