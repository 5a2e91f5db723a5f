import asyncio

from image_relay.imaging.crop import CropEngine
from image_relay.imaging.models import cropped_filename
from image_relay.imaging.preprocessor import ImagePreprocessor
from image_relay.imaging.sources import validate_source
from image_relay.logging.logger import Log
from image_relay.processor.pipeline import PipelineContext, PipelineStep
from image_relay.records.exceptions import PersistenceError
from image_relay.records.persistence import ResultPersistenceAdapter
from image_relay.upload.orchestrator import UploadOrchestrator


class ValidateInputStep(PipelineStep):
    def __init__(self, max_bytes: int) -> None:
        self._max_bytes = max_bytes

    async def run(self, context: PipelineContext) -> PipelineContext:
        validate_source(context.source, self._max_bytes)
        context.upload_filename = context.source.filename
        return context


class PreprocessStep(PipelineStep):
    def __init__(self, preprocessor: ImagePreprocessor) -> None:
        self._preprocessor = preprocessor

    async def run(self, context: PipelineContext) -> PipelineContext:
        context.preprocessed = await asyncio.to_thread(
            self._preprocessor.preprocess, context.source.data
        )
        Log.info(
            f"Preprocessed {context.source.filename}: {context.preprocessed.width}x"
            f"{context.preprocessed.height}, {context.preprocessed.size_bytes} bytes"
        )
        return context


class CropStep(PipelineStep):
    """Applies the crop specification, if any, to the preprocessed image."""

    def __init__(self, crop_engine: CropEngine) -> None:
        self._crop_engine = crop_engine

    async def run(self, context: PipelineContext) -> PipelineContext:
        if context.crop is None:
            return context
        if context.preprocessed is None:
            raise ValueError("PipelineContext.preprocessed must be set before cropping")
        cropped = await asyncio.to_thread(
            self._crop_engine.crop, context.preprocessed.blob, context.crop
        )
        context.preprocessed = cropped
        context.upload_filename = cropped_filename(context.source.filename, cropped.mime_type)
        Log.info(f"Cropped {context.source.filename} to {cropped.width}x{cropped.height}")
        return context


class UploadStep(PipelineStep):
    def __init__(self, orchestrator: UploadOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def run(self, context: PipelineContext) -> PipelineContext:
        if context.preprocessed is None:
            raise ValueError("PipelineContext.preprocessed must be set before upload")
        context.upload_result = await self._orchestrator.upload_with_fallback(
            context.preprocessed,
            context.upload_filename or context.source.filename,
            original_filename=context.source.filename,
            progress=context.progress,
            max_retries_per_provider=context.max_retries_per_provider,
        )
        return context


class PersistStep(PipelineStep):
    """Saves the upload result; a store failure is reported on the context, not raised."""

    def __init__(self, persistence: ResultPersistenceAdapter) -> None:
        self._persistence = persistence

    async def run(self, context: PipelineContext) -> PipelineContext:
        if context.upload_result is None:
            raise ValueError("PipelineContext.upload_result must be set before persist")
        try:
            context.record = await self._persistence.persist(
                context.upload_result,
                context.category,
                fallback_filename=context.source.filename,
            )
        except PersistenceError as exc:
            context.error_message = str(exc)
        return context
