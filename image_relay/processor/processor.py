import httpx

from image_relay.config.settings import Settings
from image_relay.health.base import BaseHealthStore
from image_relay.health.factory import HealthStoreFactory
from image_relay.health.registry import ProviderHealthRegistry
from image_relay.imaging.crop import CropEngine
from image_relay.imaging.models import CropSpecification, SourceImage
from image_relay.imaging.preprocessor import ImagePreprocessor
from image_relay.logging.logger import Log
from image_relay.processor.models import OutcomeStatus, UploadOutcome
from image_relay.processor.pipeline import PipelineContext, PipelineStep
from image_relay.processor.steps import (
    CropStep,
    PersistStep,
    PreprocessStep,
    UploadStep,
    ValidateInputStep,
)
from image_relay.providers.factory import ProviderFactory
from image_relay.records.base import BaseImageRecordStore
from image_relay.records.factory import RecordStoreFactory
from image_relay.records.persistence import ResultPersistenceAdapter
from image_relay.upload.orchestrator import UploadOrchestrator
from image_relay.upload.progress import ProgressSink


class UploadProcessor:
    """Runs one input through the upload pipeline.

    Pipeline: validate -> preprocess -> crop (optional) -> upload -> persist.
    Input, decode and render errors and provider exhaustion propagate; a
    failed record write after a successful upload is reported in the outcome.
    """

    def __init__(self, steps: list[PipelineStep], registry: ProviderHealthRegistry) -> None:
        self._steps = steps
        self.registry = registry

    async def process(
        self,
        source: SourceImage,
        *,
        category: str,
        crop: CropSpecification | None = None,
        progress: ProgressSink | None = None,
        max_retries_per_provider: int | None = None,
    ) -> UploadOutcome:
        Log.info(f"Processing {source.filename} ({source.size_bytes} bytes, {source.mime_type})")
        context = PipelineContext(
            source=source,
            category=category,
            crop=crop,
            max_retries_per_provider=max_retries_per_provider,
        )
        if progress is not None:
            context.progress = progress

        for step in self._steps:
            context = await step.run(context)

        if context.record is None:
            return UploadOutcome(
                source=source.filename,
                status=OutcomeStatus.PERSIST_FAILED,
                result=context.upload_result,
                error_message=context.error_message,
            )
        return UploadOutcome(
            source=source.filename,
            status=OutcomeStatus.COMPLETED,
            result=context.upload_result,
            record=context.record,
        )


def build_processor(
    settings: Settings,
    client: httpx.AsyncClient,
    *,
    health_store: BaseHealthStore | None = None,
    record_store: BaseImageRecordStore | None = None,
) -> UploadProcessor:
    """Build an UploadProcessor with all adapters chosen by settings."""
    providers = ProviderFactory.create_all(settings, client)
    registry = ProviderHealthRegistry(
        health_store or HealthStoreFactory.create(settings),
        [p.name for p in providers],
    )
    orchestrator = UploadOrchestrator(
        providers,
        registry,
        max_retries_per_provider=settings.upload_max_retries_per_provider,
        timeout_seconds=settings.upload_timeout_seconds,
        backoff_base_seconds=settings.upload_backoff_base_seconds,
    )
    preprocessor = ImagePreprocessor(
        max_width=settings.preprocess_max_width,
        max_height=settings.preprocess_max_height,
        initial_quality=settings.preprocess_initial_quality,
        min_quality=settings.preprocess_min_quality,
        size_cap_bytes=settings.preprocess_size_cap_bytes,
    )
    persistence = ResultPersistenceAdapter(record_store or RecordStoreFactory.create(settings))
    steps: list[PipelineStep] = [
        ValidateInputStep(settings.input_max_bytes),
        PreprocessStep(preprocessor),
        CropStep(CropEngine(quality=settings.crop_quality)),
        UploadStep(orchestrator),
        PersistStep(persistence),
    ]
    return UploadProcessor(steps, registry)
