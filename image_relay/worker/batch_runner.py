import asyncio

from image_relay.config.settings import Settings
from image_relay.imaging.exceptions import ImagingError
from image_relay.imaging.models import CropSpecification
from image_relay.imaging.sources import SourceLoader
from image_relay.logging.logger import Log
from image_relay.processor.models import OutcomeStatus, UploadOutcome
from image_relay.processor.processor import UploadProcessor
from image_relay.upload.exceptions import UploadError
from image_relay.upload.progress import FanOutProgressSink, LoggingProgressSink, ProgressSink


class BatchRunner:
    """Uploads many inputs concurrently; one failing input never aborts the others.

    All uploads share the processor's health registry. ``cancel()`` stops
    every upload still in flight in every batch running on this runner; those
    inputs come back as CANCELLED.
    """

    def __init__(
        self,
        processor: UploadProcessor,
        loader: SourceLoader,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._loader = loader
        self._settings = settings
        self._tasks: set[asyncio.Task[UploadOutcome]] = set()

    async def run(
        self,
        locations: list[str],
        *,
        category: str | None = None,
        crop: CropSpecification | None = None,
        max_retries_per_provider: int | None = None,
        progress: ProgressSink | None = None,
    ) -> list[UploadOutcome]:
        """Upload every location (path, URL or ``-`` for stdin).

        Outcomes are returned in input order. Every upload logs its progress;
        ``progress`` additionally receives the events of all uploads.
        """
        semaphore = asyncio.Semaphore(max(1, self._settings.batch_concurrency))
        target_category = category or self._settings.default_category
        Log.info(f"Starting batch of {len(locations)} upload(s) into '{target_category}'")

        async def _bounded(location: str) -> UploadOutcome:
            async with semaphore:
                return await self._run_one(
                    location,
                    category=target_category,
                    crop=crop,
                    max_retries_per_provider=max_retries_per_provider,
                    progress=progress,
                )

        tasks = [asyncio.create_task(_bounded(loc)) for loc in locations]
        self._tasks.update(tasks)
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self._tasks.difference_update(tasks)

        outcomes: list[UploadOutcome] = []
        for location, result in zip(locations, results):
            if isinstance(result, asyncio.CancelledError):
                outcomes.append(
                    UploadOutcome(
                        source=location,
                        status=OutcomeStatus.CANCELLED,
                        error_message="Upload cancelled",
                    )
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(result)

        completed = sum(1 for o in outcomes if o.status is OutcomeStatus.COMPLETED)
        Log.info(f"Batch finished: {completed}/{len(outcomes)} uploaded and saved")
        return outcomes

    def cancel(self) -> None:
        """Cancel every unfinished upload of every batch running on this runner."""
        for task in self._tasks:
            task.cancel()

    async def _run_one(
        self,
        location: str,
        *,
        category: str,
        crop: CropSpecification | None,
        max_retries_per_provider: int | None,
        progress: ProgressSink | None,
    ) -> UploadOutcome:
        try:
            source = await self._loader.load(location)
            sink: ProgressSink = LoggingProgressSink(source.filename)
            if progress is not None:
                sink = FanOutProgressSink(sink, progress)
            return await self._processor.process(
                source,
                category=category,
                crop=crop,
                progress=sink,
                max_retries_per_provider=max_retries_per_provider,
            )
        except (ImagingError, UploadError) as exc:
            Log.error(f"Upload of {location} failed: {exc}")
            return UploadOutcome(
                source=location, status=OutcomeStatus.FAILED, error_message=str(exc)
            )
        except Exception as exc:
            Log.exception(f"Unexpected error uploading {location}")
            return UploadOutcome(
                source=location, status=OutcomeStatus.FAILED, error_message=str(exc)
            )
