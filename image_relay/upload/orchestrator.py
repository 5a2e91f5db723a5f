import asyncio
import time
from datetime import datetime, timezone

from image_relay.health.exceptions import HealthStoreError
from image_relay.health.registry import ProviderHealthRegistry
from image_relay.imaging.models import PreprocessedImage
from image_relay.logging.logger import Log
from image_relay.providers.base import BaseUploadProvider
from image_relay.upload.exceptions import AllProvidersExhaustedError
from image_relay.upload.models import (
    AttemptOutcome,
    ProgressEvent,
    UploadAttempt,
    UploadMetadata,
    UploadResult,
    safe_filename,
)
from image_relay.upload.progress import NullProgressSink, ProgressSink


class UploadOrchestrator:
    """Uploads one image, trying providers in health order with retry and fallback.

    Per call: the provider order is computed once from the registry. Each
    provider gets ``max_retries_per_provider + 1`` attempts with exponential
    backoff (``backoff_base_seconds * 2**attempt``) between them. The first
    success ends the call. Every attempt outcome is reported to the registry,
    except cancellation, which propagates as ``asyncio.CancelledError``.
    """

    def __init__(
        self,
        providers: list[BaseUploadProvider],
        registry: ProviderHealthRegistry,
        *,
        max_retries_per_provider: int = 2,
        timeout_seconds: float = 30.0,
        backoff_base_seconds: float = 1.0,
    ) -> None:
        names = [p.name for p in providers]
        if len(set(names)) != len(names):
            raise ValueError(f"Provider names must be unique, got {names}")
        if max_retries_per_provider < 0:
            raise ValueError("max_retries_per_provider must be >= 0")
        self._providers = {p.name: p for p in providers}
        self._registry = registry
        self._max_retries = max_retries_per_provider
        self._timeout_seconds = timeout_seconds
        self._backoff_base_seconds = backoff_base_seconds

    async def upload_with_fallback(
        self,
        image: PreprocessedImage,
        filename: str,
        *,
        original_filename: str | None = None,
        progress: ProgressSink | None = None,
        max_retries_per_provider: int | None = None,
    ) -> UploadResult:
        """Upload ``image`` to the first provider that accepts it.

        Raises:
            AllProvidersExhaustedError: if every provider's retry budget is spent.
            asyncio.CancelledError: if the surrounding task is cancelled.
        """
        sink = progress or NullProgressSink()
        max_retries = (
            self._max_retries if max_retries_per_provider is None else max_retries_per_provider
        )
        provider_queue = await self._registry.safe_rank()
        Log.info(
            f"Uploading {filename} ({image.size_bytes} bytes), providers to try: {provider_queue}"
        )

        attempts: list[UploadAttempt] = []
        last_error: str | None = None

        for provider_name in provider_queue:
            provider = self._providers.get(provider_name)
            if provider is None:
                Log.warning(f"Ranked provider '{provider_name}' is not configured, skipping")
                continue

            for attempt in range(max_retries + 1):
                sink.emit(ProgressEvent.attempt_started(provider_name, attempt))
                started_at = datetime.now(timezone.utc)
                started = time.monotonic()
                try:
                    remote_url = await asyncio.wait_for(
                        provider.upload(image.blob, filename),
                        timeout=self._timeout_seconds,
                    )
                except asyncio.CancelledError:
                    Log.info(
                        f"Upload of {filename} cancelled during {provider_name} "
                        f"attempt {attempt + 1}"
                    )
                    raise
                except asyncio.TimeoutError:
                    error_message = (
                        f"{provider_name} upload timed out after {self._timeout_seconds}s"
                    )
                except Exception as exc:
                    error_message = str(exc) or type(exc).__name__
                else:
                    response_time_ms = _elapsed_ms(started)
                    attempts.append(
                        UploadAttempt(
                            provider_name=provider_name,
                            attempt_index=attempt,
                            started_at=started_at,
                            outcome=AttemptOutcome.SUCCESS,
                            response_time_ms=response_time_ms,
                        )
                    )
                    await self._record(provider_name, True, response_time_ms)
                    sink.emit(ProgressEvent.completed(provider_name))
                    Log.info(f"Upload successful with {provider_name}: {remote_url}")
                    return UploadResult(
                        remote_url=remote_url,
                        provider_name=provider_name,
                        metadata=UploadMetadata(
                            filename=safe_filename(filename),
                            original_filename=original_filename or filename,
                            size_bytes=image.size_bytes,
                            width=image.width,
                            height=image.height,
                            mime_type=image.mime_type,
                        ),
                        attempts=attempts,
                    )

                response_time_ms = _elapsed_ms(started)
                last_error = error_message
                attempts.append(
                    UploadAttempt(
                        provider_name=provider_name,
                        attempt_index=attempt,
                        started_at=started_at,
                        outcome=AttemptOutcome.FAILURE,
                        response_time_ms=response_time_ms,
                        error_message=error_message,
                    )
                )
                Log.error(
                    f"{provider_name} upload attempt {attempt + 1} failed: {error_message}"
                )
                await self._record(provider_name, False, response_time_ms, error_message)
                sink.emit(ProgressEvent.failed(provider_name))

                if attempt < max_retries:
                    delay = self._backoff_base_seconds * 2**attempt
                    Log.debug(f"Retrying {provider_name} in {delay}s")
                    await asyncio.sleep(delay)

        raise AllProvidersExhaustedError(last_error, attempts)

    async def _record(
        self,
        provider_name: str,
        success: bool,
        response_time_ms: float,
        error_message: str | None = None,
    ) -> None:
        try:
            await self._registry.record_outcome(
                provider_name, success, response_time_ms, error_message
            )
        except HealthStoreError as exc:
            Log.warning(f"Could not record outcome for {provider_name}: {exc}")


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 1)
