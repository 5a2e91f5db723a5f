import argparse
import asyncio
import sys

import httpx
from psycopg_pool import PoolTimeout

from image_relay.config.settings import Settings
from image_relay.database.connection import apply_schema, close_pool, init_pool
from image_relay.health.factory import HealthStoreFactory
from image_relay.imaging.models import (
    ASPECT_RATIOS,
    CropShape,
    CropSpecification,
    Flip,
    PixelRect,
)
from image_relay.imaging.sources import SourceLoader, validate_image_url
from image_relay.logging.logger import Log
from image_relay.processor.models import OutcomeStatus, UploadOutcome
from image_relay.processor.processor import build_processor
from image_relay.worker.batch_runner import BatchRunner


def parse_crop(value: str) -> PixelRect:
    """Parse ``X,Y,W,H`` into a PixelRect."""
    parts = value.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("crop must be X,Y,WIDTH,HEIGHT")
    try:
        x, y, width, height = (float(p) for p in parts)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"crop values must be numbers: {value}") from exc
    return PixelRect(x=x, y=y, width=width, height=height)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-relay",
        description="Upload images to free hosting services with health-ranked fallback.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="upload files or URLs")
    upload.add_argument(
        "sources", nargs="+", help="file paths, http(s) URLs, or - to read a pasted image"
    )
    upload.add_argument("--stdin-type", default="image/png", metavar="MIME")
    upload.add_argument("--category", default=None)
    upload.add_argument("--max-retries", type=int, default=None)
    upload.add_argument("--crop", type=parse_crop, default=None, metavar="X,Y,W,H")
    upload.add_argument("--rotate", type=float, default=0.0, metavar="DEG")
    upload.add_argument("--flip-h", action="store_true")
    upload.add_argument("--flip-v", action="store_true")
    upload.add_argument(
        "--aspect", type=str.upper, choices=list(ASPECT_RATIOS), default="FREE"
    )
    upload.add_argument(
        "--shape", choices=[s.value for s in CropShape], default=CropShape.RECT.value
    )

    commands.add_parser("health", help="show provider health records")

    check_url = commands.add_parser(
        "check-url", help="check that URLs serve decodable images"
    )
    check_url.add_argument("urls", nargs="+")

    commands.add_parser("init-db", help="create database tables")
    return parser


def _crop_from_args(args: argparse.Namespace) -> CropSpecification | None:
    if args.crop is None:
        return None
    return CropSpecification(
        pixel_rect=args.crop,
        rotation_degrees=args.rotate,
        flip=Flip(horizontal=args.flip_h, vertical=args.flip_v),
        aspect_ratio=ASPECT_RATIOS[args.aspect],
        shape=CropShape(args.shape),
    )


def _uses_database(settings: Settings) -> bool:
    return "postgres" in (settings.health_store.lower(), settings.record_store.lower())


def _print_outcomes(outcomes: list[UploadOutcome]) -> None:
    for outcome in outcomes:
        detail = outcome.url or outcome.error_message
        print(f"{outcome.status.value:<15} {outcome.source}  {detail}")


async def _upload(settings: Settings, args: argparse.Namespace) -> int:
    crop = args.crop_spec
    async with httpx.AsyncClient(timeout=settings.upload_timeout_seconds) as client:
        processor = build_processor(settings, client)
        loader = SourceLoader(
            client,
            max_bytes=settings.input_max_bytes,
            timeout_seconds=settings.source_fetch_timeout_seconds,
            stdin_mime_type=args.stdin_type,
        )
        runner = BatchRunner(processor, loader, settings)
        outcomes = await runner.run(
            args.sources,
            category=args.category,
            crop=crop,
            max_retries_per_provider=args.max_retries,
        )
    _print_outcomes(outcomes)
    return 0 if all(o.status is OutcomeStatus.COMPLETED for o in outcomes) else 1


async def _health(settings: Settings) -> int:
    store = HealthStoreFactory.create(settings)
    for record in await store.get_all():
        print(
            f"{record.service_name:<12} active={record.is_active!s:<5} "
            f"uploads={record.successful_uploads}/{record.total_uploads} "
            f"rate={record.success_rate:.1f}% "
            f"last_ms={record.last_response_time_ms} "
            f"error={record.last_error_message or '-'}"
        )
    return 0


async def _check_urls(settings: Settings, args: argparse.Namespace) -> int:
    async with httpx.AsyncClient() as client:
        checks = [
            await validate_image_url(
                client,
                url,
                timeout_seconds=settings.source_fetch_timeout_seconds,
                max_bytes=settings.input_max_bytes,
            )
            for url in args.urls
        ]
    for url, check in zip(args.urls, checks):
        size = f"{check.width}x{check.height}" if check.valid else "-"
        print(f"{'valid' if check.valid else 'invalid':<8} {size:<11} {url}")
    return 0 if all(c.valid for c in checks) else 1


async def run(settings: Settings, args: argparse.Namespace) -> int:
    """Open the database pool if needed, run the command, and close the pool."""
    if args.command == "check-url":
        return await _check_urls(settings, args)
    if args.command == "init-db" or _uses_database(settings):
        try:
            await init_pool(settings)
        except PoolTimeout as exc:
            Log.error(f"Database unavailable at {settings.db_host}:{settings.db_port}: {exc}")
            return 1
    try:
        if args.command == "init-db":
            await apply_schema()
            Log.info("Database schema applied")
            return 0
        if args.command == "health":
            return await _health(settings)
        return await _upload(settings, args)
    finally:
        await close_pool()


def main(argv: list[str] | None = None) -> int:
    """Entry point: parse args -> configure logging -> run the command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "upload":
        try:
            args.crop_spec = _crop_from_args(args)
        except ValueError as exc:
            parser.error(str(exc))
    settings = Settings()
    Log.configure(settings.log_level)
    try:
        return asyncio.run(run(settings, args))
    except KeyboardInterrupt:
        Log.info("Interrupted, pending uploads cancelled")
        return 130


if __name__ == "__main__":
    sys.exit(main())
