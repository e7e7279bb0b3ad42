"""
Command-line host for the frame sink: pushes every image file in a directory,
in sorted order, through an IngestController and prints the drain report.

Exit codes: 0 all frames stored, 1 some frames failed, 2 configuration or
session failure.
"""

import argparse
import logging
import sys
from collections.abc import Iterator, Sequence
from pathlib import Path

from .config import SinkSettings, get_settings
from .controller import IngestController
from .env_config import check_credentials, object_storage_from_settings
from .errors import ConfigurationError
from .interfaces import FrameStorage
from .logging_config import configure_logging
from .models import ControllerState, FlowSignal
from .tracker import CompletionTracker
from .upload_pool import RetryPolicy

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FRAMES_FAILED = 1
EXIT_SESSION_FAILED = 2


def build_controller(settings: SinkSettings, storage: FrameStorage) -> IngestController:
    """Wire an IngestController from validated settings."""
    config = settings.session_config()
    return IngestController(
        config,
        storage,
        tracker=CompletionTracker(unhealthy_after_failures=settings.unhealthy_after_failures),
        max_in_flight=settings.max_in_flight,
        retry_policy=RetryPolicy(
            settings.max_retries,
            base_delay=settings.backoff_base_seconds,
            max_delay=settings.backoff_max_seconds,
        ),
        pending_frame_limit=settings.pending_frame_limit,
        fail_on_unhealthy=settings.fail_on_unhealthy,
    )


def iter_frame_files(frames_dir: Path, extension: str) -> Iterator[Path]:
    """Yield frame files with the session extension (any case) in sorted name order."""
    suffix = f".{extension.lower()}"
    yield from sorted(
        p for p in frames_dir.iterdir() if p.is_file() and p.suffix.lower() == suffix
    )


def run(settings: SinkSettings, frames_dir: Path, storage: FrameStorage) -> int:
    """Push all frames from frames_dir and return the process exit code."""
    controller = build_controller(settings, storage)
    if controller.start() == ControllerState.FAILED:
        print(f"session failed: {controller.failure_reason}", file=sys.stderr)
        controller.finish()
        return EXIT_SESSION_FAILED

    for path in iter_frame_files(frames_dir, controller.config.extension):
        signal = controller.push(path.read_bytes())
        if signal != FlowSignal.OK:
            logger.error("frame %s rejected (%s)", path.name, signal.value)
            break

    report = controller.finish()
    print(f"stored {report.succeeded} frame(s), {report.failed} failed")
    for key in report.failed_keys:
        print(f"  failed: {key}: {report.errors.get(key, '')}")
    if controller.state == ControllerState.FAILED:
        print(f"session failed: {controller.failure_reason}", file=sys.stderr)
        return EXIT_SESSION_FAILED
    return EXIT_OK if report.ok else EXIT_FRAMES_FAILED


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Upload encoded video frames to an S3 bucket, one object per frame."
    )
    parser.add_argument("--frames-dir", required=True, type=Path, help="Directory of encoded frames")
    parser.add_argument("--bucket", help="Target bucket (FRAME_SINK_BUCKET)")
    parser.add_argument("--region", help="Bucket region, e.g. us-west-2 (FRAME_SINK_REGION)")
    parser.add_argument("--key", help="Object key prefix (FRAME_SINK_KEY)")
    parser.add_argument("--extension", help="Image extension, default png (FRAME_SINK_EXTENSION)")
    parser.add_argument("--max-in-flight", type=int, help="Concurrent uploads (FRAME_SINK_MAX_IN_FLIGHT)")
    parser.add_argument("--credentials-file", help="AWS shared credentials file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    if not args.frames_dir.is_dir():
        print(f"not a directory: {args.frames_dir}", file=sys.stderr)
        return EXIT_SESSION_FAILED
    try:
        settings = get_settings(
            bucket=args.bucket,
            region=args.region,
            key=args.key,
            extension=args.extension,
            max_in_flight=args.max_in_flight,
            credentials_file=args.credentials_file,
        )
        settings.session_config()
        check_credentials(settings.credentials_file)
    except ConfigurationError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_SESSION_FAILED
    return run(settings, args.frames_dir, object_storage_from_settings(settings))


if __name__ == "__main__":
    sys.exit(main())
