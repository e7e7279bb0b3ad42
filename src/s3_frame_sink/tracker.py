"""Completion bookkeeping: per-frame outcomes and aggregate session health."""

import logging
import threading

from .models import DrainReport, UploadResult

logger = logging.getLogger(__name__)


class CompletionTracker:
    """
    Records exactly one UploadResult per sequence number.

    Called concurrently from upload workers; every read and write goes through
    one lock. Purely observational: no retries happen here.
    """

    def __init__(self, *, unhealthy_after_failures: int = 5) -> None:
        if unhealthy_after_failures < 1:
            raise ValueError("unhealthy_after_failures must be >= 1")
        self._unhealthy_after = unhealthy_after_failures
        self._lock = threading.Lock()
        # every frame below _watermark is recorded; _ahead holds recorded frames
        # above it, bounded by how far completions run out of order
        self._watermark = 0
        self._ahead: set[int] = set()
        self._succeeded = 0
        self._failed: dict[int, UploadResult] = {}
        self._consecutive_failures = 0

    def record(self, sequence_number: int, result: UploadResult) -> None:
        """Record the terminal outcome of one frame. A second record for the same frame raises."""
        with self._lock:
            if sequence_number < self._watermark or sequence_number in self._ahead:
                raise ValueError(f"frame {sequence_number} already recorded")
            self._ahead.add(sequence_number)
            while self._watermark in self._ahead:
                self._ahead.discard(self._watermark)
                self._watermark += 1
            if result.succeeded:
                self._succeeded += 1
                self._consecutive_failures = 0
            else:
                self._failed[sequence_number] = result
                self._consecutive_failures += 1
        if not result.succeeded:
            logger.warning(
                "frame=%s key=%s failed after %s attempt(s): %s",
                sequence_number,
                result.key,
                result.attempts,
                result.error,
            )

    @property
    def succeeded(self) -> int:
        with self._lock:
            return self._succeeded

    @property
    def failed(self) -> int:
        with self._lock:
            return len(self._failed)

    def is_healthy(self) -> bool:
        """False once the most recent unhealthy_after_failures outcomes were all failures."""
        with self._lock:
            return self._consecutive_failures < self._unhealthy_after

    def drain_report(self) -> DrainReport:
        """Snapshot of counts and failed keys, ordered by sequence number."""
        with self._lock:
            failed = [self._failed[n] for n in sorted(self._failed)]
            return DrainReport(
                succeeded=self._succeeded,
                failed=len(failed),
                failed_keys=[r.key for r in failed],
                errors={r.key: r.error or "" for r in failed},
            )
