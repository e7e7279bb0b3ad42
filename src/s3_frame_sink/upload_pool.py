"""
Upload worker pool: bounded concurrent PutObject calls off the producer thread.

Backpressure: a semaphore sized to max_in_flight is acquired in submit() before
the task is handed to the executor and released when the task finishes, so the
(max_in_flight + 1)-th submit blocks the producer until a slot frees up.
Frames are never dropped.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from .errors import PermanentStorageError, TransientStorageError
from .interfaces import FrameStorage
from .keys import content_type_for
from .models import UploadResult, UploadStatus, UploadTask
from .tracker import CompletionTracker

logger = logging.getLogger(__name__)

DEFAULT_MAX_IN_FLIGHT = 8


class RetryPolicy:
    """Exponential backoff with jitter for transient put failures."""

    def __init__(
        self,
        max_retries: int = 5,
        *,
        base_delay: float = 0.005,
        max_delay: float = 32.0,
        rng: random.Random | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._rng = rng or random.Random()

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, attempt: int) -> float:
        """Sleep before the retry that follows failed attempt number `attempt` (1-based).
        Half the capped exponential delay, plus up to another half at random."""
        cap = min(self.max_delay, self.base_delay * (2 ** attempt))
        return cap / 2 + self._rng.uniform(0, cap / 2)


class UploadWorkerPool:
    """Runs UploadTasks on a thread pool; reports each outcome to the tracker once."""

    def __init__(
        self,
        storage: FrameStorage,
        bucket: str,
        tracker: CompletionTracker,
        *,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self._storage = storage
        self._bucket = bucket
        self._tracker = tracker
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep
        self.max_in_flight = max_in_flight
        self._slots = threading.BoundedSemaphore(max_in_flight)
        self._executor = ThreadPoolExecutor(
            max_workers=max_in_flight, thread_name_prefix="frame-upload"
        )
        self._lock = threading.Lock()
        self._outstanding: set[Future[UploadResult]] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._outstanding)

    def submit(self, task: UploadTask) -> Future[UploadResult]:
        """Schedule one upload. Blocks while max_in_flight uploads are running."""
        if self._closed:
            raise RuntimeError("upload pool is closed")
        self._slots.acquire()
        try:
            future = self._executor.submit(self._run, task)
        except RuntimeError:
            self._slots.release()
            raise
        with self._lock:
            self._outstanding.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future[UploadResult]) -> None:
        with self._lock:
            self._outstanding.discard(future)

    def _run(self, task: UploadTask) -> UploadResult:
        try:
            result = self._upload(task)
            self._tracker.record(task.sequence_number, result)
            return result
        finally:
            self._slots.release()

    def _upload(self, task: UploadTask) -> UploadResult:
        frame = task.frame
        content_type = content_type_for(frame.extension)
        attempt = 0
        while True:
            attempt += 1
            try:
                self._storage.put_object(
                    self._bucket, task.key, frame.payload, content_type=content_type
                )
            except TransientStorageError as e:
                if attempt >= self._retry.max_attempts:
                    logger.error(
                        "frame=%s key=%s attempts exhausted (%s): %s",
                        frame.sequence_number,
                        task.key,
                        attempt,
                        e,
                    )
                    return self._result(task, UploadStatus.FAILED, attempt, str(e))
                logger.warning(
                    "frame=%s attempt %s/%s failed: %s",
                    frame.sequence_number,
                    attempt,
                    self._retry.max_attempts,
                    e,
                )
                self._sleep(self._retry.delay(attempt))
                continue
            except PermanentStorageError as e:
                return self._result(task, UploadStatus.FAILED, attempt, str(e))
            except Exception as e:
                logger.exception("frame=%s key=%s unexpected upload error", frame.sequence_number, task.key)
                return self._result(task, UploadStatus.FAILED, attempt, f"{type(e).__name__}: {e}")
            logger.debug("frame=%s key=%s stored (attempts=%s)", frame.sequence_number, task.key, attempt)
            return self._result(task, UploadStatus.SUCCEEDED, attempt)

    @staticmethod
    def _result(
        task: UploadTask,
        status: UploadStatus,
        attempts: int,
        error: str | None = None,
    ) -> UploadResult:
        return UploadResult(
            sequence_number=task.sequence_number,
            key=task.key,
            status=status,
            attempts=attempts,
            error=error,
        )

    def drain(self) -> None:
        """Wait for every submitted upload to finish, then stop the workers.
        In-flight writes are never cancelled."""
        self._closed = True
        with self._lock:
            pending = list(self._outstanding)
        if pending:
            logger.info("waiting for %s in-flight upload(s)", len(pending))
            wait(pending)
        self._executor.shutdown(wait=True)
