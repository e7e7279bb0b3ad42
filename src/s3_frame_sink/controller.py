"""
Ingest controller: the push interface the host pipeline calls for every buffer.

States: IDLE -> PROVISIONING -> STREAMING -> DRAINING -> CLOSED, with FAILED
reachable from IDLE, PROVISIONING and STREAMING.

Sequence numbers are assigned under one lock in arrival order, starting at 0,
with no gaps or reuse. Uploads may complete in any order. push() blocks while
the upload pool is saturated; that blocking is the host's backpressure signal.
"""

from __future__ import annotations

import logging
import threading
from collections import deque

from .interfaces import FrameStorage
from .keys import build_frame_key
from .models import (
    BucketState,
    ControllerState,
    DrainReport,
    FlowSignal,
    Frame,
    SessionConfig,
    UploadResult,
    UploadStatus,
    UploadTask,
)
from .provisioner import BucketProvisioner
from .tracker import CompletionTracker
from .upload_pool import DEFAULT_MAX_IN_FLIGHT, RetryPolicy, UploadWorkerPool

logger = logging.getLogger(__name__)

_ACCEPTING = (ControllerState.PROVISIONING, ControllerState.STREAMING)


class IngestController:
    """Turns an ordered stream of image buffers into uniquely keyed uploads."""

    def __init__(
        self,
        config: SessionConfig,
        storage: FrameStorage,
        *,
        tracker: CompletionTracker | None = None,
        provisioner: BucketProvisioner | None = None,
        pool: UploadWorkerPool | None = None,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        retry_policy: RetryPolicy | None = None,
        pending_frame_limit: int = 0,
        fail_on_unhealthy: bool = False,
    ) -> None:
        self.config = config
        self.tracker = tracker or CompletionTracker()
        self._provisioner = provisioner or BucketProvisioner(storage)
        self._pool = pool or UploadWorkerPool(
            storage,
            config.bucket,
            self.tracker,
            max_in_flight=max_in_flight,
            retry_policy=retry_policy,
        )
        self._pending_limit = max(0, pending_frame_limit)
        self._fail_on_unhealthy = fail_on_unhealthy

        self._push_lock = threading.Lock()
        self._state = ControllerState.IDLE
        self._bucket_state = BucketState.UNKNOWN
        self._next_sequence = 0
        self._pending: deque[Frame] = deque()
        self._provisioning_thread: threading.Thread | None = None
        self.failure_reason: str | None = None

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def bucket_state(self) -> BucketState:
        return self._bucket_state

    @property
    def frames_accepted(self) -> int:
        return self._next_sequence

    def start(self, *, wait: bool = True) -> ControllerState:
        """
        Begin the session: provision the bucket, then start streaming.

        With wait=False provisioning runs on a background thread and frames
        pushed meanwhile are queued (up to pending_frame_limit) or get NOT_READY.
        """
        with self._push_lock:
            if self._state != ControllerState.IDLE:
                raise RuntimeError(f"cannot start from state {self._state.value}")
            self._state = ControllerState.PROVISIONING
        logger.info(
            "session start bucket=%s region=%s prefix=%s extension=%s",
            self.config.bucket,
            self.config.region,
            self.config.key_prefix,
            self.config.extension,
        )
        if wait:
            self._provision()
        else:
            self._provisioning_thread = threading.Thread(
                target=self._provision, name="bucket-provisioning", daemon=True
            )
            self._provisioning_thread.start()
        return self._state

    def _provision(self) -> None:
        bucket_state = self._provisioner.ensure(self.config.bucket, self.config.region)
        with self._push_lock:
            self._bucket_state = bucket_state
            if self._state != ControllerState.PROVISIONING:
                # fail() was called while provisioning
                self._fail_pending()
                return
            if not bucket_state.is_ready:
                self._enter_failed(
                    self._provisioner.last_error or f"bucket {self.config.bucket} unavailable"
                )
                return
            self._state = ControllerState.STREAMING
            logger.info(
                "streaming to bucket=%s (%s), %s queued frame(s)",
                self.config.bucket,
                bucket_state.value,
                len(self._pending),
            )
            while self._pending:
                self._dispatch(self._pending.popleft())

    def push(self, buffer: bytes | bytearray | memoryview) -> FlowSignal:
        """Accept one encoded image buffer. May block while the upload pool is full."""
        with self._push_lock:
            if self._state == ControllerState.STREAMING:
                if self._fail_on_unhealthy and not self.tracker.is_healthy():
                    self._enter_failed("too many consecutive upload failures")
                    return FlowSignal.FAILED
                self._dispatch(self._next_frame(buffer))
                return FlowSignal.OK
            if self._state == ControllerState.PROVISIONING:
                if len(self._pending) >= self._pending_limit:
                    return FlowSignal.NOT_READY
                self._pending.append(self._next_frame(buffer))
                return FlowSignal.OK
            if self._state == ControllerState.FAILED:
                return FlowSignal.FAILED
            if self._state == ControllerState.IDLE:
                return FlowSignal.NOT_READY
            return FlowSignal.CLOSED

    def _next_frame(self, buffer: bytes | bytearray | memoryview) -> Frame:
        frame = Frame(
            sequence_number=self._next_sequence,
            payload=bytes(buffer),
            extension=self.config.extension,
        )
        self._next_sequence += 1
        return frame

    def _key_for(self, frame: Frame) -> str:
        return build_frame_key(self.config.key_prefix, frame.sequence_number, frame.extension)

    def _dispatch(self, frame: Frame) -> None:
        self._pool.submit(UploadTask(frame=frame, key=self._key_for(frame)))

    def fail(self, reason: str) -> None:
        """Move the session to FAILED; further pushes are rejected."""
        with self._push_lock:
            if self._state in _ACCEPTING or self._state == ControllerState.IDLE:
                self._enter_failed(reason)

    def _enter_failed(self, reason: str) -> None:
        self._state = ControllerState.FAILED
        self.failure_reason = reason
        logger.error("session failed bucket=%s: %s", self.config.bucket, reason)
        self._fail_pending()

    def _fail_pending(self) -> None:
        # Frames queued during provisioning already hold sequence numbers
        while self._pending:
            frame = self._pending.popleft()
            key = self._key_for(frame)
            self.tracker.record(
                frame.sequence_number,
                UploadResult(
                    sequence_number=frame.sequence_number,
                    key=key,
                    status=UploadStatus.FAILED,
                    attempts=0,
                    error=self.failure_reason or "session failed",
                ),
            )

    def finish(self) -> DrainReport:
        """
        End of stream: stop accepting frames, wait for every in-flight upload
        and return the session summary.
        """
        if self._provisioning_thread is not None:
            self._provisioning_thread.join()
        with self._push_lock:
            if self._state == ControllerState.IDLE:
                self._state = ControllerState.CLOSED
            elif self._state == ControllerState.STREAMING:
                self._state = ControllerState.DRAINING
        self._pool.drain()
        with self._push_lock:
            if self._state == ControllerState.DRAINING:
                self._state = ControllerState.CLOSED
        report = self.tracker.drain_report()
        logger.info(
            "session end state=%s succeeded=%s failed=%s",
            self._state.value,
            report.succeeded,
            report.failed,
        )
        return report

    def __enter__(self) -> IngestController:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.finish()
