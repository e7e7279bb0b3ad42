"""Shared test helpers: an in-memory FrameStorage with failure injection."""

import threading
import time

from s3_frame_sink.errors import BucketRegionMismatchError
from s3_frame_sink.models import Frame, UploadTask


class InMemoryFrameStorage:
    """
    FrameStorage fake.

    buckets maps bucket name -> region. put_failures maps key -> exceptions to
    raise on successive put attempts. When gate is set to an unset Event, puts
    wait on it, which lets tests hold uploads in flight.
    """

    def __init__(self, buckets: dict[str, str] | None = None) -> None:
        self.buckets: dict[str, str] = dict(buckets or {})
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[str, str | None] = {}
        self.put_failures: dict[str, list[Exception]] = {}
        self.put_attempts: dict[str, int] = {}
        self.create_calls: list[tuple[str, str]] = []
        self.gate: threading.Event | None = None
        self.active = 0
        self.max_active = 0
        self._cond = threading.Condition()

    def bucket_exists(self, bucket: str, region: str) -> bool:
        existing = self.buckets.get(bucket)
        if existing is None:
            return False
        if existing != region:
            raise BucketRegionMismatchError(
                f"PermanentRedirect (301): bucket {bucket!r} is in region {existing!r}",
                bucket_region=existing,
            )
        return True

    def create_bucket(self, bucket: str, region: str) -> bool:
        self.create_calls.append((bucket, region))
        if bucket in self.buckets:
            return False
        self.buckets[bucket] = region
        return True

    def put_object(self, bucket, key, body, *, content_type=None) -> None:
        with self._cond:
            self.put_attempts[key] = self.put_attempts.get(key, 0) + 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self._cond.notify_all()
        try:
            if self.gate is not None:
                self.gate.wait(timeout=5)
            failures = self.put_failures.get(key)
            if failures:
                raise failures.pop(0)
            with self._cond:
                self.objects[(bucket, key)] = body
                self.content_types[key] = content_type
        finally:
            with self._cond:
                self.active -= 1
                self._cond.notify_all()

    def wait_for_active(self, n: int, timeout: float = 5.0) -> bool:
        """Block until at least n puts are running at once."""
        deadline = time.monotonic() + timeout
        with self._cond:
            while self.active < n:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def keys(self, bucket: str) -> set[str]:
        return {k for (b, k) in self.objects if b == bucket}

    @property
    def total_put_attempts(self) -> int:
        return sum(self.put_attempts.values())


def make_task(sequence_number: int, payload: bytes = b"img", prefix: str = "deja_vu") -> UploadTask:
    """UploadTask for a png frame with the standard key."""
    frame = Frame(sequence_number=sequence_number, payload=payload, extension="png")
    return UploadTask(frame=frame, key=f"{prefix}/frame{sequence_number:02d}.png")


def wait_until(predicate, timeout: float = 5.0) -> bool:
    """Poll predicate until it returns True or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
