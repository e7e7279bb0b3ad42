"""Tests for UploadWorkerPool: backpressure, retries, one outcome per frame."""

import random
import threading
import time
from unittest.mock import MagicMock

import pytest

from s3_frame_sink.errors import PermanentStorageError, TransientStorageError
from s3_frame_sink.models import UploadStatus
from s3_frame_sink.tracker import CompletionTracker
from s3_frame_sink.upload_pool import RetryPolicy, UploadWorkerPool

from tests.helpers import InMemoryFrameStorage, make_task

BUCKET = "example-bucket"


def _pool(storage, tracker=None, **kwargs):
    sleep = kwargs.pop("sleep", MagicMock())
    return UploadWorkerPool(storage, BUCKET, tracker or CompletionTracker(), sleep=sleep, **kwargs)


def test_upload_stores_payload_with_content_type() -> None:
    storage = InMemoryFrameStorage()
    tracker = CompletionTracker()
    pool = _pool(storage, tracker)
    result = pool.submit(make_task(0, b"\x89PNG")).result(timeout=5)
    pool.drain()
    assert result.status == UploadStatus.SUCCEEDED
    assert result.attempts == 1
    assert storage.objects[(BUCKET, "deja_vu/frame00.png")] == b"\x89PNG"
    assert storage.content_types["deja_vu/frame00.png"] == "image/png"
    assert tracker.drain_report().succeeded == 1


def test_submit_blocks_when_saturated_and_drops_nothing() -> None:
    storage = InMemoryFrameStorage()
    storage.gate = threading.Event()
    pool = _pool(storage, max_in_flight=2)
    submitted: list[int] = []

    def producer() -> None:
        for n in range(3):
            pool.submit(make_task(n))
            submitted.append(n)

    t = threading.Thread(target=producer)
    t.start()
    assert storage.wait_for_active(2)
    time.sleep(0.2)
    # third submit is held until a slot frees up
    assert submitted == [0, 1]
    assert t.is_alive()

    storage.gate.set()
    t.join(timeout=5)
    pool.drain()
    assert submitted == [0, 1, 2]
    assert storage.keys(BUCKET) == {
        "deja_vu/frame00.png",
        "deja_vu/frame01.png",
        "deja_vu/frame02.png",
    }
    assert storage.max_active <= 2


def test_transient_failure_then_success_recorded_once_as_succeeded() -> None:
    storage = InMemoryFrameStorage()
    storage.put_failures["deja_vu/frame00.png"] = [TransientStorageError("SlowDown")]
    tracker = CompletionTracker()
    sleep = MagicMock()
    pool = _pool(storage, tracker, sleep=sleep)
    result = pool.submit(make_task(0)).result(timeout=5)
    pool.drain()
    assert result.status == UploadStatus.SUCCEEDED
    assert result.attempts == 2
    report = tracker.drain_report()
    assert (report.succeeded, report.failed) == (1, 0)
    sleep.assert_called_once()


def test_permanent_failure_is_not_retried() -> None:
    storage = InMemoryFrameStorage()
    storage.put_failures["deja_vu/frame00.png"] = [PermanentStorageError("AccessDenied")]
    tracker = CompletionTracker()
    sleep = MagicMock()
    pool = _pool(storage, tracker, sleep=sleep)
    result = pool.submit(make_task(0)).result(timeout=5)
    pool.drain()
    assert result.status == UploadStatus.FAILED
    assert result.attempts == 1
    assert result.error == "AccessDenied"
    assert storage.put_attempts["deja_vu/frame00.png"] == 1
    sleep.assert_not_called()
    assert tracker.drain_report().failed_keys == ["deja_vu/frame00.png"]


def test_retries_exhausted_marks_frame_failed() -> None:
    storage = InMemoryFrameStorage()
    storage.put_failures["deja_vu/frame00.png"] = [
        TransientStorageError("RequestTimeout") for _ in range(10)
    ]
    tracker = CompletionTracker()
    sleep = MagicMock()
    pool = _pool(storage, tracker, sleep=sleep, retry_policy=RetryPolicy(2))
    result = pool.submit(make_task(0)).result(timeout=5)
    pool.drain()
    assert result.status == UploadStatus.FAILED
    assert result.attempts == 3
    assert sleep.call_count == 2
    report = tracker.drain_report()
    assert (report.succeeded, report.failed) == (0, 1)


def test_unexpected_error_still_recorded() -> None:
    storage = MagicMock()
    storage.put_object.side_effect = KeyError("boom")
    tracker = CompletionTracker()
    pool = _pool(storage, tracker)
    result = pool.submit(make_task(4)).result(timeout=5)
    pool.drain()
    assert result.status == UploadStatus.FAILED
    assert "KeyError" in result.error
    assert tracker.failed == 1


def test_other_frames_unaffected_by_one_failure() -> None:
    storage = InMemoryFrameStorage()
    storage.put_failures["deja_vu/frame01.png"] = [PermanentStorageError("InvalidRequest")]
    tracker = CompletionTracker()
    pool = _pool(storage, tracker, max_in_flight=3)
    for n in range(5):
        pool.submit(make_task(n))
    pool.drain()
    report = tracker.drain_report()
    assert report.succeeded == 4
    assert report.failed_keys == ["deja_vu/frame01.png"]


def test_drain_waits_for_in_flight_uploads() -> None:
    storage = InMemoryFrameStorage()
    storage.gate = threading.Event()
    pool = _pool(storage, max_in_flight=4)
    futures = [pool.submit(make_task(n)) for n in range(4)]
    assert storage.wait_for_active(4)
    threading.Timer(0.1, storage.gate.set).start()
    pool.drain()
    assert all(f.done() for f in futures)
    assert len(storage.keys(BUCKET)) == 4
    assert pool.in_flight == 0


def test_submit_after_drain_raises() -> None:
    pool = _pool(InMemoryFrameStorage())
    pool.drain()
    with pytest.raises(RuntimeError, match="closed"):
        pool.submit(make_task(0))


def test_max_in_flight_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _pool(InMemoryFrameStorage(), max_in_flight=0)


class TestRetryPolicy:
    """Backoff delay bounds."""

    def test_delay_within_half_cap_and_cap(self) -> None:
        policy = RetryPolicy(5, base_delay=0.005, max_delay=32.0, rng=random.Random(7))
        for attempt in range(1, 6):
            cap = 0.005 * 2**attempt
            delay = policy.delay(attempt)
            assert cap / 2 <= delay <= cap

    def test_delay_capped_at_max(self) -> None:
        policy = RetryPolicy(30, base_delay=0.005, max_delay=32.0, rng=random.Random(1))
        assert 16.0 <= policy.delay(25) <= 32.0

    def test_max_attempts_counts_first_try(self) -> None:
        assert RetryPolicy(5).max_attempts == 6
        assert RetryPolicy(0).max_attempts == 1

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(-1)
