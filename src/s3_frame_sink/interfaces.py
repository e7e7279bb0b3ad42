"""
Storage interface the upload pipeline depends on.

The S3 implementation lives in s3_storage; tests use an in-memory fake.
Implementations raise TransientStorageError or PermanentStorageError so callers
can decide on retries without knowing the backend's error types.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class FrameStorage(Protocol):
    """Object storage: bucket existence, bucket creation, single-object put."""

    def bucket_exists(self, bucket: str, region: str) -> bool:
        """Return True if the bucket exists in region, False if it does not exist.
        Raises BucketRegionMismatchError if it exists in a different region."""
        ...

    def create_bucket(self, bucket: str, region: str) -> bool:
        """Create the bucket in region. Returns False if it already exists and is ours."""
        ...

    def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
    ) -> None:
        """Write body to bucket/key in a single request."""
        ...
