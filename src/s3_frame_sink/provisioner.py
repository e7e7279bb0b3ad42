"""
Bucket provisioning: make sure the target bucket exists before any upload.

A bucket that exists in another region is reported as Unavailable with the
service's error text. The region is never corrected automatically.
"""

import logging

from .errors import StorageError
from .interfaces import FrameStorage
from .models import BucketState

logger = logging.getLogger(__name__)


class BucketProvisioner:
    """Checks for the bucket and creates it in the session region when absent."""

    def __init__(self, storage: FrameStorage) -> None:
        self._storage = storage
        self.last_error: str | None = None

    def ensure(self, bucket: str, region: str) -> BucketState:
        """
        Return VERIFIED if the bucket already exists in region, CREATED if it was
        created now, or UNAVAILABLE on any failure (last_error holds the raw message).
        """
        self.last_error = None
        try:
            if self._storage.bucket_exists(bucket, region):
                logger.info("bucket=%s region=%s verified", bucket, region)
                return BucketState.VERIFIED
            if self._storage.create_bucket(bucket, region):
                logger.info("bucket=%s region=%s created", bucket, region)
                return BucketState.CREATED
            logger.info("bucket=%s region=%s already owned, verified", bucket, region)
            return BucketState.VERIFIED
        except StorageError as e:
            self.last_error = str(e)
            logger.error("bucket=%s region=%s unavailable: %s", bucket, region, e)
            return BucketState.UNAVAILABLE
