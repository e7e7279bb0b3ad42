"""Exceptions raised by the frame sink."""


class FrameSinkError(Exception):
    """Base class for frame sink errors."""


class ConfigurationError(FrameSinkError):
    """Missing or invalid setting, or unusable credentials. Fatal at startup."""


class StorageError(FrameSinkError):
    """A storage call failed. The message is the service's own error text."""


class TransientStorageError(StorageError):
    """Failure worth retrying: throttling, timeouts, 5xx, dropped connections."""


class PermanentStorageError(StorageError):
    """Failure that will not go away on retry: denied, bad request, bad credentials."""


class BucketRegionMismatchError(PermanentStorageError):
    """Bucket exists but lives in another region (301 redirect from the service)."""

    def __init__(self, message: str, *, bucket_region: str | None = None) -> None:
        super().__init__(message)
        self.bucket_region = bucket_region
