"""Streaming sink that stores each encoded video frame as its own S3 object."""

from .controller import IngestController
from .errors import (
    BucketRegionMismatchError,
    ConfigurationError,
    FrameSinkError,
    PermanentStorageError,
    StorageError,
    TransientStorageError,
)
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
from .upload_pool import RetryPolicy, UploadWorkerPool

__version__ = "0.1.0"
__all__ = [
    "BucketProvisioner",
    "BucketRegionMismatchError",
    "BucketState",
    "CompletionTracker",
    "ConfigurationError",
    "ControllerState",
    "DrainReport",
    "FlowSignal",
    "Frame",
    "FrameSinkError",
    "FrameStorage",
    "IngestController",
    "PermanentStorageError",
    "RetryPolicy",
    "SessionConfig",
    "StorageError",
    "TransientStorageError",
    "UploadResult",
    "UploadStatus",
    "UploadTask",
    "UploadWorkerPool",
    "build_frame_key",
]
