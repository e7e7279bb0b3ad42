"""Pydantic models and enums for frames, upload tasks, results and session state."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .keys import SUPPORTED_EXTENSIONS

_REGION_PATTERN = r"^[a-z]{2}(-[a-z]+)+-\d+$"


class BucketState(str, Enum):
    """Result of bucket provisioning. Written once per session, then read-only."""

    UNKNOWN = "unknown"
    VERIFIED = "verified"
    CREATED = "created"
    UNAVAILABLE = "unavailable"

    @property
    def is_ready(self) -> bool:
        return self in (BucketState.VERIFIED, BucketState.CREATED)


class ControllerState(str, Enum):
    """Lifecycle of an IngestController."""

    IDLE = "idle"
    PROVISIONING = "provisioning"
    STREAMING = "streaming"
    DRAINING = "draining"
    CLOSED = "closed"
    FAILED = "failed"


class FlowSignal(str, Enum):
    """Verdict returned to the host for each pushed buffer."""

    OK = "ok"
    NOT_READY = "not_ready"
    FAILED = "failed"
    CLOSED = "closed"


class UploadStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SessionConfig(BaseModel):
    """Validated, immutable session settings shared read-only by every component."""

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(..., min_length=1, description="Target bucket name")
    region: str = Field(..., pattern=_REGION_PATTERN, description="e.g. us-west-2")
    key_prefix: str = Field(..., min_length=1, description="Prefix for every object key")
    extension: str = Field("png", description="Image extension, fixed for the session")

    @field_validator("key_prefix")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        stripped = v.rstrip("/")
        if not stripped:
            raise ValueError("key prefix must not be empty")
        return stripped

    @field_validator("extension")
    @classmethod
    def normalise_extension(cls, v: str) -> str:
        ext = v.strip().lstrip(".").lower()
        if ext not in SUPPORTED_EXTENSIONS:
            raise ValueError(
                f"unsupported extension {v!r}; expected one of {sorted(SUPPORTED_EXTENSIONS)}"
            )
        return ext


class Frame(BaseModel):
    """One encoded image buffer with its session sequence number."""

    model_config = ConfigDict(frozen=True)

    sequence_number: int = Field(..., ge=0)
    payload: bytes
    extension: str


class UploadTask(BaseModel):
    """Binds one Frame to its object key. Consumed exactly once by the pool."""

    model_config = ConfigDict(frozen=True)

    frame: Frame
    key: str

    @property
    def sequence_number(self) -> int:
        return self.frame.sequence_number


class UploadResult(BaseModel):
    """Terminal outcome of one UploadTask."""

    sequence_number: int = Field(..., ge=0)
    key: str
    status: UploadStatus
    attempts: int = Field(..., ge=0, description="PutObject calls made for this frame")
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == UploadStatus.SUCCEEDED


class DrainReport(BaseModel):
    """Session summary produced when the stream is drained."""

    succeeded: int = 0
    failed: int = 0
    failed_keys: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict, description="key -> last error")

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0
