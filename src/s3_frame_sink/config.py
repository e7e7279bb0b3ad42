"""
Sink config from environment with defaults.
Uses pydantic-settings so all env vars are validated and documented in one model.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .models import SessionConfig


class SinkSettings(BaseSettings):
    """
    All environment variables used by the frame sink.
    Read from os.environ with the FRAME_SINK_ prefix (e.g. FRAME_SINK_BUCKET).
    """

    model_config = SettingsConfigDict(
        env_prefix="FRAME_SINK_", extra="ignore", populate_by_name=True
    )

    # Session: where frames go and how they are named
    bucket: str = ""
    region: str = ""
    key: str = ""
    extension: str = "png"

    # Upload pool concurrency (1-64)
    max_in_flight: int = 8

    # Retry policy for transient put failures
    max_retries: int = 5
    backoff_base_seconds: float = 0.005
    backoff_max_seconds: float = 32.0

    # Frames buffered while the bucket is being provisioned; 0 rejects them with NOT_READY
    pending_frame_limit: int = 0

    # Health: consecutive per-frame failures before the tracker reports unhealthy
    unhealthy_after_failures: int = 5
    fail_on_unhealthy: bool = False

    # S3-compatible endpoint (LocalStack, MinIO); AWS_ENDPOINT_URL is honoured too
    endpoint_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FRAME_SINK_ENDPOINT_URL", "AWS_ENDPOINT_URL"),
    )

    # Shared credentials file; defaults to boto3's own lookup when unset
    credentials_file: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "FRAME_SINK_CREDENTIALS_FILE", "AWS_SHARED_CREDENTIALS_FILE"
        ),
    )

    @field_validator("max_in_flight")
    @classmethod
    def clamp_max_in_flight(cls, v: int) -> int:
        return max(1, min(v, 64))

    @field_validator("max_retries", "pending_frame_limit")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("unhealthy_after_failures")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    def session_config(self) -> SessionConfig:
        """Build the immutable SessionConfig. Raises ConfigurationError on bad values."""
        missing = [name for name in ("bucket", "region", "key") if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                "missing required setting(s): "
                + ", ".join(f"FRAME_SINK_{name.upper()}" for name in missing)
            )
        try:
            return SessionConfig(
                bucket=self.bucket,
                region=self.region,
                key_prefix=self.key,
                extension=self.extension,
            )
        except ValidationError as e:
            raise ConfigurationError(f"invalid session settings: {e}") from e


def get_settings(**overrides: object) -> SinkSettings:
    """Return validated settings from current environment, with explicit overrides applied."""
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return SinkSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"invalid settings: {e}") from e


def load_session_config(**overrides: object) -> SessionConfig:
    """Settings from environment (plus overrides) -> SessionConfig."""
    return get_settings(**overrides).session_config()
