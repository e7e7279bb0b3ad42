"""
Build the storage adapter and check credentials from settings / environment.

Credentials come from a pre-provisioned shared credentials file
(AWS_SHARED_CREDENTIALS_FILE or FRAME_SINK_CREDENTIALS_FILE) or boto3's default
chain. Missing or unreadable credentials are a startup error, never a
per-upload one.

Optional:
- AWS_ENDPOINT_URL / FRAME_SINK_ENDPOINT_URL (e.g. for LocalStack or MinIO)
"""

import logging
import os

import boto3
from botocore.credentials import SharedCredentialProvider
from botocore.exceptions import BotoCoreError

from .config import SinkSettings
from .errors import ConfigurationError
from .s3_storage import S3FrameStorage

logger = logging.getLogger(__name__)


def check_credentials(credentials_file: str | None = None) -> None:
    """
    Fail fast when no usable credentials are available.

    When credentials_file is given it must be a readable file holding keys for
    the active profile (AWS_PROFILE, default "default"), whatever other
    providers might resolve; it is then exported as AWS_SHARED_CREDENTIALS_FILE
    so boto3 reads it.
    """
    if credentials_file:
        if not os.path.isfile(credentials_file) or not os.access(credentials_file, os.R_OK):
            raise ConfigurationError(f"credentials file not readable: {credentials_file}")
        _check_credentials_file(credentials_file)
        os.environ["AWS_SHARED_CREDENTIALS_FILE"] = credentials_file
    try:
        credentials = boto3.Session().get_credentials()
    except BotoCoreError as e:
        raise ConfigurationError(f"invalid AWS credentials configuration: {e}") from e
    if credentials is None:
        raise ConfigurationError(
            "no AWS credentials found (set AWS_SHARED_CREDENTIALS_FILE or provide a credentials file)"
        )
    logger.info("credentials loaded (method=%s)", getattr(credentials, "method", "?"))


def _check_credentials_file(credentials_file: str) -> None:
    profile = os.environ.get("AWS_PROFILE") or "default"
    provider = SharedCredentialProvider(creds_filename=credentials_file, profile_name=profile)
    try:
        credentials = provider.load()
    except BotoCoreError as e:
        raise ConfigurationError(f"invalid credentials file {credentials_file}: {e}") from e
    if credentials is None:
        raise ConfigurationError(
            f"credentials file {credentials_file} has no keys for profile {profile!r}"
        )


def object_storage_from_settings(settings: SinkSettings) -> S3FrameStorage:
    """Build S3FrameStorage for the session region (endpoint from settings when set)."""
    return S3FrameStorage(
        region_name=settings.region or None,
        endpoint_url=settings.endpoint_url or None,
    )
