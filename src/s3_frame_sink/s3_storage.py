"""S3 implementation of FrameStorage."""

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from .errors import (
    BucketRegionMismatchError,
    PermanentStorageError,
    StorageError,
    TransientStorageError,
)

logger = logging.getLogger(__name__)

# us-east-1 rejects an explicit LocationConstraint on create_bucket
_DEFAULT_REGION = "us-east-1"

_TRANSIENT_CODES = frozenset({
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalError",
    "ServiceUnavailable",
    "OperationAborted",
})
_REDIRECT_CODES = frozenset({"301", "PermanentRedirect", "AuthorizationHeaderMalformed"})
_NOT_FOUND_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _http_status(error: ClientError) -> int:
    return int(error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0) or 0)


def translate_error(error: Exception) -> StorageError:
    """Map a botocore error to TransientStorageError or PermanentStorageError."""
    if isinstance(error, ClientError):
        code = _error_code(error)
        status = _http_status(error)
        if code in _TRANSIENT_CODES or status == 429 or status >= 500:
            return TransientStorageError(str(error))
        return PermanentStorageError(str(error))
    if isinstance(error, (BotoConnectionError, ConnectTimeoutError, ReadTimeoutError)):
        return TransientStorageError(str(error))
    return PermanentStorageError(str(error))


class S3FrameStorage:
    """FrameStorage implementation using S3.

    botocore's own retries are disabled: the upload pool owns the retry policy,
    and provisioning must surface the first failure as-is.
    """

    def __init__(
        self,
        *,
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self._client = boto3.client(
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url,
            config=Config(retries={"total_max_attempts": 1, "mode": "standard"}),
        )

    def bucket_exists(self, bucket: str, region: str) -> bool:
        """Return True if the bucket exists in region, False if it does not exist."""
        try:
            resp = self._client.head_bucket(Bucket=bucket)
        except ClientError as e:
            code = _error_code(e)
            if code in _NOT_FOUND_CODES:
                return False
            if code in _REDIRECT_CODES or _http_status(e) == 301:
                headers = e.response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
                raise BucketRegionMismatchError(
                    str(e), bucket_region=headers.get("x-amz-bucket-region")
                ) from e
            raise translate_error(e) from e
        except BotoCoreError as e:
            raise translate_error(e) from e

        headers = resp.get("ResponseMetadata", {}).get("HTTPHeaders", {})
        bucket_region = headers.get("x-amz-bucket-region") or self._bucket_location(bucket)
        if bucket_region != region:
            raise BucketRegionMismatchError(
                f"PermanentRedirect (301): bucket {bucket!r} is in region "
                f"{bucket_region!r}, not {region!r}",
                bucket_region=bucket_region,
            )
        return True

    def _bucket_location(self, bucket: str) -> str:
        try:
            resp = self._client.get_bucket_location(Bucket=bucket)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e) from e
        return resp.get("LocationConstraint") or _DEFAULT_REGION

    def create_bucket(self, bucket: str, region: str) -> bool:
        """Create the bucket in region. Returns False if it already exists and is ours."""
        kwargs: dict = {"Bucket": bucket}
        if region != _DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._client.create_bucket(**kwargs)
        except ClientError as e:
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                logger.info("bucket=%s already owned by this account", bucket)
                return False
            raise translate_error(e) from e
        except BotoCoreError as e:
            raise translate_error(e) from e
        return True

    def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
    ) -> None:
        """Upload bytes to the given bucket and key in a single PutObject call."""
        kwargs: dict = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type:
            kwargs["ContentType"] = content_type
        try:
            self._client.put_object(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e) from e
