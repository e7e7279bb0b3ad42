"""Pytest fixtures for frame sink tests (moto-backed S3, frame settings)."""

import os

import pytest
from moto import mock_aws


@pytest.fixture(scope="function")
def aws_credentials():
    """Set fake AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def moto_aws(aws_credentials):
    """Enable moto mock for S3."""
    with mock_aws():
        yield


@pytest.fixture
def s3_client(moto_aws):
    """Raw boto3 S3 client in us-west-2 for arranging and inspecting buckets."""
    import boto3

    return boto3.client("s3", region_name="us-west-2")


@pytest.fixture
def frame_sink_env(monkeypatch):
    """Clear FRAME_SINK_* and endpoint variables so settings tests start clean."""
    for name in list(os.environ):
        if name.startswith("FRAME_SINK_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)
    monkeypatch.delenv("AWS_SHARED_CREDENTIALS_FILE", raising=False)
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    return monkeypatch
