from __future__ import annotations

import hashlib
import io
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from aalap_rater.core.config import Settings
from aalap_rater.main import create_app
from aalap_rater.services.storage_s3 import LocalObjectStore

ASSETS_URL = "https://assets.example.com"
RATINGS_KEY = "musicgen-outputs/ratings.json"


class FakeS3Client:
    """In-memory stand-in for the handful of boto3 S3 calls we make."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.put_calls: list[dict] = []
        self.fail_with: str | None = None

    @staticmethod
    def _etag(body: bytes) -> str:
        return f'"{hashlib.md5(body).hexdigest()}"'

    def get_object(self, Bucket, Key):
        if self.fail_with:
            raise ClientError({"Error": {"Code": self.fail_with, "Message": "boom"}}, "GetObject")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        body = self.objects[Key]
        return {
            "Body": io.BytesIO(body),
            "ETag": self._etag(body),
            "LastModified": datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc),
        }

    def put_object(self, **kwargs):
        self.put_calls.append(kwargs)
        key = kwargs["Key"]
        current = self.objects.get(key)
        if "IfNoneMatch" in kwargs and current is not None:
            raise ClientError({"Error": {"Code": "PreconditionFailed", "Message": "exists"}}, "PutObject")
        if "IfMatch" in kwargs and (current is None or self._etag(current) != kwargs["IfMatch"]):
            raise ClientError({"Error": {"Code": "PreconditionFailed", "Message": "changed"}}, "PutObject")
        self.objects[key] = kwargs["Body"]
        return {"ETag": self._etag(kwargs["Body"])}


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def local_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "bucket")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        storage_mode="local",
        local_storage_dir=str(tmp_path / "bucket"),
        public_base_url=ASSETS_URL,
        ratings_key=RATINGS_KEY,
    )


@pytest.fixture
def client(settings, local_store):
    app = create_app(settings, object_store=local_store)
    with TestClient(app) as c:
        yield c
