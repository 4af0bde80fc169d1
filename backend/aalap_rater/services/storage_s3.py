# backend/aalap_rater/services/storage_s3.py
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from aalap_rater.core.config import Settings
from aalap_rater.core.errors import ConcurrentWriteError, StorageError

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}
_PRECONDITION_CODES = {"PreconditionFailed", "412", "ConditionalRequestConflict", "409"}


@dataclass(frozen=True)
class StoredObject:
    body: bytes
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None


class ObjectStore(Protocol):
    def get_object(self, key: str) -> StoredObject | None: ...

    def put_json_bytes(
        self,
        key: str,
        body: bytes,
        *,
        if_match: str | None = None,
        if_none_match: bool = False,
    ) -> None: ...


def _clean_key(key: str) -> str:
    return key.strip().lstrip("/").strip("'").strip('"')


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def get_s3_client(settings: Settings):
    return boto3.client(
        "s3",
        endpoint_url=settings.aws_endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )


class S3ObjectStore:
    """
    JSON documents in one S3 bucket. The boto3 client is passed in so that
    handlers never reach for a process-wide client.
    """

    def __init__(self, client, bucket: str):
        self._s3 = client
        self.bucket = bucket

    def get_object(self, key: str) -> StoredObject | None:
        """
        Return the object, or None if the key does not exist.
        """
        clean_key = _clean_key(key)
        logger.info("S3 fetch: bucket=%r key=%r", self.bucket, clean_key)

        try:
            obj = self._s3.get_object(Bucket=self.bucket, Key=clean_key)
            body = obj["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                logger.warning("S3 key not found: %s", clean_key)
                return None
            raise StorageError(f"S3 get_object failed for {clean_key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 get_object failed for {clean_key}: {e}") from e

        return StoredObject(
            body=body,
            etag=obj.get("ETag"),
            last_modified=obj.get("LastModified"),
        )

    def put_json_bytes(
        self,
        key: str,
        body: bytes,
        *,
        if_match: str | None = None,
        if_none_match: bool = False,
    ) -> None:
        """
        Upload pre-serialized JSON bytes, optionally as a conditional write.
        """
        clean_key = _clean_key(key)
        logger.info("S3 upload: bucket=%r key=%r bytes=%d", self.bucket, clean_key, len(body))

        params = {
            "Bucket": self.bucket,
            "Key": clean_key,
            "Body": body,
            "ContentType": "application/json",
        }
        if if_match:
            params["IfMatch"] = if_match
        elif if_none_match:
            params["IfNoneMatch"] = "*"

        try:
            self._s3.put_object(**params)
        except ClientError as e:
            if (if_match or if_none_match) and _error_code(e) in _PRECONDITION_CODES:
                raise ConcurrentWriteError(
                    f"{clean_key} was modified by another writer"
                ) from e
            raise StorageError(f"S3 put_object failed for {clean_key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 put_object failed for {clean_key}: {e}") from e


class LocalObjectStore:
    """
    Directory-backed stand-in for a bucket (STORAGE_MODE=local).
    ETags are content hashes so conditional writes behave like S3.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / _clean_key(key)

    def get_object(self, key: str) -> StoredObject | None:
        path = self._path(key)
        logger.info("Local fetch: %s", path)
        if not path.exists():
            logger.warning("Local key not found: %s", path)
            return None
        try:
            body = path.read_bytes()
            mtime = path.stat().st_mtime
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e
        return StoredObject(
            body=body,
            etag=f'"{hashlib.md5(body).hexdigest()}"',
            last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def put_json_bytes(
        self,
        key: str,
        body: bytes,
        *,
        if_match: str | None = None,
        if_none_match: bool = False,
    ) -> None:
        path = self._path(key)
        if if_match or if_none_match:
            current = self.get_object(key)
            if if_none_match and current is not None:
                raise ConcurrentWriteError(f"{key} was created by another writer")
            if if_match and (current is None or current.etag != if_match):
                raise ConcurrentWriteError(f"{key} was modified by another writer")

        logger.info("Local upload: %s bytes=%d", path, len(body))
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.s3_required():
        settings.validate_s3_or_raise()
        return S3ObjectStore(get_s3_client(settings), settings.aws_bucket)
    return LocalObjectStore(settings.local_storage_dir)
