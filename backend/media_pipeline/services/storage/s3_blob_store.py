# backend/media_pipeline/services/storage/s3_blob_store.py
"""
S3 Blob Store - boto3 adapter for the BlobStore interface.

Thin over boto3 so failure modes stay familiar: missing keys surface as
BlobNotFoundError, every other S3 failure as StorageError.
"""

from typing import Any, Dict, Iterable, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ...config import Settings
from ...enums import LogEmoji, LoggerName, LogSource
from ...exceptions import BlobNotFoundError, StorageError
from ..logger import get_service_logger
from .blob_store import BlobStore, normalize_key

logger = get_service_logger(LoggerName.STORAGE, LogSource.STORAGE)

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
DELETE_BATCH_SIZE = 1000


def create_s3_client(settings: Settings):
    """Build an S3 client with bounded retries and short connect timeout."""
    cfg = BotoConfig(
        signature_version="s3v4",
        retries={"max_attempts": 5, "mode": "standard"},
        connect_timeout=3,
        read_timeout=30,
    )
    client_kwargs: Dict[str, Any] = {"config": cfg, "region_name": settings.aws_region}
    if settings.s3_endpoint_url:
        client_kwargs["endpoint_url"] = settings.s3_endpoint_url
    return boto3.client("s3", **client_kwargs)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3BlobStore(BlobStore):
    """BlobStore backed by one S3 bucket."""

    def __init__(self, settings: Settings, client=None, bucket: Optional[str] = None):
        self.bucket = bucket or settings.media_bucket
        self.client = client or create_s3_client(settings)

    def get(self, key: str) -> bytes:
        key = normalize_key(key)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise BlobNotFoundError(key) from e
            raise StorageError(f"S3 get failed for {key}: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 get failed for {key}: {e}") from e

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: Optional[str] = None,
        content_disposition: Optional[str] = None,
    ) -> None:
        key = normalize_key(key)
        params: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control
        if content_disposition:
            params["ContentDisposition"] = content_disposition

        try:
            self.client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 put failed for {key}: {e}") from e

        logger.debug(f"Uploaded s3://{self.bucket}/{key} ({len(data)} bytes)", emoji=LogEmoji.STORAGE)

    def exists(self, key: str) -> bool:
        key = normalize_key(key)
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise StorageError(f"S3 head failed for {key}: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 head failed for {key}: {e}") from e

    def list(self, prefix: str) -> List[str]:
        keys: List[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 list failed for {prefix}: {e}") from e
        return sorted(keys)

    def delete(self, keys: Iterable[str]) -> None:
        normalized = [normalize_key(k) for k in keys]
        for start in range(0, len(normalized), DELETE_BATCH_SIZE):
            batch = normalized[start : start + DELETE_BATCH_SIZE]
            try:
                self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as e:
                raise StorageError(f"S3 delete failed: {e}") from e
