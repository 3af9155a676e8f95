# backend/media_pipeline/services/storage/metadata_store.py
"""
Metadata Store - asset record persistence.

Records are keyed by AssetId. update() writes only the named fields so the
orchestrator can issue manifest and status writes as separate operations.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from ...config import Settings
from ...enums import LoggerName, LogSource
from ...exceptions import AssetNotFoundError, MetadataStoreError
from ...models.asset_models import AssetId, MediaAsset
from ..logger import get_service_logger

logger = get_service_logger(LoggerName.METADATA, LogSource.STORAGE)


def _validate_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(MediaAsset.model_fields) - {"asset_id"}
    if unknown:
        raise MetadataStoreError(f"Unknown asset fields: {', '.join(sorted(unknown))}")
    if "asset_id" in fields:
        raise MetadataStoreError("asset_id is immutable")


class MetadataStore(ABC):
    """Asset record store."""

    @abstractmethod
    def get(self, asset_id: AssetId) -> Optional[MediaAsset]:
        """Return the record or None."""

    @abstractmethod
    def put(self, asset: MediaAsset) -> None:
        """Create or replace a record."""

    @abstractmethod
    def update(self, asset_id: AssetId, fields: Dict[str, Any]) -> MediaAsset:
        """Set the named fields on an existing record and return it."""


class InMemoryMetadataStore(MetadataStore):
    """Thread-safe dict-backed store."""

    def __init__(self):
        self._records: Dict[AssetId, MediaAsset] = {}
        self._lock = threading.Lock()

    def get(self, asset_id: AssetId) -> Optional[MediaAsset]:
        with self._lock:
            return self._records.get(asset_id)

    def put(self, asset: MediaAsset) -> None:
        with self._lock:
            self._records[asset.asset_id] = asset

    def update(self, asset_id: AssetId, fields: Dict[str, Any]) -> MediaAsset:
        _validate_fields(fields)
        with self._lock:
            current = self._records.get(asset_id)
            if current is None:
                raise AssetNotFoundError(f"Asset {asset_id} not found")
            data = {name: getattr(current, name) for name in MediaAsset.model_fields}
            data.update(fields)
            updated = MediaAsset.model_validate(data)
            self._records[asset_id] = updated
            return updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class DynamoMetadataStore(MetadataStore):
    """DynamoDB table keyed by {id: mediaId, projectId}."""

    def __init__(self, settings: Settings, table=None):
        if table is None:
            resource = boto3.resource("dynamodb", region_name=settings.aws_region)
            table = resource.Table(settings.asset_table)
        self.table = table

    @staticmethod
    def _key(asset_id: AssetId) -> Dict[str, str]:
        return {"id": asset_id.media_id, "projectId": asset_id.project_id}

    def get(self, asset_id: AssetId) -> Optional[MediaAsset]:
        try:
            response = self.table.get_item(Key=self._key(asset_id))
        except (ClientError, BotoCoreError) as e:
            raise MetadataStoreError(f"Failed to read asset {asset_id}: {e}") from e

        item = response.get("Item")
        if not item:
            return None
        return MediaAsset.model_validate(item)

    def put(self, asset: MediaAsset) -> None:
        item = asset.model_dump(mode="json")
        item.update(self._key(asset.asset_id))
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise MetadataStoreError(f"Failed to write asset {asset.asset_id}: {e}") from e

    def update(self, asset_id: AssetId, fields: Dict[str, Any]) -> MediaAsset:
        _validate_fields(fields)
        names = {f"#f{i}": name for i, name in enumerate(fields)}
        values = {
            f":v{i}": _serialize_value(value) for i, value in enumerate(fields.values())
        }
        expression = "SET " + ", ".join(f"#f{i} = :v{i}" for i in range(len(fields)))

        try:
            response = self.table.update_item(
                Key=self._key(asset_id),
                UpdateExpression=expression,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ConditionExpression="attribute_exists(id)",
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise AssetNotFoundError(f"Asset {asset_id} not found") from e
            raise MetadataStoreError(f"Failed to update asset {asset_id}: {e}") from e
        except BotoCoreError as e:
            raise MetadataStoreError(f"Failed to update asset {asset_id}: {e}") from e

        logger.debug(f"Updated asset {asset_id}: {', '.join(fields)}")
        return MediaAsset.model_validate(response["Attributes"])
