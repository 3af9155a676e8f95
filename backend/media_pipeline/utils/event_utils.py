# backend/media_pipeline/utils/event_utils.py
"""
Helpers for unpacking storage notifications.

Two shapes are accepted: S3 event notifications ({"Records": [...]}) and
EventBridge "Object Created" events ({"detail": {"bucket", "object"}}).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ObjectCreatedRecord:
    bucket: Optional[str]
    key: str
    size: Optional[int]


def _record(bucket: Dict[str, Any], obj: Dict[str, Any]) -> Optional[ObjectCreatedRecord]:
    key = obj.get("key")
    if not key:
        return None
    size = obj.get("size")
    return ObjectCreatedRecord(
        bucket=bucket.get("name"),
        key=key,
        size=int(size) if size is not None else None,
    )


def extract_object_created_records(event: Dict[str, Any]) -> List[ObjectCreatedRecord]:
    """
    Flatten a notification payload into (bucket, key, size) records.

    Keys are returned as delivered (still URL-encoded); records without a
    key are dropped.
    """
    records: List[ObjectCreatedRecord] = []

    for entry in event.get("Records") or []:
        s3 = entry.get("s3") or {}
        record = _record(s3.get("bucket") or {}, s3.get("object") or {})
        if record is not None:
            records.append(record)

    detail = event.get("detail")
    if isinstance(detail, dict):
        record = _record(detail.get("bucket") or {}, detail.get("object") or {})
        if record is not None:
            records.append(record)

    return records
