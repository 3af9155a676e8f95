# backend/media_pipeline/utils/time_utils.py
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current UTC time for record timestamps"""
    return datetime.now(timezone.utc)
