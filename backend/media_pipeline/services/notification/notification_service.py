# backend/media_pipeline/services/notification/notification_service.py
"""
Notification sinks for terminal asset outcomes.

Callers treat notification as best effort: a sink may raise, and the
orchestrator logs the failure without touching asset state.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ...config import Settings
from ...enums import LogEmoji, LoggerName, LogSource, NotifyOutcome
from ...models.asset_models import AssetId
from ...utils.time_utils import utc_now
from ..logger import get_service_logger

logger = get_service_logger(LoggerName.NOTIFICATION, LogSource.PIPELINE)


def build_notification_payload(
    asset_id: AssetId, outcome: NotifyOutcome, detail: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "projectId": asset_id.project_id,
        "mediaId": asset_id.media_id,
        "outcome": outcome.value,
        "detail": detail,
        "timestamp": utc_now().isoformat(),
    }


class NotificationSink(ABC):
    """Receives one message per terminal outcome."""

    @abstractmethod
    def notify(
        self, asset_id: AssetId, outcome: NotifyOutcome, detail: Optional[str] = None
    ) -> None:
        pass


class LoggingNotificationSink(NotificationSink):
    """Writes outcomes to the log only. Default when no topic is configured."""

    def notify(
        self, asset_id: AssetId, outcome: NotifyOutcome, detail: Optional[str] = None
    ) -> None:
        emoji = LogEmoji.SUCCESS if outcome == NotifyOutcome.SUCCESS else LogEmoji.FAILED
        message = f"Asset {asset_id} {outcome.value}"
        if detail:
            message += f": {detail}"
        logger.info(message, emoji=emoji)


class SnsNotificationSink(NotificationSink):
    """Publishes outcomes to an SNS topic."""

    def __init__(self, settings: Settings, client=None, topic_arn: Optional[str] = None):
        self.topic_arn = topic_arn or settings.notification_topic_arn
        self.client = client or boto3.client("sns", region_name=settings.aws_region)

    def notify(
        self, asset_id: AssetId, outcome: NotifyOutcome, detail: Optional[str] = None
    ) -> None:
        payload = build_notification_payload(asset_id, outcome, detail)
        try:
            self.client.publish(
                TopicArn=self.topic_arn,
                Subject=f"Media {outcome.value}",
                Message=json.dumps(payload),
                MessageAttributes={
                    "outcome": {"DataType": "String", "StringValue": outcome.value}
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"SNS publish failed for {asset_id}: {e}")
            raise

        logger.debug(f"Published {outcome.value} for {asset_id}", emoji=LogEmoji.NOTIFICATION)


def create_notification_sink(settings: Settings) -> NotificationSink:
    """SNS when a topic is configured, log-only otherwise."""
    if settings.notification_topic_arn:
        return SnsNotificationSink(settings)
    return LoggingNotificationSink()
