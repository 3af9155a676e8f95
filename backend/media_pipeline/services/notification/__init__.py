from .notification_service import (
    LoggingNotificationSink,
    NotificationSink,
    SnsNotificationSink,
    build_notification_payload,
    create_notification_sink,
)

__all__ = [
    "LoggingNotificationSink",
    "NotificationSink",
    "SnsNotificationSink",
    "build_notification_payload",
    "create_notification_sink",
]
