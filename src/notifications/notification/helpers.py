"""Shared helper for the Forwarding event handlers."""

import structlog
from notifications.notification.notification import Notification, NotificationPriority
from protean.utils.globals import current_domain

logger = structlog.get_logger(__name__)


def notify_owner(
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    related_id: str,
    related_model: str,
    action_url: str,
    priority: str = NotificationPriority.NORMAL.value,
    source_event_type: str | None = None,
) -> str:
    """Store one notification for the owner of a forwarding record.

    Returns the notification ID.
    """
    notification = Notification.create(
        user_id=user_id,
        notification_type=notification_type,
        title=title,
        message=message,
        related_id=related_id,
        related_model=related_model,
        priority=priority,
        action_url=action_url,
    )
    current_domain.repository_for(Notification).add(notification)

    logger.info(
        "Notification created",
        notification_id=str(notification.id),
        user_id=str(user_id),
        notification_type=notification_type,
        source_event_type=source_event_type,
    )
    return str(notification.id)
