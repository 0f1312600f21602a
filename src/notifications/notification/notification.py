"""Notification aggregate (CQRS) — one in-app message to a customer.

Notifications are created reactively from Forwarding events. Delivery
transport is not modelled: a notification is stored unread and later
marked read by its recipient.
"""

from datetime import UTC, datetime
from enum import Enum

from notifications.domain import notifications
from notifications.notification.events import NotificationCreated, NotificationRead
from protean.exceptions import InvalidOperationError
from protean.fields import Boolean, DateTime, Identifier, String, Text


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationType(Enum):
    PACKAGE_RECEIVED = "package_received"
    SHIPMENT_UPDATE = "shipment_update"
    CONSOLIDATION_COMPLETE = "consolidation_complete"
    PHOTO_REQUEST_COMPLETE = "photo_request_complete"
    PAYMENT_RECEIVED = "payment_received"
    STORAGE_WARNING = "storage_warning"


class NotificationPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RelatedModel(Enum):
    PACKAGE = "Package"
    SHIPMENT = "Shipment"
    CONSOLIDATION = "Consolidation"
    PHOTO_REQUEST = "PhotoRequest"
    TRANSACTION = "Transaction"


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class Notification:
    # Recipient
    user_id: Identifier(required=True)

    # Content
    notification_type: String(choices=NotificationType, required=True)
    title: String(required=True, max_length=200)
    message: Text(required=True)
    priority: String(choices=NotificationPriority, default=NotificationPriority.NORMAL.value)
    action_url: String(max_length=500)

    # What the message is about
    related_id: Identifier()
    related_model: String(choices=RelatedModel)

    # Read state
    read: Boolean(default=False)
    read_at: DateTime()

    created_at: DateTime()

    @classmethod
    def create(
        cls,
        user_id,
        notification_type,
        title,
        message,
        related_id=None,
        related_model=None,
        priority=NotificationPriority.NORMAL.value,
        action_url=None,
    ):
        now = datetime.now(UTC)
        notification = cls(
            user_id=str(user_id),
            notification_type=notification_type,
            title=title.strip(),
            message=message.strip(),
            related_id=related_id,
            related_model=related_model,
            priority=priority,
            action_url=action_url,
            created_at=now,
        )
        notification.raise_(
            NotificationCreated(
                notification_id=str(notification.id),
                user_id=str(user_id),
                notification_type=notification_type,
                priority=priority,
                related_id=related_id,
                related_model=related_model,
                created_at=now,
            )
        )
        return notification

    def mark_read(self, user_id) -> bool:
        """Returns False when already read."""
        if str(user_id) != str(self.user_id):
            raise InvalidOperationError({"_entity": [f"Notification {self.id} does not belong to user {user_id}"]})
        if self.read:
            return False

        now = datetime.now(UTC)
        self.read = True
        self.read_at = now
        self.raise_(NotificationRead(notification_id=str(self.id), user_id=str(self.user_id), read_at=now))
        return True
