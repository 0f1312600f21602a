"""MarkNotificationRead command + handler, and the inbox query."""

from notifications.domain import notifications
from notifications.notification.notification import Notification
from protean.fields import Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle


@notifications.command(part_of="Notification")
class MarkNotificationRead:
    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)


@notifications.command_handler(part_of=Notification)
class MarkNotificationReadHandler:
    @handle(MarkNotificationRead)
    def mark_read(self, command: MarkNotificationRead):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        if notification.mark_read(command.user_id):
            repo.add(notification)
        return notification.read


def notifications_for(user_id: str, unread_only: bool = False) -> list[Notification]:
    """A user's notifications, newest first."""
    query = current_domain.repository_for(Notification)._dao.query.filter(user_id=str(user_id))
    if unread_only:
        query = query.filter(read=False)
    return query.order_by("-created_at").limit(None).all().items
