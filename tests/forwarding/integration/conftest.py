"""Fixtures for journeys that cross from Forwarding into Notifications and Billing.

Forwarding commands run in the forwarding context as usual. The events they
commit are then read back from the forwarding event store and handed to the
downstream handlers inside the consuming domain's context, the way the
engine would deliver them.
"""

import pytest
from billing.transaction.forwarding_events import (
    ConsolidationBillingHandler,
    PhotoRequestBillingHandler,
    ShipmentBillingHandler,
)
from billing.transaction.transaction import Transaction
from notifications.notification.forwarding_events import (
    ConsolidationEventsHandler,
    PackageEventsHandler,
    PhotoRequestEventsHandler,
    ShipmentEventsHandler,
)
from notifications.notification.notification import Notification
from protean import current_domain

NOTIFICATION_HANDLERS = (
    PackageEventsHandler,
    ConsolidationEventsHandler,
    ShipmentEventsHandler,
    PhotoRequestEventsHandler,
)
BILLING_HANDLERS = (ConsolidationBillingHandler, ShipmentBillingHandler, PhotoRequestBillingHandler)


def _committed_messages(handlers) -> list[tuple[type, object]]:
    """Pair every committed forwarding message with the handler subscribed to it."""
    deliveries = []
    for handler in handlers:
        for message in current_domain.event_store.store.read(handler.meta_.stream_category):
            if message.metadata.headers.type in handler._handlers:
                deliveries.append((handler, message))
    return deliveries


def _deliver(bed, handlers, repository_cls):
    deliveries = _committed_messages(handlers)
    with bed.domain_context():
        for handler, message in deliveries:
            handler._handle(message)
        return current_domain.repository_for(repository_cls)._dao.query.limit(None).all().items


@pytest.fixture
def delivered_notifications(notifications_bed):
    """Run the Notifications handlers over everything committed so far."""

    def _notifications(user_id="user-u") -> list[Notification]:
        stored = _deliver(notifications_bed, NOTIFICATION_HANDLERS, Notification)
        return [notification for notification in stored if notification.user_id == user_id]

    return _notifications


@pytest.fixture
def delivered_charges(billing_bed):
    """Run the Billing handlers over everything committed so far."""

    def _charges(user_id="user-u") -> list[Transaction]:
        stored = _deliver(billing_bed, BILLING_HANDLERS, Transaction)
        return [transaction for transaction in stored if transaction.user_id == user_id]

    return _charges
