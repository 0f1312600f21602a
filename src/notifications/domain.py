"""Notifications bounded context — In-app messages about forwarding activity.

Consumes Forwarding events (package received, consolidation and shipment
progress, photo requests, storage warnings) and records one customer-facing
notification per event. Delivery transport is out of scope; a notification
is only stored and later marked read.
"""

import structlog
from protean.domain import Domain

notifications = Domain(name="notifications")

logger = structlog.get_logger(__name__)
