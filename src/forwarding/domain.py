"""Forwarding bounded context — Warehouse intake, Consolidation and Shipment.

Tracks customer packages from warehouse receipt at the customer's suite
through consolidation (merging several packages into one) and carrier
shipment to final delivery. CQRS aggregates; side effects leave the context
as domain events consumed by Notifications and Billing.
"""

from protean.domain import Domain

from forwarding.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
forwarding = Domain(name="forwarding")
