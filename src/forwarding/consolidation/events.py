"""Consolidation domain events — streamed on ``forwarding::consolidation``.

Consumed by Notifications (customer messages) and Billing (pending charges).
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from forwarding.domain import forwarding


@forwarding.event(part_of="Consolidation")
class ConsolidationRequested:
    """A customer asked for several of their packages to be merged."""

    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    package_count = Integer(required=True)
    total_cost = Float(required=True)
    currency = String(required=True)
    estimate_days = Integer(required=True)
    requested_at = DateTime(required=True)


@forwarding.event(part_of="Consolidation")
class ConsolidationProcessingStarted:
    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    started_at = DateTime(required=True)


@forwarding.event(part_of="Consolidation")
class ConsolidationCompleted:
    """Warehouse staff finished the merge and created the resulting package."""

    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    resulting_package_id = Identifier(required=True)
    package_count = Integer(required=True)
    completed_at = DateTime(required=True)


@forwarding.event(part_of="Consolidation")
class ConsolidationCancelled:
    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    cancelled_by_admin = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@forwarding.event(part_of="Consolidation")
class ConsolidationPhotosUploaded:
    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    photo_count = Integer(required=True)
    uploaded_at = DateTime(required=True)
