"""Cross-domain event contracts for Forwarding domain events.

These classes define the event shape for consumption by other domains
(Notifications to message the package owner, Billing to record pending
charges). They are registered as external events via
domain.register_external_event() with matching __type__ strings so
Protean's stream deserialization works correctly.

The source-of-truth events live in src/forwarding/*/events.py.
"""

from protean.core.event import BaseEvent
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String


# ---------------------------------------------------------------------------
# forwarding::package
# ---------------------------------------------------------------------------
class PackageReceived(BaseEvent):
    """A parcel arrived at the warehouse for a customer's suite."""

    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    retailer = String(required=True)
    received_at = DateTime(required=True)


class PackagePhotosUploaded(BaseEvent):
    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    photo_count = Integer(required=True)
    uploaded_at = DateTime(required=True)


class StorageWarningIssued(BaseEvent):
    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    storage_days = Integer(required=True)
    issued_at = DateTime(required=True)


class PackageReconciled(BaseEvent):
    """A package forced into consolidated was linked to a consolidation."""

    __version__ = 1

    package_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    consolidation_id = Identifier(required=True)
    outcome = String(required=True)
    reconciled_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# forwarding::consolidation
# ---------------------------------------------------------------------------
class ConsolidationRequested(BaseEvent):
    """A customer asked for several of their packages to be merged."""

    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    package_count = Integer(required=True)
    total_cost = Float(required=True)
    currency = String(required=True)
    estimate_days = Integer(required=True)
    requested_at = DateTime(required=True)


class ConsolidationProcessingStarted(BaseEvent):
    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    started_at = DateTime(required=True)


class ConsolidationCompleted(BaseEvent):
    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    resulting_package_id = Identifier(required=True)
    package_count = Integer(required=True)
    completed_at = DateTime(required=True)


class ConsolidationCancelled(BaseEvent):
    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    cancelled_by_admin = Boolean(default=False)
    cancelled_at = DateTime(required=True)


class ConsolidationPhotosUploaded(BaseEvent):
    __version__ = 1

    consolidation_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    photo_count = Integer(required=True)
    uploaded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# forwarding::shipment
# ---------------------------------------------------------------------------
class ShipmentCreated(BaseEvent):
    """Packages were handed to a carrier workflow and the shipment was priced."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    total_cost = Float(required=True)
    currency = String(required=True)
    package_count = Integer(required=True)
    created_at = DateTime(required=True)


class ShipmentStatusChanged(BaseEvent):
    __version__ = 1

    shipment_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    destination_country = String()
    changed_at = DateTime(required=True)


class TrackingUpdatePosted(BaseEvent):
    __version__ = 1

    shipment_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    status = String(required=True)
    location = String(required=True)
    description = String(required=True)
    posted_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# forwarding::photo_request
# ---------------------------------------------------------------------------
class PhotoRequestCreated(BaseEvent):
    """A customer paid for extra photos or an inspection report of a package."""

    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    package_id = Identifier(required=True)
    package_description = String(required=True)
    request_type = String(required=True)
    total_cost = Float(required=True)
    currency = String(required=True)
    requested_at = DateTime(required=True)


class PhotoRequestProcessingStarted(BaseEvent):
    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    started_at = DateTime(required=True)


class PhotoRequestCompleted(BaseEvent):
    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    package_id = Identifier(required=True)
    photo_count = Integer(required=True)
    completed_at = DateTime(required=True)


class PhotoRequestCancelled(BaseEvent):
    __version__ = 1

    photo_request_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)
