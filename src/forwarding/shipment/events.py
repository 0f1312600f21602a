"""Shipment domain events — streamed on ``forwarding::shipment``.

Consumed by Notifications (customer messages) and Billing (pending charges).
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from forwarding.domain import forwarding


@forwarding.event(part_of="Shipment")
class ShipmentCreated:
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


@forwarding.event(part_of="Shipment")
class ShipmentStatusChanged:
    """Raised on every status change, whatever triggered it."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    tracking_number = String(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    destination_country = String()
    changed_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class CarrierLabelCreated:
    __version__ = 1

    shipment_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    label_url = String()
    created_at = DateTime(required=True)


@forwarding.event(part_of="Shipment")
class TrackingUpdatePosted:
    """Warehouse staff posted a tracking checkpoint by hand."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    status = String(required=True)
    location = String(required=True)
    description = String(required=True)
    posted_at = DateTime(required=True)
