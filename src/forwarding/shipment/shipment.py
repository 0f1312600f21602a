"""Shipment aggregate (CQRS) — packages handed to an international carrier.

State Machine:
    PENDING → PROCESSING → IN_TRANSIT → DELIVERED
    PENDING → IN_TRANSIT
    PENDING | PROCESSING → CANCELLED
    DELIVERED and CANCELLED are terminal

Tracking events are append-only: nothing ever removes or rewrites one.
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import InvalidStateError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, List, String, Text, ValueObject

from forwarding.domain import forwarding
from forwarding.ownership import normalize_owner
from forwarding.pricing import ShipmentCost
from forwarding.shared.measurements import Dimensions
from forwarding.shipment.events import (
    CarrierLabelCreated,
    ShipmentCreated,
    ShipmentStatusChanged,
    TrackingUpdatePosted,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ShipmentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Carrier(Enum):
    DHL = "DHL"
    FEDEX = "FedEx"
    ARAMEX = "Aramex"
    UPS = "UPS"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    ShipmentStatus.PENDING: {
        ShipmentStatus.PROCESSING,
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.CANCELLED,
    },
    ShipmentStatus.PROCESSING: {
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.CANCELLED,
    },
    ShipmentStatus.IN_TRANSIT: {ShipmentStatus.DELIVERED},
    ShipmentStatus.DELIVERED: set(),  # Terminal
    ShipmentStatus.CANCELLED: set(),  # Terminal
}

LABEL_ELIGIBLE = {ShipmentStatus.PENDING.value, ShipmentStatus.PROCESSING.value}


def can_transition(current: ShipmentStatus, target: ShipmentStatus) -> bool:
    return target in _VALID_TRANSITIONS[current]


def stacked_dimensions(boxes: Iterable[Dimensions]) -> Dimensions:
    """Bounding box for boxes stacked on top of each other: the largest
    footprint, with heights summed. All inputs are converted to cm."""
    boxes = [box.in_cm() for box in boxes]
    return Dimensions(
        length=max(box.length for box in boxes),
        width=max(box.width for box in boxes),
        height=sum(box.height for box in boxes),
    )


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@forwarding.value_object(part_of="Shipment")
class Destination:
    full_name = String(required=True, max_length=200)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="Morocco")
    phone = String(required=True, max_length=30)


@forwarding.value_object(part_of="Shipment")
class ShipmentWeight:
    total = Float(required=True, min_value=0)
    unit = String(max_length=2, default="kg")


@forwarding.value_object(part_of="Shipment")
class Insurance:
    coverage = Float(default=0.0, min_value=0)
    cost = Float(default=0.0, min_value=0)


@forwarding.value_object(part_of="Shipment")
class Label:
    label_url = String(max_length=2000)
    tracking_url = String(max_length=500)
    created_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@forwarding.entity(part_of="Shipment")
class TrackingEvent:
    status = String(required=True, max_length=50)
    location = String(max_length=255, default="")
    description = String(required=True, max_length=500)
    timestamp = DateTime(required=True)


@forwarding.entity(part_of="Shipment")
class CustomsItem:
    description = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    value = Float(required=True, min_value=0)
    hs_code = String(max_length=20)
    country_of_origin = String(max_length=2, default="US")


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@forwarding.aggregate
class Shipment:
    owner_id: Identifier(required=True)
    package_ids: List(content_type=String(max_length=50))
    carrier: String(required=True, choices=Carrier)
    service_level: String(required=True, max_length=50)
    tracking_number: String(required=True, max_length=100)
    status: String(choices=ShipmentStatus, default=ShipmentStatus.PENDING.value)
    destination: ValueObject(Destination, required=True)
    weight: ValueObject(ShipmentWeight, required=True)
    dimensions: ValueObject(Dimensions, required=True)
    cost: ValueObject(ShipmentCost, required=True)
    insurance: ValueObject(Insurance)
    tracking_events: HasMany(TrackingEvent)
    customs_info: HasMany(CustomsItem)
    label: ValueObject(Label)
    estimated_delivery: DateTime()
    shipped_date: DateTime()
    actual_delivery: DateTime()
    notes: Text()
    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        owner_id,
        package_ids: list[str],
        carrier: Carrier,
        service_level: str,
        tracking_number: str,
        destination: Destination,
        weight_kg: float,
        dimensions: Dimensions,
        cost: ShipmentCost,
        insurance_coverage: float,
        customs_info: list[CustomsItem],
        estimate_days: int,
        origin_location: str,
    ):
        now = datetime.now(UTC)
        shipment = cls(
            owner_id=normalize_owner(owner_id),
            package_ids=[str(package_id) for package_id in package_ids],
            carrier=carrier.value,
            service_level=service_level,
            tracking_number=tracking_number,
            destination=destination,
            weight=ShipmentWeight(total=weight_kg),
            dimensions=dimensions,
            cost=cost,
            insurance=Insurance(coverage=insurance_coverage, cost=cost.insurance),
            estimated_delivery=now + timedelta(days=estimate_days),
            created_at=now,
            updated_at=now,
        )
        if customs_info:
            shipment.add_customs_info(customs_info)
        shipment.record_tracking_event(
            ShipmentStatus.PENDING.value,
            origin_location,
            "Shipment created and pending processing",
            now,
        )
        shipment.raise_(
            ShipmentCreated(
                shipment_id=str(shipment.id),
                owner_id=shipment.owner_id,
                carrier=shipment.carrier,
                tracking_number=tracking_number,
                total_cost=cost.total,
                currency=cost.currency,
                package_count=len(shipment.package_ids),
                created_at=now,
            )
        )
        return shipment

    @property
    def timeline(self) -> list[TrackingEvent]:
        """Tracking events, oldest first."""
        return sorted(self.tracking_events, key=lambda event: _utc(event.timestamp))

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def can_move_to(self, target: ShipmentStatus) -> bool:
        return can_transition(ShipmentStatus(self.status), target)

    def _assert_can_transition(self, target: ShipmentStatus) -> None:
        if not self.can_move_to(target):
            raise InvalidStateError({"status": [f"Shipment cannot move from {self.status} to {target.value}"]})

    def transition_to(self, target: ShipmentStatus) -> bool:
        """Returns False (and changes nothing) when already in ``target``."""
        if self.status == target.value:
            return False
        self._assert_can_transition(target)

        now = datetime.now(UTC)
        previous = self.status
        self.status = target.value
        self.updated_at = now
        if target == ShipmentStatus.IN_TRANSIT and self.shipped_date is None:
            self.shipped_date = now
        elif target == ShipmentStatus.DELIVERED:
            self.actual_delivery = now

        self.raise_(
            ShipmentStatusChanged(
                shipment_id=str(self.id),
                owner_id=self.owner_id,
                tracking_number=self.tracking_number,
                from_status=previous,
                to_status=target.value,
                destination_country=self.destination.country,
                changed_at=now,
            )
        )
        return True

    def record_tracking_event(
        self, status: str, location: str, description: str, timestamp: datetime | None = None
    ) -> TrackingEvent:
        event = TrackingEvent(
            status=status,
            location=location or "",
            description=description,
            timestamp=timestamp or datetime.now(UTC),
        )
        self.add_tracking_events(event)
        self.updated_at = datetime.now(UTC)
        return event

    def post_tracking_update(
        self, status: str, location: str, description: str, timestamp: datetime | None = None
    ) -> TrackingEvent:
        """A checkpoint entered by warehouse staff; the owner is told about it."""
        event = self.record_tracking_event(status, location, description, timestamp)
        self.raise_(
            TrackingUpdatePosted(
                shipment_id=str(self.id),
                owner_id=self.owner_id,
                status=status,
                location=location,
                description=description,
                posted_at=event.timestamp,
            )
        )
        return event

    def last_tracked_at(self) -> datetime | None:
        return max((_utc(event.timestamp) for event in self.tracking_events), default=None)

    # -------------------------------------------------------------------
    # Carrier label
    # -------------------------------------------------------------------
    def assert_label_allowed(self) -> None:
        if self.label is not None:
            raise InvalidStateError({"label": [f"Shipment {self.id} already has a carrier label"]})
        if self.status not in LABEL_ELIGIBLE:
            raise InvalidStateError(
                {"status": [f"Carrier labels can only be created for pending or processing shipments, not {self.status}"]}
            )

    def attach_label(
        self,
        tracking_number: str,
        label_url: str | None,
        tracking_url: str | None,
        estimated_delivery: datetime | None = None,
    ) -> None:
        self.assert_label_allowed()

        now = datetime.now(UTC)
        self.tracking_number = tracking_number
        self.label = Label(label_url=label_url, tracking_url=tracking_url, created_at=now)
        if estimated_delivery is not None:
            self.estimated_delivery = estimated_delivery
        self.raise_(
            CarrierLabelCreated(
                shipment_id=str(self.id),
                owner_id=self.owner_id,
                carrier=self.carrier,
                tracking_number=tracking_number,
                label_url=label_url,
                created_at=now,
            )
        )
        self.transition_to(ShipmentStatus.PROCESSING)
        self.record_tracking_event(
            "label_created",
            f"{self.carrier} Facility",
            f"Shipping label created with {self.carrier}",
        )


def _utc(value: datetime) -> datetime:
    # Carriers and older records may hand back naive timestamps
    return value if value.tzinfo else value.replace(tzinfo=UTC)
