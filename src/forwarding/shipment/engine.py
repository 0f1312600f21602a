"""Shipment workflow — carrier handoff, labels, status updates and tracking.

Status updates cascade onto member packages: IN_TRANSIT moves SHIPPED
packages to IN_TRANSIT, DELIVERED moves every member to DELIVERED.
Carrier calls are synchronous and never retried here; a carrier failure
leaves the shipment untouched so the caller can simply try again.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import InvalidStateError, ObjectNotFoundError, ProteanException, ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from forwarding.carrier import get_carrier
from forwarding.carrier.port import CarrierError, CarrierNotConfiguredError, RateRequest, map_status_code
from forwarding.config import get_policy
from forwarding.consolidation.consolidation import Consolidation
from forwarding.domain import forwarding
from forwarding.ownership import assert_owner, assert_owns_all
from forwarding.package.package import Package, PackageStatus, generate_tracking_number
from forwarding.pricing import PricingCalculator
from forwarding.shipment.shipment import (
    Carrier,
    CustomsItem,
    Destination,
    Shipment,
    ShipmentStatus,
    stacked_dimensions,
)

logger = structlog.get_logger(__name__)

SHIPPABLE = [PackageStatus.RECEIVED.value, PackageStatus.CONSOLIDATED.value]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@forwarding.command(part_of="Shipment")
class CreateShipment:
    """Hand packages the actor owns to a carrier."""

    actor_id: Identifier(required=True)
    package_ids: Text(required=True)  # JSON list of package id strings
    carrier: String(required=True, max_length=20)
    service_level: String(required=True, max_length=50)
    full_name: String(required=True, max_length=200)
    street: String(required=True, max_length=255)
    city: String(required=True, max_length=100)
    postal_code: String(required=True, max_length=20)
    country: String(max_length=100, default="Morocco")
    phone: String(required=True, max_length=30)
    insurance_coverage: Float()
    customs_info: Text()  # JSON list of customs item dicts


@forwarding.command(part_of="Shipment")
class CreateCarrierLabel:
    shipment_id: Identifier(required=True)


@forwarding.command(part_of="Shipment")
class UpdateShipmentStatus:
    shipment_id: Identifier(required=True)
    status: String(required=True, max_length=20)
    actor_id: Identifier()
    tracking_event: Text()  # JSON {"status", "location", "description", "timestamp"}


@forwarding.command(part_of="Shipment")
class CancelShipment:
    shipment_id: Identifier(required=True)
    actor_id: Identifier()


@forwarding.command(part_of="Shipment")
class AddTrackingEvent:
    """Append a tracking checkpoint without changing the shipment status."""

    shipment_id: Identifier(required=True)
    status: String(max_length=50)
    location: String(max_length=255)
    description: String(max_length=500)
    timestamp: DateTime()


@forwarding.command(part_of="Shipment")
class ApplyCarrierUpdate:
    """A carrier webhook checkpoint, keyed by tracking number."""

    tracking_number: String(required=True, max_length=100)
    status_code: String(required=True, max_length=10)
    location: String(max_length=255)
    description: String(max_length=500)
    timestamp: DateTime()
    estimated_delivery: DateTime()


@forwarding.command(part_of="Shipment")
class SyncTracking:
    """Pull the carrier's tracking history and apply anything new."""

    shipment_id: Identifier(required=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _parse_ids(payload) -> list[str]:
    ids = json.loads(payload) if isinstance(payload, str) else payload
    return [str(package_id) for package_id in ids or []]


def _parse_carrier(value: str) -> Carrier:
    supported = get_policy().supported_carriers
    try:
        carrier = Carrier(value)
    except ValueError:
        carrier = None
    if carrier is None or carrier.value not in supported:
        raise ValidationError({"carrier": [f"Unsupported carrier {value}; expected one of {', '.join(supported)}"]})
    return carrier


def _parse_status(value: str) -> ShipmentStatus:
    try:
        return ShipmentStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown shipment status {value}"]}) from None


def _parse_tracking_event(payload) -> dict | None:
    if not payload:
        return None
    data = json.loads(payload) if isinstance(payload, str) else dict(payload)
    missing = [key for key in ("status", "description") if not data.get(key)]
    if missing:
        raise ValidationError({key: ["is required"] for key in missing})
    if isinstance(data.get("timestamp"), str):
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
    return data


def _require_configured_carrier():
    carrier = get_carrier()
    if not carrier.is_configured():
        raise CarrierNotConfiguredError({"carrier": ["Carrier service is not configured"]})
    return carrier


def _load_owned(package_ids: list[str], actor_id: str) -> list[Package]:
    packages = current_domain.repository_for(Package).get_many(package_ids)
    assert_owns_all(packages, actor_id)
    return packages


def _assert_shippable(packages: list[Package]) -> None:
    consolidations = current_domain.repository_for(Consolidation)
    problems = [f"Package {package.id} is {package.status}" for package in packages if package.status not in SHIPPABLE]
    for package in packages:
        active = consolidations.find_active_containing(package.id)
        if active is not None:
            problems.append(f"Package {package.id} is part of consolidation {active.id} in progress")
    if problems:
        raise InvalidStateError({"package_ids": problems})


def _cascade_to_packages(shipment: Shipment, status: ShipmentStatus) -> None:
    """Move member packages along with the shipment."""
    if status == ShipmentStatus.IN_TRANSIT:
        target, expected = PackageStatus.IN_TRANSIT, {PackageStatus.SHIPPED.value}
    elif status == ShipmentStatus.DELIVERED:
        target, expected = PackageStatus.DELIVERED, {PackageStatus.SHIPPED.value, PackageStatus.IN_TRANSIT.value}
    else:
        return

    package_repo = current_domain.repository_for(Package)
    for package in package_repo.get_many(shipment.package_ids):
        if package.status in expected:
            package.transition_to(target)
            package_repo.add(package)


def apply_status(shipment: Shipment, status: ShipmentStatus, event: dict | None = None) -> bool:
    """Record ``event`` and move to ``status``. Returns whether the status changed."""
    if shipment.status != status.value and not shipment.can_move_to(status):
        raise InvalidStateError({"status": [f"Shipment cannot move from {shipment.status} to {status.value}"]})
    if event is not None:
        shipment.record_tracking_event(**event)
    changed = shipment.transition_to(status)
    if not changed and event is None:
        return False

    current_domain.repository_for(Shipment).add(shipment)
    if changed:
        _cascade_to_packages(shipment, status)

    logger.info(
        "Shipment status updated",
        operation="shipment.update_status",
        shipment_id=str(shipment.id),
        status=status.value,
        changed=changed,
        event_added=event is not None,
    )
    return changed


def cancel_shipment(shipment: Shipment, event: dict | None = None) -> None:
    """Cancel a PENDING shipment; members still on it go back to RECEIVED."""
    if shipment.status != ShipmentStatus.PENDING.value:
        raise InvalidStateError(
            {"status": [f"Only pending shipments can be cancelled, this one is {shipment.status}"]}
        )

    shipment.transition_to(ShipmentStatus.CANCELLED)
    event = event or {
        "status": ShipmentStatus.CANCELLED.value,
        "location": get_policy().warehouse_location,
        "description": "Shipment cancelled",
    }
    shipment.record_tracking_event(**event)

    package_repo = current_domain.repository_for(Package)
    released = 0
    for package in package_repo.get_many(shipment.package_ids):
        if package.shipment_id == str(shipment.id):
            package.return_to_warehouse()
            package_repo.add(package)
            released += 1
    current_domain.repository_for(Shipment).add(shipment)

    logger.info("Shipment cancelled", operation="shipment.cancel", shipment_id=str(shipment.id), released=released)


# ---------------------------------------------------------------------------
# Command Handler
# ---------------------------------------------------------------------------
@forwarding.command_handler(part_of=Shipment)
class ShipmentHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        ids = _parse_ids(command.package_ids)
        if not ids:
            raise ValidationError({"package_ids": ["At least one package is required"]})
        if len(set(ids)) != len(ids):
            raise ValidationError({"package_ids": ["Package ids must not repeat"]})
        carrier = _parse_carrier(command.carrier)
        if command.insurance_coverage is not None and command.insurance_coverage < 0:
            raise ValidationError({"insurance_coverage": ["Coverage cannot be negative"]})
        destination = Destination(
            full_name=command.full_name,
            street=command.street,
            city=command.city,
            postal_code=command.postal_code,
            country=command.country or "Morocco",
            phone=command.phone,
        )
        customs = [CustomsItem(**item) for item in json.loads(command.customs_info or "[]")]

        packages = _load_owned(ids, command.actor_id)
        _assert_shippable(packages)

        policy = get_policy()
        weight_kg = round(sum(package.weight.in_kg() for package in packages), 3)
        dimensions = stacked_dimensions(package.dimensions for package in packages)
        cost = PricingCalculator(policy).shipment_cost(weight_kg, dimensions, carrier.value, command.insurance_coverage)

        shipment = Shipment.create(
            owner_id=command.actor_id,
            package_ids=ids,
            carrier=carrier,
            service_level=command.service_level,
            tracking_number=generate_tracking_number(carrier.value.upper()),
            destination=destination,
            weight_kg=weight_kg,
            dimensions=dimensions,
            cost=cost,
            insurance_coverage=command.insurance_coverage or 0,
            customs_info=customs,
            estimate_days=policy.shipping_estimate_days,
            origin_location=policy.warehouse_location,
        )

        package_repo = current_domain.repository_for(Package)
        for package in packages:
            package.mark_shipped(str(shipment.id))
            package_repo.add(package)
        current_domain.repository_for(Shipment).add(shipment)

        logger.info(
            "Shipment created",
            operation="shipment.create",
            actor_id=command.actor_id,
            shipment_id=str(shipment.id),
            tracking_number=shipment.tracking_number,
            package_count=len(ids),
            weight=weight_kg,
            total_cost=cost.total,
        )
        return str(shipment.id)

    @handle(CreateCarrierLabel)
    def create_carrier_label(self, command):
        carrier = _require_configured_carrier()

        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        shipment.assert_label_allowed()

        try:
            result = carrier.create_label(shipment)
        except CarrierError:
            logger.warning("Carrier rejected label request", carrier=shipment.carrier, shipment_id=str(shipment.id))
            raise
        except ProteanException:
            raise
        except Exception as exc:
            logger.error("Carrier label request failed", carrier=shipment.carrier, error=str(exc))
            raise CarrierError({"carrier": [f"Carrier label request failed: {exc}"]}) from exc

        shipment.attach_label(result.tracking_number, result.label_url, result.tracking_url, result.estimated_delivery)
        repo.add(shipment)

        logger.info(
            "Carrier label created",
            operation="shipment.create_label",
            shipment_id=str(shipment.id),
            tracking_number=shipment.tracking_number,
        )
        return shipment.tracking_number

    @handle(UpdateShipmentStatus)
    def update_status(self, command):
        status = _parse_status(command.status)
        event = _parse_tracking_event(command.tracking_event)

        shipment = current_domain.repository_for(Shipment).get(command.shipment_id)
        if command.actor_id is not None:
            assert_owner(shipment, command.actor_id)
        if status == ShipmentStatus.CANCELLED:
            cancel_shipment(shipment, event)
        else:
            apply_status(shipment, status, event)
        return shipment.status

    @handle(CancelShipment)
    def cancel(self, command):
        shipment = current_domain.repository_for(Shipment).get(command.shipment_id)
        if command.actor_id is not None:
            assert_owner(shipment, command.actor_id)
        cancel_shipment(shipment)
        return shipment.status

    @handle(AddTrackingEvent)
    def add_tracking_event(self, command):
        if not command.status or not command.location or not command.description:
            raise ValidationError({"tracking_event": ["Status, location and description are required"]})

        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        shipment.post_tracking_update(command.status, command.location, command.description, command.timestamp)
        repo.add(shipment)

        logger.info(
            "Tracking event added",
            operation="shipment.add_tracking_event",
            shipment_id=str(shipment.id),
            event_status=command.status,
        )
        return str(shipment.id)

    @handle(ApplyCarrierUpdate)
    def apply_carrier_update(self, command):
        """Record the checkpoint and follow it when the mapped status is a
        legal next step. Anything else is recorded only."""
        repo = current_domain.repository_for(Shipment)
        shipment = repo.find_by_tracking_number(command.tracking_number)
        if shipment is None:
            raise ObjectNotFoundError(
                {"tracking_number": [f"No shipment with tracking number {command.tracking_number}"]}
            )

        mapped = ShipmentStatus(map_status_code(command.status_code))
        event = {
            "status": mapped.value,
            "location": command.location or "",
            "description": command.description or f"Carrier checkpoint {command.status_code}",
            "timestamp": command.timestamp or datetime.now(UTC),
        }
        if command.estimated_delivery is not None:
            shipment.estimated_delivery = command.estimated_delivery

        logger.info(
            "Carrier update received",
            operation="shipment.carrier_update",
            shipment_id=str(shipment.id),
            status_code=command.status_code,
            mapped_status=mapped.value,
        )

        if mapped == ShipmentStatus.CANCELLED and shipment.status == ShipmentStatus.PENDING.value:
            cancel_shipment(shipment, event)
        elif mapped != ShipmentStatus.CANCELLED and shipment.can_move_to(mapped):
            apply_status(shipment, mapped, event)
        else:
            shipment.record_tracking_event(**event)
            repo.add(shipment)
        return shipment.status

    @handle(SyncTracking)
    def sync_tracking(self, command):
        carrier = _require_configured_carrier()

        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(command.shipment_id)
        snapshot = carrier.track(shipment.tracking_number)

        last_seen = shipment.last_tracked_at()
        for update in sorted(snapshot.events, key=lambda update: update.timestamp):
            if last_seen is not None and update.timestamp <= last_seen:
                continue
            shipment.record_tracking_event(update.status, update.location, update.description, update.timestamp)
        if snapshot.estimated_delivery is not None:
            shipment.estimated_delivery = snapshot.estimated_delivery

        target = ShipmentStatus(snapshot.status)
        if target != ShipmentStatus.CANCELLED and shipment.can_move_to(target):
            apply_status(shipment, target)
        else:
            repo.add(shipment)
        return shipment.status


# ---------------------------------------------------------------------------
# Quotes and reads
# ---------------------------------------------------------------------------
def quote_rates(actor_id: str, package_ids: list[str], destination_country: str = "MA"):
    ids = [str(package_id) for package_id in package_ids]
    if not ids:
        raise ValidationError({"package_ids": ["At least one package is required"]})
    carrier = _require_configured_carrier()

    policy = get_policy()
    packages = _load_owned(ids, actor_id)
    request = RateRequest(
        weight_kg=round(sum(package.weight.in_kg() for package in packages), 3),
        dimensions=stacked_dimensions(package.dimensions for package in packages),
        origin_country_code=policy.origin_country_code,
        destination_country_code=destination_country,
        declared_value=sum(package.estimated_value.amount for package in packages) or 100,
    )
    try:
        return carrier.get_rates(request)
    except ProteanException:
        raise
    except Exception as exc:
        raise CarrierError({"carrier": [f"Carrier rate request failed: {exc}"]}) from exc


def get_shipment(shipment_id: str, actor_id: str | None = None) -> Shipment:
    shipment = current_domain.repository_for(Shipment).get(shipment_id)
    if actor_id is not None:
        assert_owner(shipment, actor_id)
    return shipment
