"""Tests for shipment status updates, cancellation, tracking and quotes."""

import json

import pytest
from forwarding.carrier.port import CarrierNotConfiguredError
from forwarding.package.package import Package, PackageStatus
from forwarding.shipment.engine import (
    AddTrackingEvent,
    CancelShipment,
    CreateCarrierLabel,
    SyncTracking,
    UpdateShipmentStatus,
    quote_rates,
)
from forwarding.shipment.events import ShipmentStatusChanged, TrackingUpdatePosted
from forwarding.shipment.shipment import Shipment, ShipmentStatus
from protean import current_domain
from protean.exceptions import InvalidOperationError, InvalidStateError, ValidationError


@pytest.fixture
def shipment(register_package, create_shipment):
    shipment_id = create_shipment([register_package(), register_package()])
    return current_domain.repository_for(Shipment).get(shipment_id)


def _update(shipment_id, status, **kwargs):
    return current_domain.process(
        UpdateShipmentStatus(shipment_id=str(shipment_id), status=status, **kwargs),
        asynchronous=False,
    )


def _stored(shipment_id) -> Shipment:
    return current_domain.repository_for(Shipment).get(shipment_id)


def _members(shipment):
    return current_domain.repository_for(Package).get_many(shipment.package_ids)


def _status_changes(stored_events):
    return [e for e in stored_events("forwarding::shipment") if isinstance(e, ShipmentStatusChanged)]


class TestUpdateStatus:
    def test_in_transit_cascades_to_packages(self, shipment, stored_events):
        assert _update(shipment.id, "in_transit") == ShipmentStatus.IN_TRANSIT.value

        assert _stored(shipment.id).shipped_date is not None
        for package in _members(shipment):
            assert package.status == PackageStatus.IN_TRANSIT.value

        change = _status_changes(stored_events)[-1]
        assert change.to_status == "in_transit"
        assert change.destination_country == "Morocco"

    def test_delivered_cascades_to_packages(self, shipment):
        _update(shipment.id, "in_transit")
        _update(shipment.id, "delivered")

        assert _stored(shipment.id).actual_delivery is not None
        for package in _members(shipment):
            assert package.status == PackageStatus.DELIVERED.value

    def test_tracking_event_is_appended(self, shipment):
        event = {"status": "in_transit", "location": "JFK Airport", "description": "Departed origin"}
        _update(shipment.id, "in_transit", tracking_event=json.dumps(event))

        stored = _stored(shipment.id)
        assert stored.timeline[-1].location == "JFK Airport"
        assert len(stored.tracking_events) == 2

    def test_tracking_event_needs_description(self, shipment):
        with pytest.raises(ValidationError):
            _update(shipment.id, "in_transit", tracking_event=json.dumps({"status": "in_transit"}))

    def test_illegal_edge_is_rejected(self, shipment):
        with pytest.raises(InvalidStateError):
            _update(shipment.id, "delivered")
        assert _stored(shipment.id).status == ShipmentStatus.PENDING.value

    def test_same_status_is_a_no_op(self, shipment, stored_events):
        _update(shipment.id, "pending")
        assert _status_changes(stored_events) == []

    def test_unknown_status(self, shipment):
        with pytest.raises(ValidationError):
            _update(shipment.id, "lost_at_sea")

    def test_actor_must_own_shipment(self, shipment):
        with pytest.raises(InvalidOperationError):
            _update(shipment.id, "in_transit", actor_id="user-v")
        assert _stored(shipment.id).status == ShipmentStatus.PENDING.value


class TestCancelShipment:
    def test_releases_packages(self, shipment):
        status = current_domain.process(CancelShipment(shipment_id=str(shipment.id)), asynchronous=False)

        assert status == ShipmentStatus.CANCELLED.value
        assert _stored(shipment.id).timeline[-1].status == "cancelled"
        for package in _members(shipment):
            assert package.status == PackageStatus.RECEIVED.value
            assert package.shipment_id is None

    def test_released_packages_can_ship_again(self, shipment, create_shipment):
        _update(shipment.id, "cancelled")
        again = create_shipment(_members(shipment), carrier="UPS", service_level="standard")
        assert _stored(again).status == ShipmentStatus.PENDING.value

    def test_only_pending_shipments(self, fake_carrier, shipment):
        current_domain.process(CreateCarrierLabel(shipment_id=str(shipment.id)), asynchronous=False)

        with pytest.raises(InvalidStateError):
            current_domain.process(CancelShipment(shipment_id=str(shipment.id)), asynchronous=False)
        for package in _members(shipment):
            assert package.status == PackageStatus.SHIPPED.value

    def test_stranger_cannot_cancel(self, shipment):
        with pytest.raises(InvalidOperationError):
            current_domain.process(
                CancelShipment(shipment_id=str(shipment.id), actor_id="user-v"),
                asynchronous=False,
            )


class TestTrackingEvents:
    def test_add_tracking_event(self, shipment, stored_events):
        current_domain.process(
            AddTrackingEvent(
                shipment_id=str(shipment.id),
                status="in_transit",
                location="Leipzig Hub",
                description="Arrived at sort facility",
            ),
            asynchronous=False,
        )

        stored = _stored(shipment.id)
        assert stored.status == ShipmentStatus.PENDING.value
        assert stored.timeline[-1].description == "Arrived at sort facility"
        posted = [e for e in stored_events("forwarding::shipment") if isinstance(e, TrackingUpdatePosted)]
        assert posted[-1].location == "Leipzig Hub"

    def test_event_fields_required(self, shipment):
        with pytest.raises(ValidationError):
            current_domain.process(
                AddTrackingEvent(
                    shipment_id=str(shipment.id), status="in_transit", location="", description="No location"
                ),
                asynchronous=False,
            )


class TestSyncTracking:
    def test_pulls_new_events_and_follows_status(self, fake_carrier, shipment):
        status = current_domain.process(SyncTracking(shipment_id=str(shipment.id)), asynchronous=False)

        assert status == ShipmentStatus.IN_TRANSIT.value
        assert _stored(shipment.id).timeline[-1].description == "Package in transit"
        assert ("track", shipment.tracking_number) in fake_carrier.calls
        for package in _members(shipment):
            assert package.status == PackageStatus.IN_TRANSIT.value

    def test_unconfigured_carrier(self, fake_carrier, shipment):
        fake_carrier.configure(configured=False)
        with pytest.raises(CarrierNotConfiguredError):
            current_domain.process(SyncTracking(shipment_id=str(shipment.id)), asynchronous=False)


class TestQuoteRates:
    def test_quotes(self, fake_carrier, register_package):
        package = register_package(weight=2.0)
        rates = quote_rates("user-u", [package.id])
        assert [rate.service_level for rate in rates] == ["express", "standard"]

    def test_unconfigured_carrier(self, fake_carrier, register_package):
        package = register_package()
        fake_carrier.configure(configured=False)
        with pytest.raises(CarrierNotConfiguredError):
            quote_rates("user-u", [package.id])

    def test_foreign_packages(self, fake_carrier, register_package):
        package = register_package(owner_id="user-v")
        with pytest.raises(InvalidOperationError):
            quote_rates("user-u", [package.id])
