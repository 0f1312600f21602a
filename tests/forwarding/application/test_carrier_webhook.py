"""Tests for carrier push updates keyed by tracking number."""

from datetime import UTC, datetime, timedelta

import pytest
from forwarding.package.package import Package, PackageStatus
from forwarding.shipment.engine import ApplyCarrierUpdate, CreateCarrierLabel
from forwarding.shipment.shipment import Shipment, ShipmentStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError


@pytest.fixture
def shipment(register_package, create_shipment):
    shipment_id = create_shipment([register_package(), register_package()])
    return current_domain.repository_for(Shipment).get(shipment_id)


def _push(tracking_number, code, **kwargs):
    return current_domain.process(
        ApplyCarrierUpdate(tracking_number=tracking_number, status_code=code, **kwargs),
        asynchronous=False,
    )


def _stored(shipment_id) -> Shipment:
    return current_domain.repository_for(Shipment).get(shipment_id)


def _members(shipment):
    return current_domain.repository_for(Package).get_many(shipment.package_ids)


class TestCarrierUpdates:
    def test_unknown_tracking_number(self):
        with pytest.raises(ObjectNotFoundError):
            _push("NOPE", "WC")

    def test_movement_code_moves_to_in_transit(self, shipment):
        status = _push(
            shipment.tracking_number, "WC", location="Casablanca, MA", description="With delivery courier"
        )

        assert status == ShipmentStatus.IN_TRANSIT.value
        assert _stored(shipment.id).timeline[-1].location == "Casablanca, MA"
        for package in _members(shipment):
            assert package.status == PackageStatus.IN_TRANSIT.value

    def test_delivery_code_after_transit(self, shipment):
        _push(shipment.tracking_number, "WC")
        status = _push(shipment.tracking_number, "OK")

        assert status == ShipmentStatus.DELIVERED.value
        for package in _members(shipment):
            assert package.status == PackageStatus.DELIVERED.value

    def test_out_of_order_delivery_is_recorded_only(self, shipment):
        status = _push(shipment.tracking_number, "DD")

        stored = _stored(shipment.id)
        assert status == ShipmentStatus.PENDING.value
        assert stored.status == ShipmentStatus.PENDING.value
        assert stored.timeline[-1].status == "delivered"
        assert stored.timeline[-1].description == "Carrier checkpoint DD"

    def test_repeated_movement_is_recorded_only(self, shipment):
        _push(shipment.tracking_number, "WC")
        status = _push(shipment.tracking_number, "RCS")

        assert status == ShipmentStatus.IN_TRANSIT.value
        assert len(_stored(shipment.id).tracking_events) == 3

    def test_cancel_code_on_pending_shipment(self, shipment):
        status = _push(shipment.tracking_number, "CA")

        assert status == ShipmentStatus.CANCELLED.value
        for package in _members(shipment):
            assert package.status == PackageStatus.RECEIVED.value

    def test_cancel_code_in_transit_is_recorded_only(self, shipment):
        _push(shipment.tracking_number, "WC")
        assert _push(shipment.tracking_number, "CA") == ShipmentStatus.IN_TRANSIT.value

    def test_updates_estimated_delivery(self, shipment):
        eta = datetime.now(UTC) + timedelta(days=9)
        _push(shipment.tracking_number, "WC", estimated_delivery=eta)
        assert _stored(shipment.id).estimated_delivery == eta

    def test_follows_tracking_number_from_label(self, fake_carrier, shipment):
        tracking_number = current_domain.process(
            CreateCarrierLabel(shipment_id=str(shipment.id)), asynchronous=False
        )
        assert _push(tracking_number, "WC") == ShipmentStatus.IN_TRANSIT.value
