"""Tests for the fake carrier adapter and the adapter registry."""

import pytest
from forwarding.carrier import get_carrier, reset_carrier, set_carrier
from forwarding.carrier.fake_adapter import FakeCarrier
from forwarding.carrier.port import CarrierError, RateRequest, map_status_code
from forwarding.shared.measurements import Dimensions


class _Shipment:
    id = "s-1"
    service_level = "express"


class TestFakeCarrier:
    def test_create_label(self):
        carrier = FakeCarrier()
        result = carrier.create_label(_Shipment())
        assert result.tracking_number.startswith("FAKE-")
        assert result.tracking_url.endswith(result.tracking_number)
        assert result.estimated_delivery is not None
        assert carrier.calls == [("create_label", "s-1")]

    def test_configured_failure(self):
        carrier = FakeCarrier()
        carrier.configure(should_succeed=False, failure_reason="Label printer on fire")
        with pytest.raises(CarrierError) as exc:
            carrier.create_label(_Shipment())
        assert exc.value.messages == {"carrier": ["Label printer on fire"]}

    def test_unconfigured(self):
        assert FakeCarrier(configured=False).is_configured() is False

    def test_rates(self):
        rates = FakeCarrier().get_rates(RateRequest(weight_kg=2, dimensions=Dimensions(length=1, width=1, height=1)))
        assert [(r.product_code, r.total_price) for r in rates] == [("P", 150.0), ("Y", 100.0)]

    def test_track_returns_ordered_events(self):
        snapshot = FakeCarrier().track("FAKE-1")
        assert snapshot.status == "in_transit"
        assert snapshot.events[0].timestamp < snapshot.events[1].timestamp


class TestStatusCodes:
    @pytest.mark.parametrize(
        "code, status",
        [
            ("PU", "pending"),
            ("PL", "processing"),
            ("WC", "in_transit"),
            ("ok", "delivered"),
            ("DD", "delivered"),
            ("CA", "cancelled"),
            ("XYZ", "in_transit"),
            (None, "in_transit"),
        ],
    )
    def test_mapping(self, code, status):
        assert map_status_code(code) == status


class TestRegistry:
    def test_fake_by_default(self, monkeypatch):
        monkeypatch.delenv("CARRIER_ADAPTER", raising=False)
        assert isinstance(get_carrier(), FakeCarrier)

    def test_singleton(self, monkeypatch):
        monkeypatch.delenv("CARRIER_ADAPTER", raising=False)
        assert get_carrier() is get_carrier()

    def test_unknown_adapter(self, monkeypatch):
        monkeypatch.setenv("CARRIER_ADAPTER", "pigeon")
        with pytest.raises(ValueError):
            get_carrier()

    def test_set_carrier(self):
        carrier = FakeCarrier(configured=False)
        set_carrier(carrier)
        assert get_carrier() is carrier
        reset_carrier()
        assert get_carrier() is not carrier
