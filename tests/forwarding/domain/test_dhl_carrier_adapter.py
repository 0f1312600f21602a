"""Tests for the DHL adapter against a mocked MyDHL API."""

import json

import httpx
import pytest
from forwarding.carrier.dhl_adapter import DhlCarrier, country_code, product_code
from forwarding.carrier.port import CarrierError, CarrierNotConfiguredError, RateRequest
from forwarding.config import CarrierSettings
from forwarding.pricing import ShipmentCost
from forwarding.shared.measurements import Dimensions
from forwarding.shipment.shipment import Carrier, CustomsItem, Destination, Shipment


def _settings(**overrides):
    values = {"api_key": "key", "api_secret": "secret", "account_number": "123456789"}
    values.update(overrides)
    return CarrierSettings(_env_file=None, **values)


def _carrier(handler, settings=None):
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="https://dhl.test")
    return DhlCarrier(settings=settings or _settings(), client=client)


def _shipment():
    return Shipment.create(
        owner_id="user-u",
        package_ids=["p-1"],
        carrier=Carrier.DHL,
        service_level="standard",
        tracking_number="DHL-PLACEHOLDER",
        destination=Destination(
            full_name="Amina Alaoui",
            street="12 Rue Mohammed V",
            city="Casablanca",
            postal_code="20000",
            phone="+212600000000",
        ),
        weight_kg=2.0,
        dimensions=Dimensions(length=30, width=20, height=10),
        cost=ShipmentCost(shipping=120, insurance=0, total=120, currency="MAD"),
        insurance_coverage=0,
        customs_info=[
            CustomsItem(description="Shoes", quantity=1, value=60),
            CustomsItem(description="Book", quantity=2, value=20, hs_code="4901.99"),
        ],
        estimate_days=5,
        origin_location="Warehouse - USA",
    )


class TestHelpers:
    def test_product_codes(self):
        assert product_code("express") == "P"
        assert product_code("Standard") == "Y"
        assert product_code("unknown") == "P"

    def test_country_codes(self):
        assert country_code("Morocco") == "MA"
        assert country_code("ma") == "MA"


class TestConfiguration:
    def test_requires_all_credentials(self):
        assert _carrier(lambda request: httpx.Response(200), _settings(api_secret="")).is_configured() is False
        assert _carrier(lambda request: httpx.Response(200)).is_configured() is True


class TestCreateLabel:
    def test_posts_shipment_and_parses_label(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "shipmentTrackingNumber": "1234567890",
                    "packages": [{"documents": [{"typeCode": "label", "content": "JVBERi0x"}]}],
                    "estimatedDeliveryDate": {"deliveryDateTime": "2026-11-01T12:00:00+00:00"},
                },
            )

        result = _carrier(handler).create_label(_shipment())

        assert seen["path"] == "/shipments"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"]["productCode"] == "Y"
        assert seen["body"]["customerDetails"]["receiverDetails"]["postalAddress"]["countryCode"] == "MA"
        line_items = seen["body"]["content"]["exportDeclaration"]["lineItems"]
        assert [item["number"] for item in line_items] == [1, 2]
        assert line_items[0]["commodityCodes"][0]["value"] == "9999.99.99"
        assert line_items[1]["weight"]["netValue"] == 1.0

        assert result.tracking_number == "1234567890"
        assert result.label_url == "JVBERi0x"
        assert "1234567890" in result.tracking_url
        assert result.estimated_delivery.year == 2026

    def test_api_error_message_is_surfaced(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "Invalid postal code"})

        with pytest.raises(CarrierError) as exc:
            _carrier(handler).create_label(_shipment())
        assert exc.value.messages == {"carrier": ["Invalid postal code"]}

    def test_api_error_without_body(self):
        def handler(request):
            return httpx.Response(503, text="upstream down")

        with pytest.raises(CarrierError) as exc:
            _carrier(handler).create_label(_shipment())
        assert exc.value.messages == {"carrier": ["DHL API returned 503"]}

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CarrierError) as exc:
            _carrier(handler).create_label(_shipment())
        assert exc.value.messages["carrier"][0].startswith("DHL API unreachable")

    def test_malformed_response(self):
        with pytest.raises(CarrierError):
            _carrier(lambda request: httpx.Response(200, json={"unexpected": True})).create_label(_shipment())

    def test_unconfigured_never_calls_the_api(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        with pytest.raises(CarrierNotConfiguredError):
            _carrier(handler, _settings(api_key="")).create_label(_shipment())
        assert calls == []


class TestRates:
    def test_parses_products(self):
        def handler(request):
            assert request.url.path == "/rates"
            return httpx.Response(
                200,
                json={
                    "products": [
                        {
                            "productCode": "P",
                            "productName": "EXPRESS WORLDWIDE",
                            "totalPrice": [{"price": 88.5, "priceCurrency": "USD"}],
                            "deliveryCapabilities": {"totalTransitDays": 3},
                        }
                    ]
                },
            )

        request = RateRequest(weight_kg=2.0, dimensions=Dimensions(length=30, width=20, height=10))
        rates = _carrier(handler).get_rates(request)

        assert len(rates) == 1
        assert rates[0].total_price == 88.5
        assert rates[0].delivery_days == 3
        assert rates[0].service_level == "Express Worldwide"


class TestTracking:
    def test_maps_checkpoints(self):
        def handler(request):
            assert request.url.params["trackingNumber"] == "1234567890"
            return httpx.Response(
                200,
                json={
                    "shipments": [
                        {
                            "id": "1234567890",
                            "status": {"statusCode": "transit"},
                            "events": [
                                {
                                    "statusCode": "PU",
                                    "description": "Shipment picked up",
                                    "timestamp": "2026-10-01T08:00:00",
                                    "location": {"address": {"addressLocality": "New York", "countryCode": "US"}},
                                },
                                {
                                    "statusCode": "WC",
                                    "description": "With delivery courier",
                                    "timestamp": "2026-10-03T09:30:00",
                                    "location": {"address": {"addressLocality": "Casablanca", "countryCode": "MA"}},
                                },
                            ],
                        }
                    ]
                },
            )

        snapshot = _carrier(handler).track("1234567890")

        assert snapshot.status == "in_transit"
        assert [e.status for e in snapshot.events] == ["pending", "in_transit"]
        assert snapshot.events[1].location == "Casablanca, MA"
        assert snapshot.events[0].timestamp.tzinfo is not None
