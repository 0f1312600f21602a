"""DHL Express carrier adapter (MyDHL API).

Talks to the MyDHL REST API over httpx with HTTP basic auth. Every transport
or API failure is raised as ``CarrierError`` carrying DHL's own
message when one is present.
"""

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from forwarding.carrier.port import (
    CarrierError,
    CarrierNotConfiguredError,
    CarrierPort,
    LabelResult,
    Rate,
    RateRequest,
    TrackingSnapshot,
    TrackingUpdate,
    map_status_code,
)
from forwarding.config import CarrierSettings, get_carrier_settings

logger = structlog.get_logger(__name__)

TRACKING_URL = "https://www.dhl.com/en/express/tracking.html?AWB={awb}"

PRODUCT_CODES = {
    "express": "P",  # Express Worldwide
    "standard": "Y",  # Economy Select
    "priority": "D",  # Express 12:00
}

PRODUCT_NAMES = {
    "P": "Express Worldwide",
    "Y": "Economy Select",
    "D": "Express 12:00",
    "T": "Express 9:00",
    "N": "Domestic Express",
}

COUNTRY_CODES = {"morocco": "MA", "united states": "US", "usa": "US"}

WAREHOUSE = {
    "postalAddress": {
        "postalCode": "10001",
        "cityName": "New York",
        "countryCode": "US",
        "addressLine1": "123 Warehouse St",
    },
    "contactInformation": {
        "email": "warehouse@parcelhub.example.com",
        "phone": "+1234567890",
        "companyName": "ParcelHub",
        "fullName": "ParcelHub Warehouse",
    },
}


def product_code(service_level: str) -> str:
    return PRODUCT_CODES.get(service_level.lower(), "P")


def country_code(country: str) -> str:
    if len(country) == 2:
        return country.upper()
    return COUNTRY_CODES.get(country.lower(), country[:2].upper())


class DhlCarrier(CarrierPort):
    def __init__(self, settings: CarrierSettings | None = None, client: httpx.Client | None = None):
        self.settings = settings or get_carrier_settings()
        self.client = client or httpx.Client(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
        )

    def is_configured(self) -> bool:
        settings = self.settings
        return bool(settings.api_key and settings.api_secret and settings.account_number)

    # -------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        if not self.is_configured():
            raise CarrierNotConfiguredError({"carrier": ["DHL service is not configured"]})

        auth = httpx.BasicAuth(self.settings.api_key, self.settings.api_secret)
        try:
            response = self.client.request(method, path, auth=auth, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            logger.error("DHL API error", path=path, status_code=exc.response.status_code, detail=detail)
            raise CarrierError({"carrier": [detail]}) from exc
        except httpx.HTTPError as exc:
            logger.error("DHL API unreachable", path=path, error=str(exc))
            raise CarrierError({"carrier": [f"DHL API unreachable: {exc}"]}) from exc

    # -------------------------------------------------------------------
    # Port
    # -------------------------------------------------------------------
    def create_label(self, shipment) -> LabelResult:
        code = product_code(shipment.service_level)
        payload = {
            "plannedShippingDateAndTime": datetime.now(UTC).isoformat(),
            "pickup": {"isRequested": False},
            "productCode": code,
            "localProductCode": code,
            "accounts": [{"typeCode": "shipper", "number": self.settings.account_number}],
            "customerDetails": {
                "shipperDetails": WAREHOUSE,
                "receiverDetails": {
                    "postalAddress": {
                        "postalCode": shipment.destination.postal_code,
                        "cityName": shipment.destination.city,
                        "countryCode": country_code(shipment.destination.country),
                        "addressLine1": shipment.destination.street,
                    },
                    "contactInformation": {
                        "phone": shipment.destination.phone,
                        "companyName": "",
                        "fullName": shipment.destination.full_name,
                    },
                },
            },
            "content": {
                "packages": [
                    {
                        "weight": shipment.weight.total,
                        "dimensions": {
                            "length": shipment.dimensions.length,
                            "width": shipment.dimensions.width,
                            "height": shipment.dimensions.height,
                        },
                        "customerReferences": [{"value": shipment.id, "typeCode": "CU"}],
                    }
                ],
                "isCustomsDeclarable": True,
                "declaredValue": shipment.insurance.coverage or 100,
                "declaredValueCurrency": "USD",
                "exportDeclaration": _export_declaration(shipment),
                "description": "Personal Items",
                "incoterm": "DAP",
            },
            "outputImageProperties": {
                "imageOptions": [
                    {"typeCode": "label", "templateName": "ECOM26_84_001", "isRequested": True},
                    {"typeCode": "waybillDoc", "templateName": "ARCH_8X4", "isRequested": True},
                ]
            },
        }

        data = self._request("POST", "/shipments", json=payload)
        try:
            awb = data["shipmentTrackingNumber"]
            documents = data.get("packages", [{}])[0].get("documents") or data.get("documents") or []
        except (KeyError, IndexError, TypeError) as exc:
            raise CarrierError({"carrier": ["Unexpected DHL shipment response"]}) from exc

        label = next((doc.get("content") for doc in documents if doc.get("typeCode") == "label"), None)
        estimated = (data.get("estimatedDeliveryDate") or {}).get("deliveryDateTime")
        logger.info("DHL shipment created", shipment_id=shipment.id, tracking_number=awb)
        return LabelResult(
            tracking_number=awb,
            label_url=label,
            tracking_url=TRACKING_URL.format(awb=awb),
            estimated_delivery=estimated,
        )

    def get_rates(self, request: RateRequest) -> list[Rate]:
        payload = {
            "customerDetails": {
                "shipperDetails": {
                    "postalCode": "10001",
                    "cityName": "New York",
                    "countryCode": request.origin_country_code,
                },
                "receiverDetails": {
                    "postalCode": "20000",
                    "cityName": "Casablanca",
                    "countryCode": request.destination_country_code,
                },
            },
            "accounts": [{"typeCode": "shipper", "number": self.settings.account_number}],
            "payerCountryCode": request.origin_country_code,
            "plannedShippingDateAndTime": datetime.now(UTC).isoformat(),
            "unitOfMeasurement": "metric",
            "isCustomsDeclarable": True,
            "monetaryAmount": [{"typeCode": "declaredValue", "value": request.declared_value, "currency": "USD"}],
            "packages": [
                {
                    "weight": request.weight_kg,
                    "dimensions": {
                        "length": request.dimensions.length,
                        "width": request.dimensions.width,
                        "height": request.dimensions.height,
                    },
                }
            ],
        }

        data = self._request("POST", "/rates", json=payload)
        try:
            return [
                Rate(
                    product_code=product["productCode"],
                    product_name=product["productName"],
                    total_price=product["totalPrice"][0]["price"],
                    currency=product["totalPrice"][0]["priceCurrency"],
                    delivery_days=(product.get("deliveryCapabilities") or {}).get("totalTransitDays"),
                    service_level=PRODUCT_NAMES.get(product["productCode"], "Express"),
                )
                for product in data.get("products", [])
            ]
        except (KeyError, IndexError, TypeError) as exc:
            raise CarrierError({"carrier": ["Unexpected DHL rates response"]}) from exc

    def track(self, tracking_number: str) -> TrackingSnapshot:
        data = self._request("GET", "/track/shipments", params={"trackingNumber": tracking_number})
        try:
            shipment = data["shipments"][0]
            events = [
                TrackingUpdate(
                    status=map_status_code(event.get("statusCode")),
                    location=_event_location(event),
                    description=event.get("description", ""),
                    timestamp=event["timestamp"],
                )
                for event in shipment.get("events", [])
            ]
            return TrackingSnapshot(
                tracking_number=shipment.get("id", tracking_number),
                status=map_status_code(shipment["status"]["statusCode"]),
                events=events,
                estimated_delivery=shipment.get("estimatedDeliveryDate"),
            )
        except (KeyError, IndexError, TypeError) as exc:
            raise CarrierError({"carrier": ["Unexpected DHL tracking response"]}) from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if isinstance(body, dict):
        detail = body.get("message") or body.get("detail") or body.get("title")
        if detail:
            return str(detail)
    return f"DHL API returned {response.status_code}"


def _event_location(event: dict) -> str:
    address = (event.get("location") or {}).get("address") or {}
    return f"{address.get('addressLocality', '')}, {address.get('countryCode', '')}"


def _export_declaration(shipment) -> dict:
    items = shipment.customs_info
    share = shipment.weight.total / len(items) if items else 0
    return {
        "lineItems": [
            {
                "number": index,
                "description": item.description,
                "price": item.value,
                "quantity": {"value": item.quantity, "unitOfMeasurement": "PCS"},
                "commodityCodes": [{"typeCode": "outbound", "value": item.hs_code or "9999.99.99"}],
                "exportReasonType": "permanent",
                "manufacturerCountry": item.country_of_origin,
                "weight": {"netValue": share, "grossValue": share},
            }
            for index, item in enumerate(items, start=1)
        ],
        "invoice": {
            "number": f"INV-{shipment.id}",
            "date": datetime.now(UTC).date().isoformat(),
        },
    }
