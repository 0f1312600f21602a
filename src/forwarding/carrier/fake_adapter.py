"""Fake carrier adapter — deterministic carrier for testing and development.

Generates mock tracking numbers, labels, rates and tracking events.
Configurable success/failure behavior for integration testing.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from forwarding.carrier.port import (
    CarrierError,
    CarrierPort,
    LabelResult,
    Rate,
    RateRequest,
    TrackingSnapshot,
    TrackingUpdate,
)

_SERVICE_DAYS = {"express": 2, "priority": 1, "standard": 5}


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.calls: list[tuple[str, str]] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        configured: bool = True,
    ):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.configured = configured

    def _check(self) -> None:
        if not self.should_succeed:
            raise CarrierError({"carrier": [self.failure_reason]})

    def is_configured(self) -> bool:
        return self.configured

    def create_label(self, shipment) -> LabelResult:
        self.calls.append(("create_label", shipment.id))
        self._check()

        tracking_number = f"FAKE-{uuid4().hex[:12].upper()}"
        days = _SERVICE_DAYS.get(shipment.service_level.lower(), 5)
        return LabelResult(
            tracking_number=tracking_number,
            label_url=f"https://fake-carrier.example.com/labels/{tracking_number}.pdf",
            tracking_url=f"https://fake-carrier.example.com/track/{tracking_number}",
            estimated_delivery=datetime.now(UTC) + timedelta(days=days),
        )

    def get_rates(self, request: RateRequest) -> list[Rate]:
        self.calls.append(("get_rates", request.destination_country_code))
        self._check()

        base = round(request.weight_kg * 50, 2)
        return [
            Rate(
                product_code="P",
                product_name="Fake Express",
                total_price=round(base * 1.5, 2),
                currency="USD",
                delivery_days=2,
                service_level="express",
            ),
            Rate(
                product_code="Y",
                product_name="Fake Economy",
                total_price=base,
                currency="USD",
                delivery_days=5,
                service_level="standard",
            ),
        ]

    def track(self, tracking_number: str) -> TrackingSnapshot:
        self.calls.append(("track", tracking_number))
        self._check()

        now = datetime.now(UTC)
        return TrackingSnapshot(
            tracking_number=tracking_number,
            status="in_transit",
            events=[
                TrackingUpdate(
                    status="processing",
                    location="Warehouse, US",
                    description="Package picked up by carrier",
                    timestamp=now - timedelta(hours=6),
                ),
                TrackingUpdate(
                    status="in_transit",
                    location="Distribution Center, NY",
                    description="Package in transit",
                    timestamp=now,
                ),
            ],
        )
