"""Carrier port — abstract interface for shipping carrier integrations.

All carrier adapters must implement this interface. The engine programs
against the port; adapters are swapped via configuration. Adapters raise
``CarrierError`` for anything that goes wrong on the carrier side.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime

from protean.exceptions import ProteanExceptionWithMessage
from pydantic import BaseModel, ConfigDict, Field, field_validator

from forwarding.shared.measurements import Dimensions


class CarrierError(ProteanExceptionWithMessage):
    """The carrier rejected a request or could not be reached."""


class CarrierNotConfiguredError(CarrierError):
    """No credentials are configured for the selected carrier."""


class LabelResult(BaseModel):
    tracking_number: str
    label_url: str | None = None
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None


class RateRequest(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    weight_kg: float = Field(gt=0)
    dimensions: Dimensions
    origin_country_code: str = "US"
    destination_country_code: str = "MA"
    declared_value: float = 100


class Rate(BaseModel):
    product_code: str
    product_name: str
    total_price: float
    currency: str
    delivery_days: int | None = None
    service_level: str


class TrackingUpdate(BaseModel):
    status: str
    location: str
    description: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Carriers report checkpoint times without an offset
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class TrackingSnapshot(BaseModel):
    tracking_number: str
    status: str
    events: list[TrackingUpdate] = Field(default_factory=list)
    estimated_delivery: datetime | None = None


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present. Unconfigured adapters are never called."""
        ...

    @abstractmethod
    def create_label(self, shipment) -> LabelResult:
        """Register the shipment with the carrier and return its label."""
        ...

    @abstractmethod
    def get_rates(self, request: RateRequest) -> list[Rate]:
        """Quote the carrier's products for a parcel."""
        ...

    @abstractmethod
    def track(self, tracking_number: str) -> TrackingSnapshot:
        """Get current tracking status for a shipment."""
        ...


# Carrier checkpoint codes (MyDHL vocabulary) mapped onto shipment statuses.
# Unknown codes count as movement.
STATUS_CODES = {
    "PU": "pending",
    "PL": "processing",
    "RCS": "in_transit",
    "WC": "in_transit",
    "OFD": "in_transit",
    "NH": "in_transit",
    "RT": "in_transit",
    "OK": "delivered",
    "DD": "delivered",
    "DF": "delivered",
    "CA": "cancelled",
}


def map_status_code(code: str | None) -> str:
    return STATUS_CODES.get((code or "").upper(), "in_transit")
