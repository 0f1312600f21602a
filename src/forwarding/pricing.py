"""Pricing for consolidations, shipments and photo requests.

All fees come from ``LifecyclePolicy`` so rates can change without touching
the handlers. Nothing here reads or writes a repository.
"""

import math
from enum import Enum

from protean.fields import Boolean, Float, String

from forwarding.config import LifecyclePolicy, get_policy
from forwarding.domain import forwarding
from forwarding.shared.measurements import Dimensions


class PhotoRequestType(Enum):
    PHOTOS = "photos"
    INFORMATION = "information"
    BOTH = "both"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@forwarding.value_object
class ConsolidationPreferences:
    remove_packaging = Boolean(default=True)
    add_protection = Boolean(default=False)
    request_unpacked_photos = Boolean(default=False)


@forwarding.value_object
class ConsolidationCost:
    base = Float(required=True, min_value=0)
    protection = Float(default=0.0)
    photos = Float(default=0.0)
    total = Float(required=True, min_value=0)
    currency = String(max_length=3, required=True)


@forwarding.value_object
class ShipmentCost:
    shipping = Float(required=True, min_value=0)
    insurance = Float(default=0.0)
    total = Float(required=True, min_value=0)
    currency = String(max_length=3, required=True)


@forwarding.value_object
class PhotoRequestCost:
    photos = Float(default=0.0)
    information = Float(default=0.0)
    total = Float(required=True, min_value=0)
    currency = String(max_length=3, required=True)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class PricingCalculator:
    def __init__(self, policy: LifecyclePolicy | None = None):
        self.policy = policy or get_policy()

    def consolidation_cost(
        self, package_count: int, preferences: ConsolidationPreferences | None = None
    ) -> ConsolidationCost:
        """Per-package fee capped at the maximum, plus optional extras."""
        preferences = preferences or ConsolidationPreferences()
        policy = self.policy

        base = min(package_count * policy.consolidation_fee_per_package, policy.consolidation_max_fee)
        protection = policy.protection_fee if preferences.add_protection else 0
        photos = policy.unpacked_photos_fee if preferences.request_unpacked_photos else 0

        return ConsolidationCost(
            base=base,
            protection=protection,
            photos=photos,
            total=base + protection + photos,
            currency=policy.currency,
        )

    def dimensional_weight(self, dimensions: Dimensions) -> float:
        return dimensions.in_cm().volume / self.policy.dimensional_weight_divisor

    def shipping_cost(self, weight_kg: float, dimensions: Dimensions, carrier: str) -> int:
        """Chargeable weight (actual or dimensional, whichever is larger)
        times the per-kg rate, scaled by the carrier multiplier."""
        chargeable = max(weight_kg, self.dimensional_weight(dimensions))
        cost = chargeable * self.policy.shipping_rate_per_kg
        cost *= self.policy.carrier_multipliers.get(carrier, 1.0)
        return _round_half_up(cost)

    def insurance_cost(self, coverage: float | None) -> float:
        """Step function above the free tier; zero for no or low coverage."""
        if not coverage:
            return 0
        policy = self.policy
        steps = math.ceil((coverage - policy.insurance_free_tier) / policy.insurance_step)
        return max(0, steps * policy.insurance_fee_per_step)

    def shipment_cost(
        self, weight_kg: float, dimensions: Dimensions, carrier: str, insurance_coverage: float | None = None
    ) -> ShipmentCost:
        shipping = self.shipping_cost(weight_kg, dimensions, carrier)
        insurance = self.insurance_cost(insurance_coverage)
        return ShipmentCost(
            shipping=shipping,
            insurance=insurance,
            total=shipping + insurance,
            currency=self.policy.currency,
        )

    def photo_request_cost(self, additional_photos: int, request_type: PhotoRequestType) -> PhotoRequestCost:
        """Flat fee per requested photo, plus a fixed fee for an information report."""
        policy = self.policy
        photos = 0
        if request_type in (PhotoRequestType.PHOTOS, PhotoRequestType.BOTH):
            photos = additional_photos * policy.photo_request_fee_per_photo
        information = 0
        if request_type in (PhotoRequestType.INFORMATION, PhotoRequestType.BOTH):
            information = policy.information_request_fee

        return PhotoRequestCost(
            photos=photos,
            information=information,
            total=photos + information,
            currency=policy.currency,
        )
