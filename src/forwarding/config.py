"""Business policy and carrier settings.

Timing estimates, fees and thresholds change independently of the state
machine, so they are read from the environment (``FORWARDING_*`` and
``DHL_*``) rather than hard-coded in the engines.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LifecyclePolicy(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FORWARDING_", env_file=".env", extra="ignore")

    # Timing
    consolidation_estimate_days: int = 3
    shipping_estimate_days: int = 5
    storage_warning_days: int = 40

    # Consolidation fees (MAD)
    consolidation_fee_per_package: float = 25
    consolidation_max_fee: float = 100
    protection_fee: float = 30
    unpacked_photos_fee: float = 20

    # Photo request fees (MAD)
    photo_request_fee_per_photo: float = 20
    information_request_fee: float = 10

    # Shipping
    shipping_rate_per_kg: float = 50
    dimensional_weight_divisor: float = 5000
    carrier_multipliers: dict[str, float] = Field(
        default_factory=lambda: {"DHL": 1.2, "FedEx": 1.15, "Aramex": 1.0, "UPS": 1.18}
    )

    # Insurance (coverage in USD, surcharge in billing currency)
    insurance_free_tier: float = 100
    insurance_step: float = 100
    insurance_fee_per_step: float = 5

    currency: str = "MAD"
    warehouse_location: str = "Warehouse - USA"
    origin_country_code: str = "US"

    @property
    def supported_carriers(self) -> list[str]:
        return list(self.carrier_multipliers)


class CarrierSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DHL_", env_file=".env", extra="ignore")

    api_key: str = ""
    api_secret: str = ""
    account_number: str = ""
    api_url: str = "https://express.api.dhl.com/mydhlapi/test"
    timeout: float = 10.0


@lru_cache
def get_policy() -> LifecyclePolicy:
    return LifecyclePolicy()


@lru_cache
def get_carrier_settings() -> CarrierSettings:
    return CarrierSettings()
