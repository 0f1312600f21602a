import itertools
import json

import pytest
from forwarding.carrier import set_carrier
from forwarding.carrier.fake_adapter import FakeCarrier
from forwarding.config import LifecyclePolicy
from forwarding.consolidation.engine import RequestConsolidation
from forwarding.package.intake import RegisterPackage
from forwarding.package.package import Package
from forwarding.shipment.engine import CreateShipment
from protean import current_domain

OWNER = "user-u"
OTHER_OWNER = "user-v"

DESTINATION = {
    "full_name": "Amina Alaoui",
    "street": "12 Rue Mohammed V",
    "city": "Casablanca",
    "postal_code": "20000",
    "phone": "+212600000000",
}


@pytest.fixture(autouse=True)
def _ctx(forwarding_bed):
    with forwarding_bed.domain_context():
        yield


@pytest.fixture
def destination():
    return dict(DESTINATION)


@pytest.fixture
def policy():
    return LifecyclePolicy(_env_file=None)


@pytest.fixture
def fake_carrier():
    carrier = FakeCarrier()
    set_carrier(carrier)
    return carrier


@pytest.fixture
def register_package():
    """Register a warehouse package; every call gets a unique tracking number."""
    counter = itertools.count(1)

    def _register(
        owner_id=OWNER,
        weight=1.0,
        dimensions=(30, 20, 10),
        value=50.0,
        retailer="Amazon",
        description=None,
    ) -> Package:
        n = next(counter)
        length, width, height = dimensions
        package_id = current_domain.process(
            RegisterPackage(
                owner_id=owner_id,
                tracking_number=f"1Z-TEST-{n:04d}",
                retailer=retailer,
                description=description or f"Item {n}",
                weight_value=weight,
                length=length,
                width=width,
                height=height,
                estimated_value=value,
            ),
            asynchronous=False,
        )
        return current_domain.repository_for(Package).get(package_id)

    return _register


@pytest.fixture
def request_consolidation():
    def _request(packages, actor_id=OWNER, **preferences) -> str:
        return current_domain.process(
            RequestConsolidation(
                actor_id=actor_id,
                package_ids=json.dumps([str(package.id) for package in packages]),
                **preferences,
            ),
            asynchronous=False,
        )

    return _request


@pytest.fixture
def create_shipment():
    def _create(packages, actor_id=OWNER, carrier="DHL", **overrides) -> str:
        fields = {**DESTINATION, "service_level": "express", **overrides}
        return current_domain.process(
            CreateShipment(
                actor_id=actor_id,
                package_ids=json.dumps([str(package.id) for package in packages]),
                carrier=carrier,
                **fields,
            ),
            asynchronous=False,
        )

    return _create


@pytest.fixture
def stored_events():
    """Events committed to a forwarding stream category, oldest first."""

    def _read(stream_category: str) -> list:
        messages = current_domain.event_store.store.read(stream_category)
        return [message.to_domain_object() for message in messages]

    return _read
