"""Tests for warehouse intake: registration, photos and storage warnings."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from forwarding.consolidation.reconciliation import ForcePackageStatus
from forwarding.package.events import PackagePhotosUploaded, PackageReceived, StorageWarningIssued
from forwarding.package.intake import (
    IssueStorageWarnings,
    RegisterPackage,
    UploadPackagePhotos,
    get_package,
    storage_warnings,
)
from forwarding.package.package import Package, PackageStatus
from protean import current_domain
from protean.exceptions import InvalidOperationError, InvalidStateError, ObjectNotFoundError, ValidationError


def _age(package_id, days):
    repo = current_domain.repository_for(Package)
    package = repo.get(package_id)
    package.received_date = datetime.now(UTC) - timedelta(days=days)
    repo.add(package)


def _register(**overrides):
    fields = {
        "owner_id": "user-u",
        "tracking_number": "1Z-INTAKE",
        "retailer": "Amazon",
        "description": "Lamp",
        "weight_value": 1,
        "length": 10,
        "width": 10,
        "height": 10,
        "estimated_value": 20,
    }
    fields.update(overrides)
    return current_domain.process(RegisterPackage(**fields), asynchronous=False)


class TestRegisterPackage:
    def test_registers_received_package(self, register_package):
        package = register_package(weight=2.0, retailer="Nike")

        stored = current_domain.repository_for(Package).get(package.id)
        assert stored.status == PackageStatus.RECEIVED.value
        assert stored.owner_id == "user-u"
        assert stored.weight.value == 2.0
        assert stored.storage_day == 0

    def test_announces_arrival(self, register_package, stored_events):
        package = register_package(retailer="Nike")

        [event] = [e for e in stored_events("forwarding::package") if isinstance(e, PackageReceived)]
        assert event.package_id == str(package.id)
        assert event.retailer == "Nike"
        assert event.tracking_number == package.tracking_number

    def test_keeps_units_and_currency(self):
        package_id = _register(weight_value=3, weight_unit="lb", dimension_unit="in", currency="MAD")
        stored = current_domain.repository_for(Package).get(package_id)
        assert stored.weight.unit == "lb"
        assert stored.weight.in_kg() == pytest.approx(1.36077711)
        assert stored.dimensions.unit == "in"
        assert stored.estimated_value.currency == "MAD"

    def test_duplicate_tracking_number_is_rejected(self, register_package):
        package = register_package()
        with pytest.raises(InvalidStateError):
            _register(tracking_number=package.tracking_number)

    def test_negative_weight_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            _register(tracking_number="1Z-BAD", weight_value=-1)
        assert current_domain.repository_for(Package).find_by_tracking_number("1Z-BAD") is None


class TestPhotos:
    def test_upload_photos(self, register_package, stored_events):
        package = register_package()

        count = current_domain.process(
            UploadPackagePhotos(
                package_id=str(package.id),
                photos=json.dumps([{"url": "https://cdn/1.jpg"}, {"url": "https://cdn/2.jpg", "type": "damage"}]),
            ),
            asynchronous=False,
        )

        assert count == 2
        stored = current_domain.repository_for(Package).get(package.id)
        assert sorted(photo.type for photo in stored.photos) == ["basic", "damage"]
        uploaded = [e for e in stored_events("forwarding::package") if isinstance(e, PackagePhotosUploaded)]
        assert uploaded[0].photo_count == 2

    def test_requires_at_least_one_photo(self, register_package):
        package = register_package()
        with pytest.raises(ValidationError):
            current_domain.process(UploadPackagePhotos(package_id=str(package.id), photos="[]"), asynchronous=False)

    def test_unknown_package(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(
                UploadPackagePhotos(package_id="missing", photos=json.dumps([{"url": "https://cdn/1.jpg"}])),
                asynchronous=False,
            )


class TestGetPackage:
    def test_owner_can_read(self, register_package):
        package = register_package()
        assert get_package(package.id, actor_id="user-u").id == package.id

    def test_other_owner_is_denied(self, register_package):
        package = register_package()
        with pytest.raises(InvalidOperationError):
            get_package(package.id, actor_id="user-v")


class TestStorageWarnings:
    def test_lists_packages_past_threshold(self, register_package):
        old = register_package()
        register_package()
        _age(old.id, 45)

        warned = storage_warnings()

        assert [p.id for p in warned] == [old.id]
        assert warned[0].storage_day == 45

    def test_custom_threshold(self, register_package):
        old = register_package()
        _age(old.id, 45)
        assert storage_warnings(threshold_days=50) == []

    def test_only_packages_still_in_storage(self, register_package):
        old = register_package()
        _age(old.id, 45)
        current_domain.process(ForcePackageStatus(package_id=str(old.id), status="shipped"), asynchronous=False)
        assert storage_warnings() == []

    def test_issue_storage_warnings(self, register_package, stored_events):
        old = register_package()
        register_package()
        _age(old.id, 41)

        assert current_domain.process(IssueStorageWarnings(), asynchronous=False) == 1

        [warning] = [e for e in stored_events("forwarding::package") if isinstance(e, StorageWarningIssued)]
        assert warning.package_id == str(old.id)
        assert warning.storage_days == 41
