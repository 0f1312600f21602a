"""Tests for admin status changes, photos and reads on consolidations."""

import json

import pytest
from forwarding.consolidation.consolidation import Consolidation, ConsolidationStatus
from forwarding.consolidation.engine import (
    UpdateConsolidationStatus,
    UploadConsolidationPhotos,
    get_consolidation,
)
from forwarding.consolidation.events import ConsolidationPhotosUploaded, ConsolidationProcessingStarted
from forwarding.package.package import Package, PackageStatus
from protean import current_domain
from protean.exceptions import InvalidOperationError, ValidationError


@pytest.fixture
def pending(register_package, request_consolidation):
    packages = [register_package() for _ in range(2)]
    return current_domain.repository_for(Consolidation).get(request_consolidation(packages))


def _update(consolidation_id, status):
    return current_domain.process(
        UpdateConsolidationStatus(consolidation_id=str(consolidation_id), status=status),
        asynchronous=False,
    )


def _upload(consolidation_id, photos):
    return current_domain.process(
        UploadConsolidationPhotos(consolidation_id=str(consolidation_id), photos=json.dumps(photos)),
        asynchronous=False,
    )


def _of_type(events, event_cls):
    return [event for event in events if isinstance(event, event_cls)]


class TestUpdateStatus:
    def test_start_processing(self, pending, stored_events):
        assert _update(pending.id, "processing") == ConsolidationStatus.PROCESSING.value

        stored = current_domain.repository_for(Consolidation).get(pending.id)
        assert stored.status == ConsolidationStatus.PROCESSING.value
        assert len(_of_type(stored_events("forwarding::consolidation"), ConsolidationProcessingStarted)) == 1

    def test_repeated_processing_is_silent(self, pending, stored_events):
        _update(pending.id, "processing")
        _update(pending.id, "processing")
        assert len(_of_type(stored_events("forwarding::consolidation"), ConsolidationProcessingStarted)) == 1

    def test_cancelled_routes_to_admin_cancel(self, pending):
        _update(pending.id, "processing")
        _update(pending.id, "cancelled")

        assert current_domain.repository_for(Consolidation).get(pending.id).status == "cancelled"
        for package in current_domain.repository_for(Package).get_many(pending.package_ids):
            assert package.status == PackageStatus.RECEIVED.value

    @pytest.mark.parametrize("status", ["completed", "pending", "archived"])
    def test_rejected_statuses(self, pending, status):
        with pytest.raises(ValidationError):
            _update(pending.id, status)


class TestPhotos:
    def test_upload_photos(self, pending, stored_events):
        assert _upload(pending.id, [{"url": "https://cdn/unpacked.jpg", "type": "unpacked"}]) == 1

        assert len(current_domain.repository_for(Consolidation).get(pending.id).photos) == 1
        uploaded = _of_type(stored_events("forwarding::consolidation"), ConsolidationPhotosUploaded)
        assert uploaded[0].photo_count == 1

    def test_requires_at_least_one_photo(self, pending):
        with pytest.raises(ValidationError):
            _upload(pending.id, [])

    def test_photo_type_is_validated(self, pending):
        with pytest.raises(ValidationError):
            _upload(pending.id, [{"url": "https://cdn/x.jpg", "type": "selfie"}])


class TestGetConsolidation:
    def test_owner_reads(self, pending):
        assert get_consolidation(pending.id, actor_id="user-u").id == pending.id

    def test_other_owner_is_denied(self, pending):
        with pytest.raises(InvalidOperationError):
            get_consolidation(pending.id, actor_id="user-v")
