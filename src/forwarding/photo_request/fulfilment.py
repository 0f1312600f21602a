"""Photo requests — customer orders, warehouse processing and completion.

Completing a request copies its photos onto the package itself, so they show
up alongside the intake photos.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.ownership import assert_owner
from forwarding.package.package import Package, PackagePhoto, PackagePhotoType
from forwarding.photo_request.photo_request import PhotoRequest, RequestedPhoto
from forwarding.pricing import PhotoRequestType, PricingCalculator
from forwarding.shared.photos import photos_from_json

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="PhotoRequest")
class RequestPhotos:
    actor_id: Identifier(required=True)
    package_id: Identifier(required=True)
    request_type: String(required=True, max_length=20)
    additional_photos: Integer(min_value=0, default=0)
    specific_requests: Text()  # JSON list of strings
    custom_instructions: Text()


@forwarding.command(part_of="PhotoRequest")
class StartPhotoRequest:
    photo_request_id: Identifier(required=True)


@forwarding.command(part_of="PhotoRequest")
class CompletePhotoRequest:
    photo_request_id: Identifier(required=True)
    photos: Text()  # JSON list of {"url", "description"}
    information_report: Text()
    notes: Text()


@forwarding.command(part_of="PhotoRequest")
class CancelPhotoRequest:
    photo_request_id: Identifier(required=True)
    actor_id: Identifier()
    admin: Boolean(default=False)


def _parse_request_type(value: str) -> PhotoRequestType:
    try:
        return PhotoRequestType(value)
    except ValueError:
        raise ValidationError({"request_type": [f"Unknown photo request type {value}"]}) from None


@forwarding.command_handler(part_of=PhotoRequest)
class PhotoRequestHandler:
    @handle(RequestPhotos)
    def request_photos(self, command):
        request_type = _parse_request_type(command.request_type)
        additional_photos = command.additional_photos or 0

        package = current_domain.repository_for(Package).get(command.package_id)
        assert_owner(package, command.actor_id)

        request = PhotoRequest.create(
            owner_id=command.actor_id,
            package_id=str(package.id),
            package_description=package.description,
            request_type=request_type,
            additional_photos=additional_photos,
            cost=PricingCalculator().photo_request_cost(additional_photos, request_type),
            specific_requests=json.loads(command.specific_requests or "[]"),
            custom_instructions=command.custom_instructions,
        )
        current_domain.repository_for(PhotoRequest).add(request)

        logger.info(
            "Photo request created",
            operation="photo_request.create",
            photo_request_id=str(request.id),
            package_id=str(package.id),
            request_type=request_type.value,
            total_cost=request.cost.total,
        )
        return str(request.id)

    @handle(StartPhotoRequest)
    def start(self, command):
        repo = current_domain.repository_for(PhotoRequest)
        request = repo.get(command.photo_request_id)
        if request.start_processing():
            repo.add(request)
        return request.status

    @handle(CompletePhotoRequest)
    def complete(self, command):
        photos = photos_from_json(command.photos, RequestedPhoto, required=False)

        repo = current_domain.repository_for(PhotoRequest)
        request = repo.get(command.photo_request_id)
        request.complete(photos, command.information_report, command.notes)

        if photos:
            package_repo = current_domain.repository_for(Package)
            package = package_repo.get(request.package_id)
            package.attach_photos(
                [
                    PackagePhoto(url=photo.url, type=PackagePhotoType.DETAILED.value, uploaded_at=photo.uploaded_at)
                    for photo in photos
                ],
                announce=False,
            )
            package_repo.add(package)
        repo.add(request)

        logger.info(
            "Photo request completed",
            operation="photo_request.complete",
            photo_request_id=str(request.id),
            photo_count=len(photos),
        )
        return str(request.id)

    @handle(CancelPhotoRequest)
    def cancel(self, command):
        repo = current_domain.repository_for(PhotoRequest)
        request = repo.get(command.photo_request_id)
        if not command.admin:
            if command.actor_id is None:
                raise ValidationError({"actor_id": ["An actor is required for customer cancellation"]})
            assert_owner(request, command.actor_id)
        request.cancel(admin=command.admin)
        repo.add(request)
        return request.status


def get_photo_request(photo_request_id: str, actor_id: str | None = None) -> PhotoRequest:
    request = current_domain.repository_for(PhotoRequest).get(photo_request_id)
    if actor_id is not None:
        assert_owner(request, actor_id)
    return request
