"""Warehouse intake — registering arrivals, photos and storage warnings."""

import structlog
from protean import handle
from protean.exceptions import InvalidStateError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from forwarding.config import get_policy
from forwarding.domain import forwarding
from forwarding.ownership import assert_owner
from forwarding.package.package import Package, PackagePhoto, PackageStatus
from forwarding.shared.measurements import Dimensions, Money, Weight
from forwarding.shared.photos import photos_from_json

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="Package")
class RegisterPackage:
    """Record a parcel that just arrived at the warehouse."""

    owner_id: Identifier(required=True)
    tracking_number: String(required=True, max_length=100)
    retailer: String(required=True, max_length=200)
    description: String(required=True, max_length=1000)
    weight_value: Float(required=True)
    weight_unit: String(max_length=2, default="kg")
    length: Float(required=True)
    width: Float(required=True)
    height: Float(required=True)
    dimension_unit: String(max_length=2, default="cm")
    estimated_value: Float(required=True)
    currency: String(max_length=3, default="USD")
    notes: Text()


@forwarding.command(part_of="Package")
class UploadPackagePhotos:
    package_id: Identifier(required=True)
    photos: Text(required=True)  # JSON list of {"url", "type"}


@forwarding.command(part_of="Package")
class IssueStorageWarnings:
    """Warn owners whose packages sat in storage past the threshold."""

    threshold_days: Integer(min_value=0)


@forwarding.command_handler(part_of=Package)
class PackageIntakeHandler:
    @handle(RegisterPackage)
    def register_package(self, command):
        repo = current_domain.repository_for(Package)
        if repo.find_by_tracking_number(command.tracking_number) is not None:
            raise InvalidStateError(
                {"tracking_number": [f"Package with tracking number {command.tracking_number} already exists"]}
            )

        package = Package.receive(
            owner_id=command.owner_id,
            tracking_number=command.tracking_number,
            retailer=command.retailer,
            description=command.description,
            weight=Weight(value=command.weight_value, unit=command.weight_unit or "kg"),
            dimensions=Dimensions(
                length=command.length,
                width=command.width,
                height=command.height,
                unit=command.dimension_unit or "cm",
            ),
            estimated_value=Money(amount=command.estimated_value, currency=command.currency or "USD"),
            notes=command.notes,
        )
        repo.add(package)

        logger.info(
            "Package registered",
            operation="package.register",
            package_id=str(package.id),
            owner_id=package.owner_id,
            tracking_number=package.tracking_number,
        )
        return str(package.id)

    @handle(UploadPackagePhotos)
    def upload_photos(self, command):
        photos = photos_from_json(command.photos, PackagePhoto)

        repo = current_domain.repository_for(Package)
        package = repo.get(command.package_id)
        package.attach_photos(photos)
        repo.add(package)
        return len(photos)

    @handle(IssueStorageWarnings)
    def issue_storage_warnings(self, command):
        packages = storage_warnings(command.threshold_days)

        repo = current_domain.repository_for(Package)
        for package in packages:
            package.warn_storage()
            repo.add(package)

        logger.info("Storage warnings issued", operation="package.storage_warnings", count=len(packages))
        return len(packages)


def get_package(package_id: str, actor_id: str | None = None) -> Package:
    package = current_domain.repository_for(Package).get(package_id)
    if actor_id is not None:
        assert_owner(package, actor_id)
    return package


def storage_warnings(threshold_days: int | None = None) -> list[Package]:
    """Packages still in the warehouse for at least ``threshold_days``."""
    threshold = get_policy().storage_warning_days if threshold_days is None else threshold_days
    return [
        package
        for package in current_domain.repository_for(Package).in_status(PackageStatus.RECEIVED)
        if package.storage_day >= threshold
    ]
