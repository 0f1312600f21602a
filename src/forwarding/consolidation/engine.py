"""Consolidation workflow — customer requests, warehouse completion, cancellation.

Each command runs in one unit of work: the consolidation and every member
package it touches commit together or not at all. Two commands racing on the
same aggregates collide on the version check, and the loser is replayed
against the fresh state, where its preconditions are evaluated again.
"""

import json

import structlog
from protean import handle
from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from forwarding.config import get_policy
from forwarding.consolidation.consolidation import (
    AfterConsolidation,
    BeforeConsolidation,
    Consolidation,
    ConsolidationPhoto,
    ConsolidationPhotoType,
    ConsolidationStatus,
)
from forwarding.domain import forwarding
from forwarding.ownership import assert_owner, assert_owns_all
from forwarding.package.package import Package, PackagePhoto, PackageStatus
from forwarding.pricing import ConsolidationPreferences, PricingCalculator
from forwarding.shared.measurements import Dimensions, Money, Weight
from forwarding.shared.photos import photos_from_json

logger = structlog.get_logger(__name__)

MIN_PACKAGES = 2


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@forwarding.command(part_of="Consolidation")
class RequestConsolidation:
    """A customer asks to merge packages they own into one box."""

    actor_id: Identifier(required=True)
    package_ids: Text(required=True)  # JSON list of package id strings
    remove_packaging: Boolean(default=True)
    add_protection: Boolean(default=False)
    request_unpacked_photos: Boolean(default=False)
    special_instructions: Text()


@forwarding.command(part_of="Consolidation")
class CompleteConsolidation:
    """Warehouse staff record the final box and close the consolidation."""

    consolidation_id: Identifier(required=True)
    weight_value: Float()
    weight_unit: String(max_length=2, default="kg")
    length: Float()
    width: Float()
    height: Float()
    dimension_unit: String(max_length=2, default="cm")
    notes: Text()
    photos: Text()  # JSON list of {"url", "type"}


@forwarding.command(part_of="Consolidation")
class CancelConsolidation:
    consolidation_id: Identifier(required=True)
    actor_id: Identifier()
    admin: Boolean(default=False)


@forwarding.command(part_of="Consolidation")
class UpdateConsolidationStatus:
    """Admin status change. Completion needs measurements, so it goes through CompleteConsolidation."""

    consolidation_id: Identifier(required=True)
    status: String(required=True, max_length=20)


@forwarding.command(part_of="Consolidation")
class UploadConsolidationPhotos:
    consolidation_id: Identifier(required=True)
    photos: Text(required=True)  # JSON list of {"url", "type"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def before_totals(packages: list[Package]) -> BeforeConsolidation:
    """Summed member weight (kg) and volume (cubic cm), rounded to 3 places."""
    return BeforeConsolidation(
        total_weight=round(sum(package.weight.in_kg() for package in packages), 3),
        total_volume=round(sum(package.dimensions.in_cm().volume for package in packages), 3),
    )


def _parse_package_ids(payload) -> list[str]:
    ids = json.loads(payload) if isinstance(payload, str) else payload
    return [str(package_id) for package_id in ids or []]


def _final_measurements(command) -> tuple[float, Dimensions]:
    if command.weight_value is None or command.weight_value <= 0:
        raise ValidationError({"weight": ["Weight must be greater than zero"]})
    if command.length is None or command.width is None or command.height is None:
        raise ValidationError({"dimensions": ["Dimensions are required"]})
    if min(command.length, command.width, command.height) <= 0:
        raise ValidationError({"dimensions": ["Every dimension must be greater than zero"]})

    weight = Weight(value=command.weight_value, unit=command.weight_unit or "kg")
    dimensions = Dimensions(
        length=command.length,
        width=command.width,
        height=command.height,
        unit=command.dimension_unit or "cm",
    )
    return weight.in_kg(), dimensions.in_cm()


def _resulting_package(
    consolidation: Consolidation, members: list[Package], weight_kg: float, dimensions: Dimensions
) -> Package:
    contents = "; ".join(f"{member.description} ({member.retailer})" for member in members)
    after_photos = [
        PackagePhoto(url=photo.url, uploaded_at=photo.uploaded_at)
        for photo in consolidation.photos_of_type(ConsolidationPhotoType.AFTER)
    ]
    return Package.from_consolidation(
        owner_id=consolidation.owner_id,
        description=f"Consolidated package ({len(members)} items): {contents}",
        weight=Weight(value=weight_kg),
        dimensions=dimensions,
        estimated_value=Money(
            amount=round(sum(member.estimated_value.amount for member in members), 2),
            currency=members[0].estimated_value.currency,
        ),
        original_package_ids=[str(member.id) for member in members],
        photos=after_photos,
    )


def cancel_consolidation(consolidation_id: str, actor_id: str | None = None, admin: bool = False) -> Consolidation:
    """Cancel and release every member still in the warehouse back to RECEIVED.

    Customers need ownership and a PENDING consolidation; admins bypass
    ownership and may also cancel while PROCESSING.
    """
    repo = current_domain.repository_for(Consolidation)
    consolidation = repo.get(consolidation_id)
    if not admin:
        if actor_id is None:
            raise ValidationError({"actor_id": ["An actor is required for customer cancellation"]})
        assert_owner(consolidation, actor_id)
    consolidation.cancel(admin=admin)

    package_repo = current_domain.repository_for(Package)
    released = 0
    for package in package_repo.get_many(consolidation.package_ids):
        if package.status not in (PackageStatus.CONSOLIDATED.value, PackageStatus.RECEIVED.value):
            continue
        package.release_from_consolidation()
        package_repo.add(package)
        released += 1
    repo.add(consolidation)

    if released != len(consolidation.package_ids):
        logger.warning(
            "Some members had already left the warehouse",
            consolidation_id=str(consolidation.id),
            released=released,
            package_count=len(consolidation.package_ids),
        )
    logger.info(
        "Consolidation cancelled",
        operation="consolidation.cancel",
        consolidation_id=str(consolidation.id),
        admin=admin,
        released=released,
    )
    return consolidation


# ---------------------------------------------------------------------------
# Command Handler
# ---------------------------------------------------------------------------
@forwarding.command_handler(part_of=Consolidation)
class ConsolidationHandler:
    @handle(RequestConsolidation)
    def request_consolidation(self, command):
        """Open a PENDING consolidation over packages the actor owns."""
        ids = _parse_package_ids(command.package_ids)
        if len(ids) < MIN_PACKAGES:
            raise ValidationError(
                {"package_ids": [f"At least {MIN_PACKAGES} packages are required for consolidation"]}
            )
        if len(set(ids)) != len(ids):
            raise ValidationError({"package_ids": ["Package ids must not repeat"]})

        package_repo = current_domain.repository_for(Package)
        repo = current_domain.repository_for(Consolidation)
        packages = package_repo.get_many(ids)
        assert_owns_all(packages, command.actor_id)

        not_received = [
            f"Package {package.id} is {package.status}" for package in packages if not package.is_available
        ]
        if not_received:
            raise InvalidStateError({"package_ids": not_received})
        linked = []
        for package in packages:
            active = repo.find_active_containing(package.id)
            if active is not None:
                linked.append(f"Package {package.id} already belongs to consolidation {active.id}")
        if linked:
            raise InvalidStateError({"package_ids": linked})

        policy = get_policy()
        preferences = ConsolidationPreferences(
            remove_packaging=command.remove_packaging,
            add_protection=command.add_protection,
            request_unpacked_photos=command.request_unpacked_photos,
        )
        consolidation = Consolidation.create(
            owner_id=command.actor_id,
            package_ids=ids,
            cost=PricingCalculator(policy).consolidation_cost(len(ids), preferences),
            before_consolidation=before_totals(packages),
            estimate_days=policy.consolidation_estimate_days,
            preferences=preferences,
            special_instructions=command.special_instructions,
        )
        for package in packages:
            package.mark_consolidated(str(consolidation.id))
            package_repo.add(package)
        repo.add(consolidation)

        logger.info(
            "Consolidation requested",
            operation="consolidation.create",
            consolidation_id=str(consolidation.id),
            actor_id=command.actor_id,
            package_count=len(ids),
            total_weight=consolidation.before_consolidation.total_weight,
            total_cost=consolidation.cost.total,
        )
        return str(consolidation.id)

    @handle(CompleteConsolidation)
    def complete_consolidation(self, command):
        """Record final measurements and create the resulting package."""
        weight_kg, dimensions = _final_measurements(command)
        new_photos = photos_from_json(command.photos, ConsolidationPhoto, required=False)

        repo = current_domain.repository_for(Consolidation)
        package_repo = current_domain.repository_for(Package)
        consolidation = repo.get(command.consolidation_id)
        if consolidation.status in (ConsolidationStatus.COMPLETED.value, ConsolidationStatus.CANCELLED.value):
            raise InvalidStateError({"status": [f"Consolidation is already {consolidation.status}"]})
        members = package_repo.get_many(consolidation.package_ids)

        if new_photos:
            consolidation.attach_photos(new_photos, announce=False)
        resulting = _resulting_package(consolidation, members, weight_kg, dimensions)
        consolidation.complete(
            str(resulting.id),
            AfterConsolidation(
                weight=weight_kg,
                length=dimensions.length,
                width=dimensions.width,
                height=dimensions.height,
            ),
            command.notes,
        )

        package_repo.add(resulting)
        for member in members:
            if member.consolidation_id is None:
                member.link_consolidation(str(consolidation.id))
                package_repo.add(member)
        repo.add(consolidation)

        logger.info(
            "Consolidation completed",
            operation="consolidation.complete",
            consolidation_id=str(consolidation.id),
            resulting_package_id=str(resulting.id),
            package_count=len(members),
            weight=weight_kg,
        )
        return str(resulting.id)

    @handle(CancelConsolidation)
    def cancel(self, command):
        consolidation = cancel_consolidation(command.consolidation_id, command.actor_id, command.admin)
        return consolidation.status

    @handle(UpdateConsolidationStatus)
    def update_status(self, command):
        try:
            status = ConsolidationStatus(command.status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown consolidation status {command.status}"]}) from None
        if status == ConsolidationStatus.CANCELLED:
            return cancel_consolidation(command.consolidation_id, admin=True).status
        if status == ConsolidationStatus.COMPLETED:
            raise ValidationError({"status": ["Use complete() with final weight and dimensions"]})
        if status == ConsolidationStatus.PENDING:
            raise ValidationError({"status": ["A consolidation cannot return to pending"]})

        repo = current_domain.repository_for(Consolidation)
        consolidation = repo.get(command.consolidation_id)
        if consolidation.start_processing():
            repo.add(consolidation)
            logger.info(
                "Consolidation processing started",
                operation="consolidation.update_status",
                consolidation_id=str(consolidation.id),
            )
        return consolidation.status

    @handle(UploadConsolidationPhotos)
    def upload_photos(self, command):
        photos = photos_from_json(command.photos, ConsolidationPhoto)

        repo = current_domain.repository_for(Consolidation)
        consolidation = repo.get(command.consolidation_id)
        consolidation.attach_photos(photos)
        repo.add(consolidation)
        return len(photos)


def get_consolidation(consolidation_id: str, actor_id: str | None = None) -> Consolidation:
    consolidation = current_domain.repository_for(Consolidation).get(consolidation_id)
    if actor_id is not None:
        assert_owner(consolidation, actor_id)
    return consolidation
