"""Links packages forced into CONSOLIDATED by an admin.

An admin may set a package to CONSOLIDATED without any consolidation
request. The package is then attached, in order of preference, to:

1. nothing, if it already carries a ``consolidation_id``;
2. an active consolidation that already lists it;
3. the owner's most recent PENDING consolidation (appended);
4. a new PROCESSING consolidation holding only this package.

Search and write share one unit of work. When two reconciliations append to
the same consolidation or link the same package, the later commit fails the
version check and is replayed, so it sees the first one's result.
"""

import json

import structlog
from protean import handle
from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from forwarding.config import get_policy
from forwarding.consolidation.consolidation import BeforeConsolidation, Consolidation, ConsolidationStatus
from forwarding.domain import forwarding
from forwarding.package.package import Package, PackageStatus
from forwarding.pricing import ConsolidationPreferences, PricingCalculator

logger = structlog.get_logger(__name__)


@forwarding.command(part_of="Package")
class ForcePackageStatus:
    """Admin override of a package status outside the normal workflow."""

    package_id: Identifier(required=True)
    status: String(required=True, max_length=20)
    notes: Text()


@forwarding.command(part_of="Package")
class BulkForcePackageStatus:
    package_ids: Text(required=True)  # JSON list of package id strings
    status: String(required=True, max_length=20)
    notes: Text()


@forwarding.command(part_of="Package")
class ReconcilePackage:
    package_id: Identifier(required=True)


@forwarding.command(part_of="Package")
class SweepUnlinkedPackages:
    """Reconcile every CONSOLIDATED package that still lacks a link."""


def _parse_status(value: str) -> PackageStatus:
    try:
        return PackageStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown package status {value}"]}) from None


def _with_package(before: BeforeConsolidation, package: Package) -> BeforeConsolidation:
    return BeforeConsolidation(
        total_weight=round(before.total_weight + package.weight.in_kg(), 3),
        total_volume=round(before.total_volume + package.dimensions.in_cm().volume, 3),
    )


def _synthesize(package: Package) -> Consolidation:
    policy = get_policy()
    preferences = ConsolidationPreferences()
    return Consolidation.create(
        owner_id=package.owner_id,
        package_ids=[str(package.id)],
        cost=PricingCalculator(policy).consolidation_cost(1, preferences),
        before_consolidation=_with_package(BeforeConsolidation(total_weight=0, total_volume=0), package),
        estimate_days=policy.consolidation_estimate_days,
        preferences=preferences,
        status=ConsolidationStatus.PROCESSING,
        announce=False,
    )


def reconcile_package_into_consolidation(package: Package) -> Consolidation | None:
    """Attach an unlinked CONSOLIDATED package to a consolidation.

    Returns the consolidation the package was attached to, or None when the
    package was already linked. Must run inside a unit of work, on the same
    package instance the caller already changed in it.
    """
    package_repo = current_domain.repository_for(Package)
    repo = current_domain.repository_for(Consolidation)

    if package.status != PackageStatus.CONSOLIDATED.value:
        raise InvalidStateError(
            {"status": [f"Package {package.id} is {package.status}, only consolidated packages can be reconciled"]}
        )
    if package.consolidation_id:
        logger.debug("Package already linked", package_id=str(package.id), consolidation_id=package.consolidation_id)
        return None

    consolidation = repo.find_active_containing(package.id)
    if consolidation is not None:
        outcome = "linked"
    else:
        consolidation = repo.find_pending_for_owner(package.owner_id)
        if consolidation is not None:
            outcome = "appended"
            consolidation.add_package(str(package.id))
            consolidation.before_consolidation = _with_package(consolidation.before_consolidation, package)
        else:
            outcome = "created"
            consolidation = _synthesize(package)
        repo.add(consolidation)

    package.reconciled_into(str(consolidation.id), outcome)
    package_repo.add(package)

    logger.info(
        "Package reconciled into consolidation",
        operation="consolidation.reconcile",
        package_id=str(package.id),
        outcome=outcome,
        consolidation_id=str(consolidation.id),
        owner_id=package.owner_id,
    )
    return consolidation


def _force(package: Package, status: PackageStatus, notes: str | None) -> None:
    previous = package.status
    changed = package.force_status(status)
    if notes is not None:
        package.notes = notes
    if changed or notes is not None:
        current_domain.repository_for(Package).add(package)

    logger.info(
        "Package status overridden",
        operation="package.force_status",
        package_id=str(package.id),
        previous_status=previous,
        status=status.value,
    )


@forwarding.command_handler(part_of=Package)
class PackageOverrideHandler:
    @handle(ForcePackageStatus)
    def force_package_status(self, command):
        status = _parse_status(command.status)
        package = current_domain.repository_for(Package).get(command.package_id)
        _force(package, status, command.notes)
        if status == PackageStatus.CONSOLIDATED:
            reconcile_package_into_consolidation(package)
        return str(package.id)

    @handle(BulkForcePackageStatus)
    def bulk_force_status(self, command):
        status = _parse_status(command.status)
        ids = json.loads(command.package_ids) if isinstance(command.package_ids, str) else command.package_ids
        packages = current_domain.repository_for(Package).get_many(ids)
        for package in packages:
            _force(package, status, command.notes)
            if status == PackageStatus.CONSOLIDATED:
                reconcile_package_into_consolidation(package)
        return [str(package.id) for package in packages]

    @handle(ReconcilePackage)
    def reconcile(self, command):
        package = current_domain.repository_for(Package).get(command.package_id)
        consolidation = reconcile_package_into_consolidation(package)
        return str(consolidation.id) if consolidation is not None else None

    @handle(SweepUnlinkedPackages)
    def sweep(self, command):
        """Safe to run repeatedly: linked packages are skipped."""
        touched = []
        for package in current_domain.repository_for(Package).unlinked_consolidated():
            consolidation = reconcile_package_into_consolidation(package)
            if consolidation is not None:
                touched.append(str(consolidation.id))

        logger.info("Reconciliation sweep finished", operation="consolidation.sweep", reconciled=len(touched))
        return touched
