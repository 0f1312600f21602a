"""Repository for the Package aggregate, with the lookups the workflows need."""

from collections.abc import Iterable

from protean.exceptions import ObjectNotFoundError

from forwarding.domain import forwarding
from forwarding.package.package import Package, PackageStatus


@forwarding.repository(part_of=Package)
class PackageRepository:
    def get_many(self, package_ids: Iterable[str]) -> list[Package]:
        """Load packages in the requested order. Every missing id is reported."""
        ids = [str(package_id) for package_id in package_ids]
        found = {
            str(package.id): package
            for package in self._dao.query.filter(id__in=ids).limit(None).all().items
        }
        missing = [package_id for package_id in ids if package_id not in found]
        if missing:
            raise ObjectNotFoundError(
                {"package_ids": [f"Package {package_id} not found" for package_id in missing]}
            )
        return [found[package_id] for package_id in ids]

    def find_by_tracking_number(self, tracking_number: str) -> Package | None:
        matches = self._dao.query.filter(tracking_number=tracking_number).all().items
        return matches[0] if matches else None

    def in_status(self, status: PackageStatus) -> list[Package]:
        return self._dao.query.filter(status=status.value).limit(None).all().items

    def unlinked_consolidated(self) -> list[Package]:
        """Packages forced into CONSOLIDATED that no consolidation claims yet."""
        return (
            self._dao.query.filter(status=PackageStatus.CONSOLIDATED.value, consolidation_id__isnull=True)
            .limit(None)
            .all()
            .items
        )

    def consolidation_results(self) -> list[Package]:
        return self._dao.query.filter(is_consolidated_result=True).limit(None).all().items
