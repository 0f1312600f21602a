"""Repository for the Consolidation aggregate."""

from forwarding.consolidation.consolidation import ACTIVE_STATUSES, Consolidation, ConsolidationStatus
from forwarding.domain import forwarding


@forwarding.repository(part_of=Consolidation)
class ConsolidationRepository:
    def find_active_containing(self, package_id: str) -> Consolidation | None:
        matches = self._dao.query.filter(package_ids__contains=str(package_id), status__in=ACTIVE_STATUSES).all().items
        return matches[0] if matches else None

    def find_pending_for_owner(self, owner_id: str) -> Consolidation | None:
        """The owner's newest PENDING consolidation."""
        matches = (
            self._dao.query.filter(owner_id=owner_id, status=ConsolidationStatus.PENDING.value)
            .order_by("-created_at")
            .all()
            .items
        )
        return matches[0] if matches else None

    def find_containing(self, package_id: str) -> list[Consolidation]:
        return self._dao.query.filter(package_ids__contains=str(package_id)).limit(None).all().items
