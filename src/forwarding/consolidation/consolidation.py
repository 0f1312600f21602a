"""Consolidation aggregate (CQRS) — merges several warehouse packages into one.

State Machine:
    PENDING → PROCESSING → COMPLETED
    PENDING → COMPLETED
    PENDING | PROCESSING → CANCELLED
    COMPLETED and CANCELLED are terminal

``resulting_package_id`` is set exactly when the consolidation is COMPLETED.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, List, String, Text, ValueObject

from forwarding.consolidation.events import (
    ConsolidationCancelled,
    ConsolidationCompleted,
    ConsolidationPhotosUploaded,
    ConsolidationProcessingStarted,
    ConsolidationRequested,
)
from forwarding.domain import forwarding
from forwarding.ownership import normalize_owner
from forwarding.pricing import ConsolidationCost, ConsolidationPreferences
from forwarding.shared.measurements import Dimensions


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ConsolidationStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ConsolidationPhotoType(Enum):
    BEFORE = "before"
    UNPACKED = "unpacked"
    AFTER = "after"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    ConsolidationStatus.PENDING: {
        ConsolidationStatus.PROCESSING,
        ConsolidationStatus.COMPLETED,
        ConsolidationStatus.CANCELLED,
    },
    ConsolidationStatus.PROCESSING: {
        ConsolidationStatus.COMPLETED,
        ConsolidationStatus.CANCELLED,
    },
    ConsolidationStatus.COMPLETED: set(),  # Terminal
    ConsolidationStatus.CANCELLED: set(),  # Terminal
}

ACTIVE_STATUSES = [ConsolidationStatus.PENDING.value, ConsolidationStatus.PROCESSING.value]


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@forwarding.value_object(part_of="Consolidation")
class BeforeConsolidation:
    """Summed measurements of the member packages, in kg and cubic cm."""

    total_weight = Float(required=True, min_value=0)
    total_volume = Float(required=True, min_value=0)


@forwarding.value_object(part_of="Consolidation")
class AfterConsolidation:
    """Measurements of the merged box, in kg and cm."""

    weight = Float(required=True, min_value=0)
    length = Float(required=True, min_value=0)
    width = Float(required=True, min_value=0)
    height = Float(required=True, min_value=0)

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(length=self.length, width=self.width, height=self.height)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@forwarding.entity(part_of="Consolidation")
class ConsolidationPhoto:
    url = String(required=True, max_length=500)
    type = String(max_length=20, choices=ConsolidationPhotoType, default=ConsolidationPhotoType.BEFORE.value)
    uploaded_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@forwarding.aggregate
class Consolidation:
    owner_id: Identifier(required=True)
    package_ids: List(content_type=String(max_length=50))
    status: String(choices=ConsolidationStatus, default=ConsolidationStatus.PENDING.value)
    preferences: ValueObject(ConsolidationPreferences)
    cost: ValueObject(ConsolidationCost, required=True)
    before_consolidation: ValueObject(BeforeConsolidation, required=True)
    after_consolidation: ValueObject(AfterConsolidation)
    resulting_package_id: Identifier()
    photos: HasMany(ConsolidationPhoto)
    special_instructions: Text()
    notes: Text()
    estimated_completion: DateTime()
    actual_completion: DateTime()
    created_at: DateTime()
    updated_at: DateTime()

    @invariant.post
    def resulting_package_only_when_completed(self):
        completed = self.status == ConsolidationStatus.COMPLETED.value
        if completed != (self.resulting_package_id is not None):
            raise ValidationError(
                {"resulting_package_id": ["A resulting package is set exactly when the consolidation is completed"]}
            )

    @invariant.post
    def package_ids_must_not_repeat(self):
        if len(set(self.package_ids)) != len(self.package_ids):
            raise ValidationError({"package_ids": ["Package ids must not repeat"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        owner_id,
        package_ids: list[str],
        cost: ConsolidationCost,
        before_consolidation: BeforeConsolidation,
        estimate_days: int,
        preferences: ConsolidationPreferences | None = None,
        special_instructions: str | None = None,
        status: ConsolidationStatus = ConsolidationStatus.PENDING,
        announce: bool = True,
    ):
        """Open a consolidation. ``announce=False`` skips the billable request event."""
        now = datetime.now(UTC)
        consolidation = cls(
            owner_id=normalize_owner(owner_id),
            package_ids=[str(package_id) for package_id in package_ids],
            status=status.value,
            preferences=preferences or ConsolidationPreferences(),
            cost=cost,
            before_consolidation=before_consolidation,
            special_instructions=special_instructions,
            estimated_completion=now + timedelta(days=estimate_days),
            created_at=now,
            updated_at=now,
        )
        if announce:
            consolidation.raise_(
                ConsolidationRequested(
                    consolidation_id=str(consolidation.id),
                    owner_id=consolidation.owner_id,
                    package_count=len(consolidation.package_ids),
                    total_cost=cost.total,
                    currency=cost.currency,
                    estimate_days=estimate_days,
                    requested_at=now,
                )
            )
        return consolidation

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[ConsolidationStatus(self.status)]

    def _assert_can_transition(self, target: ConsolidationStatus) -> None:
        if target not in _VALID_TRANSITIONS[ConsolidationStatus(self.status)]:
            raise InvalidStateError(
                {"status": [f"Consolidation is already {self.status}, cannot move to {target.value}"]}
            )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def start_processing(self) -> bool:
        if self.status == ConsolidationStatus.PROCESSING.value:
            return False
        self._assert_can_transition(ConsolidationStatus.PROCESSING)

        now = datetime.now(UTC)
        self.status = ConsolidationStatus.PROCESSING.value
        self.updated_at = now
        self.raise_(
            ConsolidationProcessingStarted(
                consolidation_id=str(self.id),
                owner_id=self.owner_id,
                started_at=now,
            )
        )
        return True

    def complete(self, resulting_package_id: str, after: AfterConsolidation, notes: str | None = None) -> None:
        self._assert_can_transition(ConsolidationStatus.COMPLETED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = ConsolidationStatus.COMPLETED.value
            self.resulting_package_id = resulting_package_id
        self.after_consolidation = after
        self.actual_completion = now
        self.updated_at = now
        if notes:
            self.notes = notes

        self.raise_(
            ConsolidationCompleted(
                consolidation_id=str(self.id),
                owner_id=self.owner_id,
                resulting_package_id=resulting_package_id,
                package_count=len(self.package_ids),
                completed_at=now,
            )
        )

    def cancel(self, admin: bool = False) -> None:
        """Customers may cancel only while PENDING; admins also while PROCESSING."""
        if self.status == ConsolidationStatus.PROCESSING.value and not admin:
            raise InvalidStateError(
                {"status": ["Consolidation is already being processed and can no longer be cancelled"]}
            )
        self._assert_can_transition(ConsolidationStatus.CANCELLED)

        now = datetime.now(UTC)
        self.status = ConsolidationStatus.CANCELLED.value
        self.updated_at = now
        self.raise_(
            ConsolidationCancelled(
                consolidation_id=str(self.id),
                owner_id=self.owner_id,
                cancelled_by_admin=admin,
                cancelled_at=now,
            )
        )

    def add_package(self, package_id: str) -> bool:
        """Append a package during reconciliation. Returns False if already a member."""
        if package_id in self.package_ids:
            return False
        if self.status != ConsolidationStatus.PENDING.value:
            raise InvalidStateError({"status": [f"Cannot add packages to a {self.status} consolidation"]})
        self.package_ids = [*self.package_ids, package_id]
        self.updated_at = datetime.now(UTC)
        return True

    def attach_photos(self, photos: list[ConsolidationPhoto], announce: bool = True) -> None:
        if not photos:
            raise ValidationError({"photos": ["At least one photo is required"]})

        now = datetime.now(UTC)
        self.add_photos(photos)
        self.updated_at = now
        if announce:
            self.raise_(
                ConsolidationPhotosUploaded(
                    consolidation_id=str(self.id),
                    owner_id=self.owner_id,
                    photo_count=len(photos),
                    uploaded_at=now,
                )
            )

    def photos_of_type(self, photo_type: ConsolidationPhotoType) -> list[ConsolidationPhoto]:
        return [photo for photo in self.photos if photo.type == photo_type.value]
