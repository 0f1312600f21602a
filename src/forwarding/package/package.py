"""Package aggregate (CQRS) — a single parcel tracked from warehouse intake to delivery.

State Machine:
    RECEIVED → CONSOLIDATED | SHIPPED
    CONSOLIDATED → RECEIVED (owning consolidation cancelled) | SHIPPED
    SHIPPED → IN_TRANSIT | DELIVERED
    IN_TRANSIT → DELIVERED
    DELIVERED is terminal

Admin edits may force any status through ``force_status``; moving a package
into CONSOLIDATED that way requires a reconciliation pass afterwards.
"""

import secrets
import string
import time
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import InvalidStateError
from protean.fields import Boolean, DateTime, HasMany, Identifier, List, String, Text, ValueObject

from forwarding.domain import forwarding
from forwarding.ownership import normalize_owner
from forwarding.package.events import (
    PackagePhotosUploaded,
    PackageReceived,
    PackageReconciled,
    PackageStatusOverridden,
    StorageWarningIssued,
)
from forwarding.shared.measurements import Dimensions, Money, Weight


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PackageStatus(Enum):
    RECEIVED = "received"
    CONSOLIDATED = "consolidated"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class PackagePhotoType(Enum):
    BASIC = "basic"
    UNPACKED = "unpacked"
    DETAILED = "detailed"
    DAMAGE = "damage"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    PackageStatus.RECEIVED: {PackageStatus.CONSOLIDATED, PackageStatus.SHIPPED},
    PackageStatus.CONSOLIDATED: {PackageStatus.RECEIVED, PackageStatus.SHIPPED},
    PackageStatus.SHIPPED: {PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED},
    PackageStatus.IN_TRANSIT: {PackageStatus.DELIVERED},
    PackageStatus.DELIVERED: set(),  # terminal
}

# Statuses in which a package has physically left the warehouse
LEFT_WAREHOUSE = {PackageStatus.SHIPPED, PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED}


def can_transition(current: PackageStatus, target: PackageStatus) -> bool:
    return current == target or target in _VALID_TRANSITIONS[current]


def generate_tracking_number(prefix: str) -> str:
    """``<prefix><ms timestamp><6 random base-36 chars>``, e.g. ``DHL1718000000000K3Z9QA``."""
    suffix = "".join(secrets.choice(string.digits + string.ascii_uppercase) for _ in range(6))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@forwarding.entity(part_of="Package")
class PackagePhoto:
    url = String(required=True, max_length=500)
    type = String(max_length=20, choices=PackagePhotoType, default=PackagePhotoType.BASIC.value)
    uploaded_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@forwarding.aggregate
class Package:
    owner_id: Identifier(required=True)
    tracking_number: String(required=True, max_length=100)
    retailer: String(required=True, max_length=200)
    description: String(required=True, max_length=1000)
    status: String(choices=PackageStatus, default=PackageStatus.RECEIVED.value)
    weight: ValueObject(Weight, required=True)
    dimensions: ValueObject(Dimensions, required=True)
    estimated_value: ValueObject(Money, required=True)
    received_date: DateTime()

    # Workflow links
    consolidation_id: Identifier()
    shipment_id: Identifier()

    # Set only on the package synthesized by a completed consolidation
    is_consolidated_result: Boolean(default=False)
    original_package_ids: List(content_type=String(max_length=50))

    photos: HasMany(PackagePhoto)
    notes: Text()

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory methods
    # -------------------------------------------------------------------
    @classmethod
    def receive(
        cls,
        owner_id,
        tracking_number: str,
        retailer: str,
        description: str,
        weight: Weight,
        dimensions: Dimensions,
        estimated_value: Money,
        notes: str | None = None,
    ):
        """Record a parcel that just arrived at the warehouse."""
        now = datetime.now(UTC)
        package = cls(
            owner_id=normalize_owner(owner_id),
            tracking_number=tracking_number,
            retailer=retailer,
            description=description,
            status=PackageStatus.RECEIVED.value,
            weight=weight,
            dimensions=dimensions,
            estimated_value=estimated_value,
            received_date=now,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        package.raise_(
            PackageReceived(
                package_id=str(package.id),
                owner_id=package.owner_id,
                tracking_number=tracking_number,
                retailer=retailer,
                received_at=now,
            )
        )
        return package

    @classmethod
    def from_consolidation(
        cls,
        owner_id: str,
        description: str,
        weight: Weight,
        dimensions: Dimensions,
        estimated_value: Money,
        original_package_ids: list[str],
        photos: list[PackagePhoto],
    ):
        """The single package that replaces a completed consolidation's members."""
        now = datetime.now(UTC)
        package = cls(
            owner_id=owner_id,
            tracking_number=generate_tracking_number("CONS-"),
            retailer="Consolidated",
            description=description,
            status=PackageStatus.RECEIVED.value,
            weight=weight,
            dimensions=dimensions,
            estimated_value=estimated_value,
            received_date=now,
            is_consolidated_result=True,
            original_package_ids=list(original_package_ids),
            notes=f"Consolidated from {len(original_package_ids)} packages",
            created_at=now,
            updated_at=now,
        )
        if photos:
            package.add_photos(photos)
        return package

    @property
    def storage_day(self) -> int:
        """Whole days spent in warehouse storage, recomputed on every read."""
        received = self.received_date or self.created_at
        if received is None:
            return 0
        if received.tzinfo is None:
            received = received.replace(tzinfo=UTC)
        return max(0, (datetime.now(UTC) - received).days)

    @property
    def is_available(self) -> bool:
        """Sitting in the warehouse, free to enter a new workflow."""
        return self.status == PackageStatus.RECEIVED.value

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: PackageStatus) -> None:
        current = PackageStatus(self.status)
        if not can_transition(current, target):
            raise InvalidStateError(
                {"status": [f"Package {self.id} cannot move from {current.value} to {target.value}"]}
            )

    def transition_to(self, target: PackageStatus) -> bool:
        """Move along a legal edge. Returns False when already in ``target``."""
        self._assert_can_transition(target)
        if self.status == target.value:
            return False
        self.status = target.value
        self.updated_at = datetime.now(UTC)
        return True

    def force_status(self, target: PackageStatus) -> bool:
        """Admin override: set any status. Returns False when unchanged."""
        previous = self.status
        if previous == target.value:
            return False
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self.raise_(
            PackageStatusOverridden(
                package_id=str(self.id),
                owner_id=self.owner_id,
                previous_status=previous,
                new_status=target.value,
                overridden_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_consolidated(self, consolidation_id: str) -> None:
        self.transition_to(PackageStatus.CONSOLIDATED)
        self.consolidation_id = consolidation_id

    def release_from_consolidation(self) -> None:
        """Revert to RECEIVED after the owning consolidation was cancelled."""
        self.transition_to(PackageStatus.RECEIVED)
        self.consolidation_id = None

    def mark_shipped(self, shipment_id: str) -> None:
        self.transition_to(PackageStatus.SHIPPED)
        self.shipment_id = shipment_id

    def return_to_warehouse(self) -> None:
        """Shipment cancelled before pickup: back on the shelf."""
        self.status = PackageStatus.RECEIVED.value
        self.shipment_id = None
        self.updated_at = datetime.now(UTC)

    def link_consolidation(self, consolidation_id: str) -> None:
        self.consolidation_id = consolidation_id
        self.updated_at = datetime.now(UTC)

    def reconciled_into(self, consolidation_id: str, outcome: str) -> None:
        self.link_consolidation(consolidation_id)
        self.raise_(
            PackageReconciled(
                package_id=str(self.id),
                owner_id=self.owner_id,
                tracking_number=self.tracking_number,
                consolidation_id=consolidation_id,
                outcome=outcome,
                reconciled_at=self.updated_at,
            )
        )

    def attach_photos(self, photos: list[PackagePhoto], announce: bool = True) -> None:
        now = datetime.now(UTC)
        self.add_photos(photos)
        self.updated_at = now
        if announce:
            self.raise_(
                PackagePhotosUploaded(
                    package_id=str(self.id),
                    owner_id=self.owner_id,
                    tracking_number=self.tracking_number,
                    photo_count=len(photos),
                    uploaded_at=now,
                )
            )

    def warn_storage(self) -> None:
        self.raise_(
            StorageWarningIssued(
                package_id=str(self.id),
                owner_id=self.owner_id,
                tracking_number=self.tracking_number,
                storage_days=self.storage_day,
                issued_at=datetime.now(UTC),
            )
        )
