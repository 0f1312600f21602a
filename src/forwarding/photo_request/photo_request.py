"""PhotoRequest aggregate (CQRS) — paid extra photos or an inspection report of a package.

State Machine:
    PENDING → PROCESSING → COMPLETED
    PENDING → COMPLETED
    PENDING | PROCESSING → CANCELLED
    COMPLETED and CANCELLED are terminal
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, List, String, Text, ValueObject

from forwarding.domain import forwarding
from forwarding.ownership import normalize_owner
from forwarding.photo_request.events import (
    PhotoRequestCancelled,
    PhotoRequestCompleted,
    PhotoRequestCreated,
    PhotoRequestProcessingStarted,
)
from forwarding.pricing import PhotoRequestCost, PhotoRequestType


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PhotoRequestStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    PhotoRequestStatus.PENDING: {
        PhotoRequestStatus.PROCESSING,
        PhotoRequestStatus.COMPLETED,
        PhotoRequestStatus.CANCELLED,
    },
    PhotoRequestStatus.PROCESSING: {
        PhotoRequestStatus.COMPLETED,
        PhotoRequestStatus.CANCELLED,
    },
    PhotoRequestStatus.COMPLETED: set(),  # Terminal
    PhotoRequestStatus.CANCELLED: set(),  # Terminal
}

_WANTS_PHOTOS = {PhotoRequestType.PHOTOS.value, PhotoRequestType.BOTH.value}
_WANTS_INFORMATION = {PhotoRequestType.INFORMATION.value, PhotoRequestType.BOTH.value}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@forwarding.entity(part_of="PhotoRequest")
class RequestedPhoto:
    url = String(required=True, max_length=500)
    description = String(max_length=500)
    uploaded_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@forwarding.aggregate
class PhotoRequest:
    owner_id: Identifier(required=True)
    package_id: Identifier(required=True)
    request_type: String(required=True, choices=PhotoRequestType)
    status: String(choices=PhotoRequestStatus, default=PhotoRequestStatus.PENDING.value)
    additional_photos: Integer(min_value=0, default=0)
    specific_requests: List(content_type=String(max_length=500))
    custom_instructions: Text()
    cost: ValueObject(PhotoRequestCost, required=True)
    photos: HasMany(RequestedPhoto)
    information_report: Text()
    notes: Text()
    completed_at: DateTime()
    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def create(
        cls,
        owner_id,
        package_id: str,
        package_description: str,
        request_type: PhotoRequestType,
        additional_photos: int,
        cost: PhotoRequestCost,
        specific_requests: list[str] | None = None,
        custom_instructions: str | None = None,
    ):
        if request_type.value in _WANTS_PHOTOS and additional_photos < 1:
            raise ValidationError({"additional_photos": ["At least one photo must be requested"]})

        now = datetime.now(UTC)
        request = cls(
            owner_id=normalize_owner(owner_id),
            package_id=package_id,
            request_type=request_type.value,
            additional_photos=additional_photos,
            specific_requests=[item.strip() for item in specific_requests or [] if item.strip()],
            custom_instructions=custom_instructions,
            cost=cost,
            created_at=now,
            updated_at=now,
        )
        request.raise_(
            PhotoRequestCreated(
                photo_request_id=str(request.id),
                owner_id=request.owner_id,
                package_id=package_id,
                package_description=package_description,
                request_type=request_type.value,
                total_cost=cost.total,
                currency=cost.currency,
                requested_at=now,
            )
        )
        return request

    def _assert_can_transition(self, target: PhotoRequestStatus) -> None:
        if target not in _VALID_TRANSITIONS[PhotoRequestStatus(self.status)]:
            raise InvalidStateError({"status": [f"Photo request is already {self.status}, cannot move to {target.value}"]})

    def start_processing(self) -> bool:
        if self.status == PhotoRequestStatus.PROCESSING.value:
            return False
        self._assert_can_transition(PhotoRequestStatus.PROCESSING)

        now = datetime.now(UTC)
        self.status = PhotoRequestStatus.PROCESSING.value
        self.updated_at = now
        self.raise_(PhotoRequestProcessingStarted(photo_request_id=str(self.id), owner_id=self.owner_id, started_at=now))
        return True

    def complete(self, photos: list[RequestedPhoto], information_report: str | None = None, notes: str | None = None):
        self._assert_can_transition(PhotoRequestStatus.COMPLETED)
        if self.request_type in _WANTS_PHOTOS and not photos:
            raise ValidationError({"photos": ["At least one photo is required"]})
        if self.request_type in _WANTS_INFORMATION and not (information_report or "").strip():
            raise ValidationError({"information_report": ["An information report is required"]})

        now = datetime.now(UTC)
        if photos:
            self.add_photos(photos)
        if information_report:
            self.information_report = information_report.strip()
        if notes:
            self.notes = notes
        self.status = PhotoRequestStatus.COMPLETED.value
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            PhotoRequestCompleted(
                photo_request_id=str(self.id),
                owner_id=self.owner_id,
                package_id=self.package_id,
                photo_count=len(photos),
                completed_at=now,
            )
        )

    def cancel(self, admin: bool = False) -> None:
        """Customers may cancel only while PENDING; admins also while PROCESSING."""
        if self.status == PhotoRequestStatus.PROCESSING.value and not admin:
            raise InvalidStateError(
                {"status": ["Photo request is already being processed and can no longer be cancelled"]}
            )
        self._assert_can_transition(PhotoRequestStatus.CANCELLED)

        now = datetime.now(UTC)
        self.status = PhotoRequestStatus.CANCELLED.value
        self.updated_at = now
        self.raise_(PhotoRequestCancelled(photo_request_id=str(self.id), owner_id=self.owner_id, cancelled_at=now))
