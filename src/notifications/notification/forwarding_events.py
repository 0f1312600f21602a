"""Inbound cross-domain event handlers — Notifications reacts to Forwarding events.

One handler per Forwarding stream: packages (intake, photos, storage
warnings, reconciliation), consolidations, shipments and photo requests.
Every handler stores exactly one notification for the record's owner.
"""

import structlog
from notifications.domain import notifications
from notifications.notification.helpers import notify_owner
from notifications.notification.notification import (
    Notification,
    NotificationPriority,
    NotificationType,
    RelatedModel,
)
from protean.utils.mixins import handle
from shared.events.forwarding import (
    ConsolidationCancelled,
    ConsolidationCompleted,
    ConsolidationPhotosUploaded,
    ConsolidationProcessingStarted,
    ConsolidationRequested,
    PackagePhotosUploaded,
    PackageReceived,
    PackageReconciled,
    PhotoRequestCancelled,
    PhotoRequestCompleted,
    PhotoRequestCreated,
    PhotoRequestProcessingStarted,
    ShipmentCreated,
    ShipmentStatusChanged,
    StorageWarningIssued,
    TrackingUpdatePosted,
)

logger = structlog.get_logger(__name__)

notifications.register_external_event(PackageReceived, "Forwarding.PackageReceived.v1")
notifications.register_external_event(PackagePhotosUploaded, "Forwarding.PackagePhotosUploaded.v1")
notifications.register_external_event(StorageWarningIssued, "Forwarding.StorageWarningIssued.v1")
notifications.register_external_event(PackageReconciled, "Forwarding.PackageReconciled.v1")
notifications.register_external_event(ConsolidationRequested, "Forwarding.ConsolidationRequested.v1")
notifications.register_external_event(ConsolidationProcessingStarted, "Forwarding.ConsolidationProcessingStarted.v1")
notifications.register_external_event(ConsolidationCompleted, "Forwarding.ConsolidationCompleted.v1")
notifications.register_external_event(ConsolidationCancelled, "Forwarding.ConsolidationCancelled.v1")
notifications.register_external_event(ConsolidationPhotosUploaded, "Forwarding.ConsolidationPhotosUploaded.v1")
notifications.register_external_event(ShipmentCreated, "Forwarding.ShipmentCreated.v1")
notifications.register_external_event(ShipmentStatusChanged, "Forwarding.ShipmentStatusChanged.v1")
notifications.register_external_event(TrackingUpdatePosted, "Forwarding.TrackingUpdatePosted.v1")
notifications.register_external_event(PhotoRequestCreated, "Forwarding.PhotoRequestCreated.v1")
notifications.register_external_event(PhotoRequestProcessingStarted, "Forwarding.PhotoRequestProcessingStarted.v1")
notifications.register_external_event(PhotoRequestCompleted, "Forwarding.PhotoRequestCompleted.v1")
notifications.register_external_event(PhotoRequestCancelled, "Forwarding.PhotoRequestCancelled.v1")


@notifications.event_handler(part_of=Notification, stream_category="forwarding::package")
class PackageEventsHandler:
    @handle(PackageReceived)
    def on_package_received(self, event: PackageReceived) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.PACKAGE_RECEIVED.value,
            title="New Package Received",
            message=f"Your package from {event.retailer} ({event.tracking_number}) has been received at our warehouse.",
            related_id=str(event.package_id),
            related_model=RelatedModel.PACKAGE.value,
            action_url=f"/packages/{event.package_id}",
            source_event_type="Forwarding.PackageReceived.v1",
        )

    @handle(PackagePhotosUploaded)
    def on_package_photos_uploaded(self, event: PackagePhotosUploaded) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.PACKAGE_RECEIVED.value,
            title="Package Photos Available",
            message=f"Photos of your package {event.tracking_number} are now available.",
            related_id=str(event.package_id),
            related_model=RelatedModel.PACKAGE.value,
            action_url=f"/packages/{event.package_id}",
            source_event_type="Forwarding.PackagePhotosUploaded.v1",
        )

    @handle(StorageWarningIssued)
    def on_storage_warning_issued(self, event: StorageWarningIssued) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.STORAGE_WARNING.value,
            title="Storage Time Running Out",
            message=(
                f"Your package {event.tracking_number} has been in storage for {event.storage_days} days. "
                "Please ship or consolidate it soon."
            ),
            related_id=str(event.package_id),
            related_model=RelatedModel.PACKAGE.value,
            action_url=f"/packages/{event.package_id}",
            priority=NotificationPriority.HIGH.value,
            source_event_type="Forwarding.StorageWarningIssued.v1",
        )

    @handle(PackageReconciled)
    def on_package_reconciled(self, event: PackageReconciled) -> None:
        """An admin override placed the package in a consolidation."""
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.CONSOLIDATION_COMPLETE.value,
            title="Package Consolidated",
            message=f"Your package {event.tracking_number} has been added to a consolidation.",
            related_id=str(event.consolidation_id),
            related_model=RelatedModel.CONSOLIDATION.value,
            action_url=f"/consolidations/{event.consolidation_id}",
            source_event_type="Forwarding.PackageReconciled.v1",
        )


@notifications.event_handler(part_of=Notification, stream_category="forwarding::consolidation")
class ConsolidationEventsHandler:
    @handle(ConsolidationRequested)
    def on_consolidation_requested(self, event: ConsolidationRequested) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.CONSOLIDATION_COMPLETE.value,
            title="Consolidation Request Received",
            message=(
                f"Your consolidation request for {event.package_count} packages has been received "
                "and will be processed within 2-4 business days."
            ),
            related_id=str(event.consolidation_id),
            related_model=RelatedModel.CONSOLIDATION.value,
            action_url=f"/consolidations/{event.consolidation_id}",
            source_event_type="Forwarding.ConsolidationRequested.v1",
        )

    @handle(ConsolidationProcessingStarted)
    def on_consolidation_processing_started(self, event: ConsolidationProcessingStarted) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.CONSOLIDATION_COMPLETE.value,
            title="Consolidation In Progress",
            message="Your consolidation request is now being processed.",
            related_id=str(event.consolidation_id),
            related_model=RelatedModel.CONSOLIDATION.value,
            action_url=f"/consolidations/{event.consolidation_id}",
            source_event_type="Forwarding.ConsolidationProcessingStarted.v1",
        )

    @handle(ConsolidationCompleted)
    def on_consolidation_completed(self, event: ConsolidationCompleted) -> None:
        """The action link points at the resulting package, which is what ships next."""
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.CONSOLIDATION_COMPLETE.value,
            title="Consolidation Complete!",
            message=f"Your {event.package_count} packages have been consolidated and are ready to ship.",
            related_id=str(event.resulting_package_id),
            related_model=RelatedModel.PACKAGE.value,
            action_url=f"/packages/{event.resulting_package_id}",
            priority=NotificationPriority.HIGH.value,
            source_event_type="Forwarding.ConsolidationCompleted.v1",
        )

    @handle(ConsolidationCancelled)
    def on_consolidation_cancelled(self, event: ConsolidationCancelled) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.CONSOLIDATION_COMPLETE.value,
            title="Consolidation Cancelled",
            message="Your consolidation request has been cancelled.",
            related_id=str(event.consolidation_id),
            related_model=RelatedModel.CONSOLIDATION.value,
            action_url=f"/consolidations/{event.consolidation_id}",
            source_event_type="Forwarding.ConsolidationCancelled.v1",
        )

    @handle(ConsolidationPhotosUploaded)
    def on_consolidation_photos_uploaded(self, event: ConsolidationPhotosUploaded) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.CONSOLIDATION_COMPLETE.value,
            title="Consolidation Photos Available",
            message="Photos of your consolidation are now available.",
            related_id=str(event.consolidation_id),
            related_model=RelatedModel.CONSOLIDATION.value,
            action_url=f"/consolidations/{event.consolidation_id}",
            source_event_type="Forwarding.ConsolidationPhotosUploaded.v1",
        )


# Title, message template and priority per shipment status
_SHIPMENT_STATUS_MESSAGES = {
    "processing": ("Shipment Processing", "Your shipment {tracking_number} is being prepared.", "normal"),
    "in_transit": (
        "Shipment In Transit",
        "Your shipment {tracking_number} is on its way to {country}!",
        "normal",
    ),
    "delivered": ("Shipment Delivered", "Your shipment {tracking_number} has been delivered!", "high"),
    "cancelled": ("Shipment Cancelled", "Your shipment {tracking_number} has been cancelled.", "normal"),
}


@notifications.event_handler(part_of=Notification, stream_category="forwarding::shipment")
class ShipmentEventsHandler:
    @handle(ShipmentCreated)
    def on_shipment_created(self, event: ShipmentCreated) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.SHIPMENT_UPDATE.value,
            title="Shipment Created",
            message="Your shipment has been created and will be processed shortly.",
            related_id=str(event.shipment_id),
            related_model=RelatedModel.SHIPMENT.value,
            action_url=f"/shipments/{event.shipment_id}",
            source_event_type="Forwarding.ShipmentCreated.v1",
        )

    @handle(ShipmentStatusChanged)
    def on_shipment_status_changed(self, event: ShipmentStatusChanged) -> None:
        if event.to_status not in _SHIPMENT_STATUS_MESSAGES:
            logger.info(
                "No notification for shipment status",
                shipment_id=str(event.shipment_id),
                to_status=event.to_status,
            )
            return

        title, template, priority = _SHIPMENT_STATUS_MESSAGES[event.to_status]
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.SHIPMENT_UPDATE.value,
            title=title,
            message=template.format(
                tracking_number=event.tracking_number,
                country=event.destination_country or "Morocco",
            ),
            related_id=str(event.shipment_id),
            related_model=RelatedModel.SHIPMENT.value,
            action_url=f"/shipments/{event.shipment_id}",
            priority=priority,
            source_event_type="Forwarding.ShipmentStatusChanged.v1",
        )

    @handle(TrackingUpdatePosted)
    def on_tracking_update_posted(self, event: TrackingUpdatePosted) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.SHIPMENT_UPDATE.value,
            title="Tracking Update",
            message=f"{event.description} - {event.location}",
            related_id=str(event.shipment_id),
            related_model=RelatedModel.SHIPMENT.value,
            action_url=f"/shipments/{event.shipment_id}",
            source_event_type="Forwarding.TrackingUpdatePosted.v1",
        )


@notifications.event_handler(part_of=Notification, stream_category="forwarding::photo_request")
class PhotoRequestEventsHandler:
    @handle(PhotoRequestCreated)
    def on_photo_request_created(self, event: PhotoRequestCreated) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.PHOTO_REQUEST_COMPLETE.value,
            title="Photo Request Received",
            message=(
                f"Your photo request for {event.package_description} has been received "
                "and will be processed shortly."
            ),
            related_id=str(event.photo_request_id),
            related_model=RelatedModel.PHOTO_REQUEST.value,
            action_url=f"/photo-requests/{event.photo_request_id}",
            source_event_type="Forwarding.PhotoRequestCreated.v1",
        )

    @handle(PhotoRequestProcessingStarted)
    def on_photo_request_processing_started(self, event: PhotoRequestProcessingStarted) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.PHOTO_REQUEST_COMPLETE.value,
            title="Photo Request Being Processed",
            message="Your photo request is now being processed by our team.",
            related_id=str(event.photo_request_id),
            related_model=RelatedModel.PHOTO_REQUEST.value,
            action_url=f"/photo-requests/{event.photo_request_id}",
            source_event_type="Forwarding.PhotoRequestProcessingStarted.v1",
        )

    @handle(PhotoRequestCompleted)
    def on_photo_request_completed(self, event: PhotoRequestCompleted) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.PHOTO_REQUEST_COMPLETE.value,
            title="Photo Request Complete",
            message="Your requested photos are now available!",
            related_id=str(event.photo_request_id),
            related_model=RelatedModel.PHOTO_REQUEST.value,
            action_url=f"/photo-requests/{event.photo_request_id}",
            priority=NotificationPriority.HIGH.value,
            source_event_type="Forwarding.PhotoRequestCompleted.v1",
        )

    @handle(PhotoRequestCancelled)
    def on_photo_request_cancelled(self, event: PhotoRequestCancelled) -> None:
        notify_owner(
            user_id=str(event.owner_id),
            notification_type=NotificationType.PHOTO_REQUEST_COMPLETE.value,
            title="Photo Request Cancelled",
            message="Your photo request has been cancelled.",
            related_id=str(event.photo_request_id),
            related_model=RelatedModel.PHOTO_REQUEST.value,
            action_url=f"/photo-requests/{event.photo_request_id}",
            source_event_type="Forwarding.PhotoRequestCancelled.v1",
        )
