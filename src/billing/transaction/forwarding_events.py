"""Inbound cross-domain event handlers — Billing reacts to Forwarding events.

Every billable request (consolidation, shipment, photo request) leaves one
PENDING card transaction for its owner, in the currency it was priced in.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.events.forwarding import ConsolidationRequested, PhotoRequestCreated, ShipmentCreated

from billing.domain import billing
from billing.transaction.transaction import RelatedModel, Transaction, TransactionType

logger = structlog.get_logger(__name__)

billing.register_external_event(ConsolidationRequested, "Forwarding.ConsolidationRequested.v1")
billing.register_external_event(ShipmentCreated, "Forwarding.ShipmentCreated.v1")
billing.register_external_event(PhotoRequestCreated, "Forwarding.PhotoRequestCreated.v1")


def _record_charge(owner_id, transaction_type, related_id, related_model, amount, currency, description) -> str:
    transaction = Transaction.create(
        user_id=owner_id,
        transaction_type=transaction_type,
        related_id=related_id,
        related_model=related_model,
        amount=amount,
        currency=currency,
        description=description,
    )
    current_domain.repository_for(Transaction).add(transaction)

    logger.info(
        "Pending transaction recorded",
        transaction_id=str(transaction.id),
        transaction_type=transaction_type,
        related_id=str(related_id),
        amount=amount,
        currency=currency,
    )
    return str(transaction.id)


@billing.event_handler(part_of=Transaction, stream_category="forwarding::consolidation")
class ConsolidationBillingHandler:
    @handle(ConsolidationRequested)
    def on_consolidation_requested(self, event: ConsolidationRequested) -> None:
        _record_charge(
            owner_id=str(event.owner_id),
            transaction_type=TransactionType.CONSOLIDATION.value,
            related_id=str(event.consolidation_id),
            related_model=RelatedModel.CONSOLIDATION.value,
            amount=event.total_cost,
            currency=event.currency,
            description=f"Consolidation of {event.package_count} packages",
        )


@billing.event_handler(part_of=Transaction, stream_category="forwarding::shipment")
class ShipmentBillingHandler:
    @handle(ShipmentCreated)
    def on_shipment_created(self, event: ShipmentCreated) -> None:
        _record_charge(
            owner_id=str(event.owner_id),
            transaction_type=TransactionType.SHIPPING.value,
            related_id=str(event.shipment_id),
            related_model=RelatedModel.SHIPMENT.value,
            amount=event.total_cost,
            currency=event.currency,
            description=f"Shipping via {event.carrier} - {event.tracking_number}",
        )


@billing.event_handler(part_of=Transaction, stream_category="forwarding::photo_request")
class PhotoRequestBillingHandler:
    @handle(PhotoRequestCreated)
    def on_photo_request_created(self, event: PhotoRequestCreated) -> None:
        _record_charge(
            owner_id=str(event.owner_id),
            transaction_type=TransactionType.PHOTO_REQUEST.value,
            related_id=str(event.photo_request_id),
            related_model=RelatedModel.PHOTO_REQUEST.value,
            amount=event.total_cost,
            currency=event.currency,
            description=f"Photo request for package {event.package_description}",
        )
