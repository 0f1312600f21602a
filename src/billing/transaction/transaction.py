"""Transaction aggregate (CQRS) — a charge owed for a forwarding service.

Transactions are created PENDING from Forwarding events. Capturing, failing
and refunding them is done by the payment provider integration, which lives
outside this system; the status values are kept so stored records from that
integration remain readable.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String, Text, ValueObject

from billing.domain import billing


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TransactionType(Enum):
    CONSOLIDATION = "consolidation"
    SHIPPING = "shipping"
    PHOTO_REQUEST = "photo_request"
    INSURANCE = "insurance"
    STORAGE_FEE = "storage_fee"
    REFUND = "refund"


class TransactionStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class RelatedModel(Enum):
    CONSOLIDATION = "Consolidation"
    SHIPMENT = "Shipment"
    PHOTO_REQUEST = "PhotoRequest"
    PACKAGE = "Package"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@billing.value_object(part_of="Transaction")
class Amount:
    value = Float(required=True, min_value=0)
    currency = String(max_length=3, default="MAD")


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@billing.aggregate
class Transaction:
    user_id: Identifier(required=True)
    transaction_type: String(choices=TransactionType, required=True)
    related_id: Identifier(required=True)
    related_model: String(choices=RelatedModel, required=True)
    status: String(choices=TransactionStatus, default=TransactionStatus.PENDING.value)
    amount: ValueObject(Amount, required=True)
    payment_method: String(choices=PaymentMethod, default=PaymentMethod.CARD.value)
    description: Text()
    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def create(
        cls,
        user_id,
        transaction_type,
        related_id,
        related_model,
        amount,
        currency,
        description,
        payment_method=PaymentMethod.CARD.value,
    ):
        """Record a PENDING charge."""
        now = datetime.now(UTC)
        return cls(
            user_id=str(user_id),
            transaction_type=transaction_type,
            related_id=str(related_id),
            related_model=related_model,
            status=TransactionStatus.PENDING.value,
            amount=Amount(value=amount, currency=currency),
            payment_method=payment_method,
            description=description,
            created_at=now,
            updated_at=now,
        )
