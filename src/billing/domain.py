"""Billing bounded context — Charges owed for forwarding services.

Consumes Forwarding events and records a pending Transaction for every
billable request (consolidation, shipping, photo request). Settlement of
those charges (capture, failure, refund) belongs to the payment provider
integration and is not modelled here.
"""

from protean.domain import Domain

billing = Domain(name="billing")
