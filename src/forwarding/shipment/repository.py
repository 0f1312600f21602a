"""Repository for the Shipment aggregate."""

from forwarding.domain import forwarding
from forwarding.shipment.shipment import Shipment


@forwarding.repository(part_of=Shipment)
class ShipmentRepository:
    def find_by_tracking_number(self, tracking_number: str) -> Shipment | None:
        matches = self._dao.query.filter(tracking_number=tracking_number).all().items
        return matches[0] if matches else None
