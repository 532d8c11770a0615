from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from movi.core.errors import InvalidInputError, ValidationRejected
from movi.core.session.models import Role, parse_role
from movi.services.models import (
    Location,
    Shipment,
    ShipmentScope,
    ShipmentStatus,
    ShipmentStatusRow,
    parse_list,
)
from movi.services.validation import is_valid_address, is_valid_price, sanitize_string

STATUS_LABELS: Dict[str, str] = {
    "draft": "Draft (payment required)",
    "created": "Created",
    "assigned": "Assigned",
    "picked_up": "Picked up",
    "in_transit": "In transit",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
}

TRANSFER_STATUS_LABELS: Dict[str, str] = {
    "completed": "Completed",
    "pending": "Pending",
    "failed": "Failed",
}

# allowed next statuses, before any role filtering
NEXT_STATES: Dict[ShipmentStatus, Tuple[ShipmentStatus, ...]] = {
    ShipmentStatus.draft: (),
    ShipmentStatus.created: (ShipmentStatus.cancelled,),
    ShipmentStatus.assigned: (ShipmentStatus.picked_up, ShipmentStatus.cancelled),
    ShipmentStatus.picked_up: (ShipmentStatus.in_transit, ShipmentStatus.cancelled),
    ShipmentStatus.in_transit: (ShipmentStatus.delivered, ShipmentStatus.cancelled),
    ShipmentStatus.delivered: (),
    ShipmentStatus.cancelled: (),
}

# only the business confirms delivery; a business may only confirm or cancel
ROLE_EXCLUDED: Dict[Role, Tuple[ShipmentStatus, ...]] = {
    Role.driver: (ShipmentStatus.delivered,),
    Role.business: (ShipmentStatus.assigned, ShipmentStatus.picked_up, ShipmentStatus.in_transit),
}


def translate_status(status: str) -> str:
    return STATUS_LABELS.get(status) or TRANSFER_STATUS_LABELS.get(status) or status


def next_statuses(current: Any, role: Any = None) -> List[ShipmentStatus]:
    """
    Statuses a shipment in `current` may move to. With a role, the list is
    narrowed to what that role may set. Unknown statuses have no successors.
    """
    try:
        st = ShipmentStatus(current)
    except ValueError:
        return []
    allowed = NEXT_STATES.get(st, ())
    r = parse_role(role) if role is not None else None
    if r is not None:
        allowed = tuple(s for s in allowed if s not in ROLE_EXCLUDED.get(r, ()))
    return list(allowed)


class ShipmentService:
    def __init__(self, *, api):
        self.api = api

    def create_shipment(
        self,
        *,
        title: str,
        pickup_address: str,
        dropoff_address: str,
        description: Optional[str] = None,
        price: Optional[float] = None,
        images: Optional[List[str]] = None,
        location: Optional[Location] = None,
    ) -> Shipment:
        title = sanitize_string(title)
        if not title:
            raise InvalidInputError("A title is required.")
        if not is_valid_address(pickup_address) or not is_valid_address(dropoff_address):
            raise InvalidInputError("Addresses must be at least 10 characters long.")
        if price is not None and not is_valid_price(price):
            raise InvalidInputError("The price must be a positive number.", price=price)

        body: Dict[str, Any] = {
            "title": title,
            "pickup_address": sanitize_string(pickup_address),
            "dropoff_address": sanitize_string(dropoff_address),
        }
        if description:
            body["description"] = sanitize_string(description)
        if price is not None:
            body["price"] = float(price)
        if images:
            body["images"] = list(images)
        if location is not None:
            body["location"] = location.model_dump(exclude_none=True)
        return Shipment.model_validate(self.api.post("/shipments", json=body))

    def list_shipments(self, scope: Optional[ShipmentScope] = None) -> List[Shipment]:
        params = {"scope": ShipmentScope(scope).value} if scope is not None else None
        return parse_list(Shipment, self.api.get("/shipments", params=params))

    def accept_shipment(self, shipment_id: str) -> Any:
        return self.api.post(f"/shipments/{shipment_id}/accept")

    def update_shipment_status(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        note: Optional[str] = None,
        location: Optional[Location] = None,
        *,
        current: Optional[ShipmentStatus] = None,
        role: Optional[Role] = None,
    ) -> Any:
        """
        Move a shipment along NEXT_STATES. When `current` is not given it is
        read from the caller's shipments first.
        """
        try:
            st = ShipmentStatus(status)
        except ValueError:
            raise InvalidInputError(f"Unknown status {status!r}.", status=str(status)) from None
        if current is None:
            current = self.get_shipment_by_id(shipment_id).current_status
        cur = ShipmentStatus(current)
        if st not in next_statuses(cur, role):
            raise InvalidInputError(
                f"A shipment cannot move from {cur.value!r} to {st.value!r}.",
                current=cur.value,
                status=st.value,
                role=getattr(role, "value", role),
            )
        body: Dict[str, Any] = {"status": st.value}
        if note:
            body["note"] = sanitize_string(note)
        if location is not None:
            body["location"] = location.model_dump(exclude_none=True)
        return self.api.post(f"/shipments/{shipment_id}/status", json=body)

    def list_shipment_statuses(self, shipment_id: str) -> List[ShipmentStatusRow]:
        return parse_list(ShipmentStatusRow, self.api.get(f"/shipments/{shipment_id}/statuses"))

    def get_shipment_by_id(self, shipment_id: str) -> Shipment:
        # looked up through "mine" so permissions match the list view
        for s in self.list_shipments(ShipmentScope.mine):
            if s.id == shipment_id:
                return s
        raise ValidationRejected(404, server_message="Shipment not found")
