from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Response(BaseModel):
    # backend responses may grow fields; keep what we know
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ShipmentStatus(str, Enum):
    draft = "draft"
    created = "created"
    assigned = "assigned"
    picked_up = "picked_up"
    in_transit = "in_transit"
    delivered = "delivered"
    cancelled = "cancelled"


class ShipmentScope(str, Enum):
    available = "available"
    mine = "mine"


class Location(BaseModel):
    model_config = ConfigDict(extra="forbid")

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: Optional[str] = None


class Shipment(_Response):
    id: str
    title: str
    description: Optional[str] = None
    pickup_address: str
    dropoff_address: str
    price: Optional[float] = None
    current_status: ShipmentStatus
    created_at: str
    created_by: str


class ShipmentStatusRow(_Response):
    id: str
    shipment_id: str
    status: ShipmentStatus
    note: Optional[str] = None
    created_by: str
    created_at: str


class Profile(_Response):
    id: str
    role: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    address: Optional[str] = None
    license_number: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_plate: Optional[str] = None
    is_available: Optional[bool] = None
    bank_account_type: Optional[str] = None
    bank_cbu: Optional[str] = None
    bank_cvu: Optional[str] = None
    bank_alias: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_account_holder_name: Optional[str] = None
    business_name: Optional[str] = None
    business_address: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    address: Optional[str] = None
    license_number: Optional[str] = None
    vehicle_type: Optional[str] = None
    vehicle_plate: Optional[str] = None
    is_available: Optional[bool] = None
    bank_account_type: Optional[str] = None
    bank_cbu: Optional[str] = None
    bank_cvu: Optional[str] = None
    bank_alias: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_account_holder_name: Optional[str] = None
    business_name: Optional[str] = None
    business_address: Optional[str] = None


class ExchangeResult(_Response):
    token: str
    role: str


class PaymentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    cancelled = "cancelled"
    refunded = "refunded"


class Payment(_Response):
    id: str
    shipment_id: str
    payer_id: str
    driver_id: Optional[str] = None
    status: PaymentStatus
    amount: float
    commission_amount: float = 0.0
    driver_amount: float = 0.0
    preference_id: Optional[str] = None
    payment_id: Optional[str] = None
    paid_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PaymentPreference(_Response):
    payment_id: str = Field(alias="paymentId")
    preference_id: str = Field(alias="preferenceId")
    init_point: Optional[str] = Field(default=None, alias="initPoint")
    sandbox_init_point: Optional[str] = Field(default=None, alias="sandboxInitPoint")
    checkout_url: Optional[str] = Field(default=None, alias="checkoutUrl")

    def resolved_checkout_url(self) -> Optional[str]:
        return self.checkout_url or self.sandbox_init_point or self.init_point


class ChatMessage(_Response):
    id: str
    shipment_id: str
    sender_id: str
    receiver_id: str
    content: str
    created_at: str
    read_at: Optional[str] = None


class TransferPayment(_Response):
    shipment_id: str
    amount: float


class DriverTransfer(_Response):
    id: str
    amount: float
    status: str
    transfer_method: Optional[str] = None
    transferred_at: Optional[str] = None
    created_at: str
    notes: Optional[str] = None
    payment: Optional[TransferPayment] = None


class DriverStats(_Response):
    total: int = 0
    pending: int = 0
    completed: int = 0
    failed: int = 0
    total_amount: float = Field(default=0.0, alias="totalAmount")
    pending_amount: float = Field(default=0.0, alias="pendingAmount")
    completed_amount: float = Field(default=0.0, alias="completedAmount")


class WithdrawResult(_Response):
    success: bool
    amount: float = 0.0
    message: str = ""


class MercadoPagoStatus(_Response):
    connected: bool
    mp_user_id: Optional[str] = None
    mp_status: Optional[str] = None
    token_expired: bool = False
    expires_at: Optional[str] = None


class MercadoPagoConnect(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mp_user_id: int
    access_token: str
    refresh_token: str
    expires_in: int


class PushNotification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    body: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


def parse_list(model, rows: Any) -> List[Any]:
    return [model.model_validate(r) for r in (rows or [])]
