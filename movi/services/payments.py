from __future__ import annotations

from typing import Any, Dict, Optional

from movi.core.errors import InvalidInputError, ValidationRejected
from movi.services.models import Payment, PaymentPreference
from movi.services.validation import is_valid_email


class PaymentService:
    """
    Payment preferences for shipments. The checkout itself happens outside the client.
    """

    def __init__(self, *, api):
        self.api = api

    def create_payment(self, shipment_id: str, payer_email: str, payer_name: Optional[str] = None) -> PaymentPreference:
        body: Dict[str, Any] = {"shipmentId": shipment_id, "payerEmail": payer_email.strip()}
        if not is_valid_email(body["payerEmail"]):
            raise InvalidInputError("Please enter a valid email address.")
        if payer_name:
            body["payerName"] = payer_name
        return PaymentPreference.model_validate(self.api.post("/payments/create", json=body))

    def get_payment_by_shipment(self, shipment_id: str) -> Optional[Payment]:
        try:
            data = self.api.get(f"/payments/shipment/{shipment_id}")
        except ValidationRejected as e:
            if e.status_code == 404:
                return None
            raise
        return Payment.model_validate(data) if data else None

    @staticmethod
    def checkout_url(preference: PaymentPreference) -> Optional[str]:
        return preference.resolved_checkout_url()
