from __future__ import annotations

from typing import Any, Dict, Optional, Union

from movi.core.errors import InvalidInputError
from movi.services.models import MercadoPagoConnect, MercadoPagoStatus


class MercadoPagoService:
    """
    Mercado Pago account linking (OAuth) and driver payouts, via the backend.
    """

    def __init__(self, *, api):
        self.api = api

    def get_status(self) -> MercadoPagoStatus:
        return MercadoPagoStatus.model_validate(self.api.get("/mp/oauth/status"))

    def connect(self, request: Union[MercadoPagoConnect, Dict[str, Any]]) -> Dict[str, Any]:
        req = request if isinstance(request, MercadoPagoConnect) else MercadoPagoConnect.model_validate(request)
        return self.api.post("/mp/oauth/connect", json=req.model_dump()) or {}

    def refresh_token(self) -> Dict[str, Any]:
        return self.api.post("/mp/oauth/refresh") or {}

    def transfer_to_driver(
        self,
        driver_id: str,
        amount: float,
        *,
        description: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if amount <= 0:
            raise InvalidInputError("Transfer amount must be positive.", amount=amount)
        body: Dict[str, Any] = {"driver_id": driver_id, "amount": amount}
        if description:
            body["description"] = description
        if payment_id:
            body["payment_id"] = payment_id
        return self.api.post("/mp/transfers", json=body) or {}

    def get_oauth_url(self) -> str:
        data = self.api.get("/mp/oauth/url") or {}
        url = data.get("oauth_url")
        if not url:
            raise InvalidInputError("The server did not return an OAuth URL.")
        return str(url)
