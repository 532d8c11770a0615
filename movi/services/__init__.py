from __future__ import annotations

from movi.services.auth import AuthService, SignUpOutcome
from movi.services.chat import ChatService
from movi.services.mercadopago import MercadoPagoService
from movi.services.payments import PaymentService
from movi.services.profile import ProfileService
from movi.services.push import PushRouter, PushService
from movi.services.shipments import ShipmentService, translate_status
from movi.services.transfers import TransferService

__all__ = [
    "AuthService",
    "ChatService",
    "MercadoPagoService",
    "PaymentService",
    "ProfileService",
    "PushRouter",
    "PushService",
    "ShipmentService",
    "SignUpOutcome",
    "TransferService",
    "translate_status",
]
