"""
Push notifications: token registration and routing of incoming messages to refresh triggers.

Display of notifications is up to the host; this module only classifies them.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Union

from movi.core.errors import InvalidInputError
from movi.core.events import EventEmitter
from movi.services.models import PushNotification

NEW_SHIPMENT = "NEW_SHIPMENT"
SHIPMENT_STATUS_CHANGED = "SHIPMENT_STATUS_CHANGED"
SHIPMENT_ACCEPTED = "SHIPMENT_ACCEPTED"

# backend sends Spanish titles
NEW_SHIPMENT_TITLES = ("Nuevo envío disponible",)
STATUS_CHANGED_TITLES = (
    "Envío aceptado",
    "Envío recogido",
    "Envío en tránsito",
    "Envío entregado",
    "Envío cancelado",
    "Actualización de envío",
)


def classify(title: Optional[str]) -> Optional[str]:
    if not title:
        return None
    if any(t in title for t in NEW_SHIPMENT_TITLES):
        return NEW_SHIPMENT
    if any(t in title for t in STATUS_CHANGED_TITLES):
        return SHIPMENT_STATUS_CHANGED
    return None


class PushRouter:
    def __init__(self, *, emitter: EventEmitter, logger=None):
        self.emitter = emitter
        self.logger = logger

    def route(self, notification: Union[PushNotification, Dict[str, Any]]) -> Optional[str]:
        """
        Emit the matching push event. Returns the event name, or None if unrecognised.
        """
        n = notification if isinstance(notification, PushNotification) else PushNotification.model_validate(notification)
        event = classify(n.title)
        if event is None:
            if self.logger:
                self.logger.info(f"Push ignored: {n.title!r}")
            return None
        self.emitter.emit(event, {"title": n.title, "body": n.body, "data": dict(n.data)})
        return event


class PushService:
    def __init__(self, *, api, logger=None):
        self.api = api
        self.logger = logger

    def register_push_token(self, token: str, platform: str) -> None:
        if not token:
            raise InvalidInputError("Push token missing.")
        self.api.post("/push/register", json={"token": token, "platform": platform})
        if self.logger:
            self.logger.info(f"Push token registered for {platform}.")
