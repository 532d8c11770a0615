from __future__ import annotations

from typing import Any

from movi.core.errors import InvalidInputError, MoviError
from movi.services.validation import sanitize_string


class ChatService:
    def __init__(self, *, api, logger=None):
        self.api = api
        self.logger = logger

    def send_message(self, shipment_id: str, receiver_id: str, content: str) -> Any:
        text = sanitize_string(content)
        if not text:
            raise InvalidInputError("Message cannot be empty.")
        return self.api.post(
            "/chat/send",
            json={"shipment_id": shipment_id, "receiver_id": receiver_id, "content": text},
        )

    def mark_as_read(self, shipment_id: str, sender_id: str) -> bool:
        """Best-effort: failures are logged, never raised."""
        try:
            self.api.post("/chat/read", json={"shipment_id": shipment_id, "sender_id": sender_id})
            return True
        except MoviError as e:
            if self.logger:
                self.logger.warning(f"Mark-as-read failed for shipment {shipment_id}: {e}")
            return False
