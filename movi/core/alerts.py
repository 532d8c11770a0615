from __future__ import annotations

import threading
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from movi.core.events import EventEmitter


ALERT_SHOWN = "alert.shown"
ALERT_HIDDEN = "alert.hidden"


class AlertButton(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str
    style: Optional[str] = None


class Alert(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str
    message: str
    buttons: List[AlertButton] = Field(default_factory=lambda: [AlertButton(text="OK")])


SESSION_EXPIRED_ALERT = Alert(
    title="Session expired",
    message="Your session has expired for security reasons. Please sign in again.",
    buttons=[AlertButton(text="OK")],
)


class AlertChannel:
    """
    User-facing alerts, decoupled from whoever renders them.

    Producers call show_alert(); a UI layer subscribes with subscribe().
    Only the latest alert is "visible" at a time.
    """

    def __init__(self, *, emitter: Optional[EventEmitter] = None, logger=None):
        self.emitter = emitter or EventEmitter(logger=logger)
        self.logger = logger
        self._lock = threading.Lock()
        self._current: Optional[Alert] = None
        self._visible = False

    def show_alert(self, alert: Alert) -> None:
        with self._lock:
            self._current = alert
            self._visible = True
        if self.logger:
            self.logger.info(f"Alert: {alert.title}")
        self.emitter.emit(ALERT_SHOWN, alert)

    def hide_alert(self) -> None:
        with self._lock:
            was_visible = self._visible
            self._visible = False
        if was_visible:
            self.emitter.emit(ALERT_HIDDEN)

    def subscribe(self, handler: Callable[[Alert], None]) -> Callable[[], None]:
        return self.emitter.on(ALERT_SHOWN, handler)

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def current(self) -> Optional[Alert]:
        return self._current
