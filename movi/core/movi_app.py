"""
MoviApp: wires config, storage, identity provider, session manager, API client and services.

Lifecycle hooks are explicit; screens subscribe to refresh triggers instead of
relying on framework refocus:
- "app.foreground"   app returned to foreground
- "app.deep_link"    non-auth deep link (url)
- push events        NEW_SHIPMENT / SHIPMENT_STATUS_CHANGED (payload dict)
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, Union

from movi.core.alerts import AlertChannel
from movi.core.api import ApiClient
from movi.core.config.manager import ConfigManager
from movi.core.config.models import AppConfig
from movi.core.events import EventEmitter, EventLogger
from movi.core.session.identity import GoTrueIdentityProvider, IdentityProvider
from movi.core.session.manager import SessionManager
from movi.core.session.models import Session
from movi.core.storage import StoragePort
from movi.services.auth import AuthService
from movi.services.chat import ChatService
from movi.services.mercadopago import MercadoPagoService
from movi.services.models import PushNotification
from movi.services.payments import PaymentService
from movi.services.profile import ProfileService
from movi.services.push import PushRouter, PushService
from movi.services.shipments import ShipmentService
from movi.services.transfers import TransferService

APP_FOREGROUND = "app.foreground"
APP_DEEP_LINK = "app.deep_link"

AUTH_CALLBACK_PREFIX = "movi://auth/callback"


class MoviApp:
    def __init__(
        self,
        *,
        cfg: AppConfig,
        storage: StoragePort,
        provider: Optional[IdentityProvider] = None,
        event_logger: Optional[EventLogger] = None,
        logger=None,
    ):
        self.cfg = cfg
        self.logger = logger
        self.storage = storage
        self.emitter = EventEmitter(logger=logger)
        self.alerts = AlertChannel(logger=logger)
        self.provider = provider or GoTrueIdentityProvider(
            base_url=cfg.auth.provider_url,
            anon_key=cfg.auth.anon_key,
            timeout_seconds=cfg.auth.timeout_seconds,
            logger=logger,
        )
        self.session = SessionManager(
            provider=self.provider,
            storage=storage,
            timeout_seconds=cfg.auth.timeout_seconds,
            skew_seconds=cfg.auth.session_skew_seconds,
            logger=logger,
            event_logger=event_logger,
        )
        self.api = ApiClient(
            base_url=cfg.api.base_url,
            session_manager=self.session,
            alerts=self.alerts,
            timeout_seconds=cfg.api.timeout_seconds,
            health_timeout_seconds=cfg.api.health_timeout_seconds,
            logger=logger,
        )

        self.auth = AuthService(
            provider=self.provider,
            session_manager=self.session,
            api=self.api,
            redirect_url=cfg.auth.redirect_url,
            reset_redirect_url=cfg.auth.reset_redirect_url,
            logger=logger,
        )
        self.profile = ProfileService(api=self.api)
        self.shipments = ShipmentService(api=self.api)
        self.payments = PaymentService(api=self.api)
        self.chat = ChatService(api=self.api, logger=logger)
        self.transfers = TransferService(api=self.api)
        self.mercadopago = MercadoPagoService(api=self.api)
        self.push = PushService(api=self.api, logger=logger)
        self.push_router = PushRouter(emitter=self.emitter, logger=logger)

        self._lock = threading.Lock()
        self._started = False

    @classmethod
    def from_config(cls, config: ConfigManager, *, logger=None, provider: Optional[IdentityProvider] = None) -> "MoviApp":
        cfg = config.get()
        storage = StoragePort.on_disk(
            key_path=config.resolve_path(cfg.storage.device_key_path),
            secure_store_path=config.resolve_path(cfg.storage.secure_store_path),
            cache_path=config.resolve_path(cfg.storage.cache_path),
        )
        event_logger = EventLogger(config.resolve_path(cfg.logging.audit_path)) if cfg.logging.audit_path else None
        return cls(cfg=cfg, storage=storage, provider=provider, event_logger=event_logger, logger=logger)

    # ---------- lifecycle ----------
    def on_start(self) -> Optional[Session]:
        """
        Subscribe to provider auth events, then attempt restoration (never raises).
        """
        with self._lock:
            if not self._started:
                self.session.start_auth_listener()
                self._started = True
        session = self.session.restore_session()
        if self.logger:
            self.logger.info(f"Startup auth status: {self.session.status.value}")
        return session

    def on_foreground(self) -> int:
        return self.emitter.emit(APP_FOREGROUND)

    def on_deep_link(self, url: str) -> Optional[Session]:
        if (url or "").startswith(AUTH_CALLBACK_PREFIX):
            return self.auth.handle_auth_callback(url)
        self.emitter.emit(APP_DEEP_LINK, url)
        return None

    def on_push(self, notification: Union[PushNotification, Dict[str, Any]]) -> Optional[str]:
        return self.push_router.route(notification)

    def on_stop(self) -> None:
        with self._lock:
            self._started = False
        self.session.shutdown()
        self.emitter.remove_all_listeners()

    def subscribe_refresh(self, trigger: str, handler: Callable[..., None]) -> Callable[[], None]:
        return self.emitter.on(trigger, handler)
