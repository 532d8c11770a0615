from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from movi.core.alerts import AlertChannel
from movi.core.api import ApiClient
from movi.core.events import EventLogger
from movi.core.session.manager import SessionManager
from movi.core.storage import StoragePort

from .fakes import FakeIdentityProvider, ListLogger


@dataclass
class SessionHarness:
    storage: StoragePort
    provider: FakeIdentityProvider
    manager: SessionManager
    alerts: AlertChannel
    api: ApiClient
    logger: ListLogger
    audit_path: str

    @classmethod
    def make(
        cls,
        *,
        tmp_path,
        storage: Optional[StoragePort] = None,
        provider: Optional[FakeIdentityProvider] = None,
        timeout_seconds: float = 2.0,
    ) -> "SessionHarness":
        logger = ListLogger()
        audit_path = os.path.join(str(tmp_path), "logs", "session_events.jsonl")
        storage = storage or StoragePort.on_disk(
            key_path=os.path.join(str(tmp_path), "secure", "device.key"),
            secure_store_path=os.path.join(str(tmp_path), "secure", "secure_store.enc"),
            cache_path=os.path.join(str(tmp_path), "secure", "cache.json"),
        )
        provider = provider or FakeIdentityProvider()
        manager = SessionManager(
            provider=provider,
            storage=storage,
            timeout_seconds=timeout_seconds,
            logger=logger,
            event_logger=EventLogger(audit_path),
        )
        alerts = AlertChannel(logger=logger)
        api = ApiClient(base_url="http://api.test", session_manager=manager, alerts=alerts, logger=logger)
        return cls(
            storage=storage,
            provider=provider,
            manager=manager,
            alerts=alerts,
            api=api,
            logger=logger,
            audit_path=audit_path,
        )

    def restart(self, *, provider: Optional[FakeIdentityProvider] = None) -> "SessionHarness":
        """
        New process over the same persisted storage.
        """
        self.manager.shutdown()
        tmp_root = os.path.dirname(os.path.dirname(self.audit_path))
        return SessionHarness.make(tmp_path=tmp_root, storage=self.storage, provider=provider)
