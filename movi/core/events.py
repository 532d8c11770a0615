from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

MASK = "***REDACTED***"

# compared after lowercasing and dropping "_" / "-"
SENSITIVE_KEYS = frozenset(
    {"password", "secret", "token", "accesstoken", "refreshtoken", "apikey", "anonkey", "authorization"}
)


def _is_sensitive(key: Any) -> bool:
    return str(key).lower().replace("_", "").replace("-", "") in SENSITIVE_KEYS


def redact(obj: Any) -> Any:
    """Deep copy of obj with credential-like keys masked. Used by logs, errors and diagnostics."""
    if isinstance(obj, dict):
        return {k: MASK if _is_sensitive(k) else redact(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [redact(x) for x in obj]
    return obj


class EventLogger:
    """
    Append-only JSONL audit of session lifecycle events.
    One object per line: {"ts", "trace_id", "event", "details"}.
    """

    def __init__(self, path: str):
        self.path = path
        self._write_lock = threading.Lock()

    def log(self, trace_id: str, event_type: str, details: Optional[Dict[str, Any]] = None) -> None:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
            "trace_id": trace_id,
            "event": event_type,
            "details": redact(details or {}),
        }
        line = json.dumps(record, ensure_ascii=False, default=str)
        with self._write_lock:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


Handler = Callable[..., None]


class EventEmitter:
    """
    Synchronous in-process emitter used for refresh triggers and push routing.

    - handlers run in subscription order on the emitting thread
    - a failing handler is logged and does not stop the others
    """

    def __init__(self, *, logger=None):
        self.logger = logger
        self._lock = threading.Lock()
        self._handlers: Dict[str, List[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)
        return lambda: self.off(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(event)
            if handlers and handler in handlers:
                handlers.remove(handler)

    def emit(self, event: str, *args: Any, **kwargs: Any) -> int:
        with self._lock:
            # copy: handlers may unsubscribe while running
            handlers = list(self._handlers.get(event, []))
        delivered = 0
        for h in handlers:
            try:
                h(*args, **kwargs)
                delivered += 1
            except Exception as e:  # noqa: BLE001
                if self.logger:
                    self.logger.warning(f"Handler for event {event!r} failed: {e}")
        return delivered

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._handlers.get(event, []))

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        with self._lock:
            if event is None:
                self._handlers.clear()
            else:
                self._handlers.pop(event, None)
