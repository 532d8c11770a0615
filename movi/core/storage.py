from __future__ import annotations

import json
import os
import threading
from typing import Any, Dict, Optional, Protocol

from movi.core.config.io import MISSING, NOT_OBJECT, atomic_write_json, read_json_file
from movi.core.crypto import aesgcm_decrypt, aesgcm_encrypt, ensure_device_key
from movi.core.errors import StorageError


SECURE = "secure"
CACHE = "cache"


class StorageRegion(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryRegion:
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        # same JSON contract as the file-backed regions
        json.dumps(value)
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data)


class _DocumentRegion:
    """
    A region stored as one JSON document; every mutation rewrites the file.
    Subclasses provide _read_all/_write_all.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _write_all(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _mutate(self, key: str, value: Any, *, remove: bool = False) -> None:
        with self._lock:
            doc = self._read_all()
            if remove:
                if key not in doc:
                    return
                del doc[key]
            else:
                doc[key] = value
            self._write_all(doc)

    def get(self, key: str) -> Any:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        self._mutate(key, value)

    def delete(self, key: str) -> None:
        self._mutate(key, None, remove=True)

    def clear(self) -> None:
        with self._lock:
            if os.path.exists(self.path):
                self._write_all({})


class JsonFileRegion(_DocumentRegion):
    """
    Plaintext document for non-sensitive values (role, session check flag).
    """

    def _read_all(self) -> Dict[str, Any]:
        rr = read_json_file(self.path)
        if rr.ok:
            return dict(rr.data)
        if rr.error in (MISSING, NOT_OBJECT):
            return {}
        raise StorageError("Could not read local cache.", path=self.path, error=rr.error)

    def _write_all(self, data: Dict[str, Any]) -> None:
        try:
            atomic_write_json(self.path, data)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError("Could not write local cache.", path=self.path, error=str(e)) from e


class EncryptedFileRegion(_DocumentRegion):
    """
    AES-GCM sealed document for session tokens. The device key at key_path
    is created on first use.
    """

    def __init__(self, *, key_path: str, store_path: str, aad: bytes = b"movi.secure_store.v1"):
        super().__init__(store_path)
        self.key_path = key_path
        self.aad = aad

    @property
    def store_path(self) -> str:
        return self.path

    def _key(self) -> bytes:
        try:
            return ensure_device_key(self.key_path)
        except (OSError, ValueError) as e:
            raise StorageError("Device key unavailable.", path=self.key_path, error=str(e)) from e

    def _read_all(self) -> Dict[str, Any]:
        rr = read_json_file(self.path)
        if not rr.ok:
            if rr.error == MISSING:
                return {}
            raise StorageError("Secure storage is unreadable.", path=self.path, error=rr.error)
        key = self._key()
        try:
            doc = json.loads(aesgcm_decrypt(key, rr.data, aad=self.aad).decode("utf-8"))
        except Exception as e:  # noqa: BLE001
            raise StorageError("Secure storage cannot be decrypted.", path=self.path, error=str(e)) from e
        return doc if isinstance(doc, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        try:
            plaintext = json.dumps(data, ensure_ascii=False, sort_keys=True).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise StorageError("Value is not JSON serializable.", path=self.path, error=str(e)) from e
        sealed = aesgcm_encrypt(self._key(), plaintext, aad=self.aad)
        try:
            atomic_write_json(self.path, sealed, private=True)
        except OSError as e:
            raise StorageError("Could not write secure storage.", path=self.path, error=str(e)) from e


class StoragePort:
    """
    One port, two named regions: "secure" (tokens) and "cache" (role, check flag).
    """

    def __init__(self, *, secure: StorageRegion, cache: StorageRegion):
        self._regions: Dict[str, StorageRegion] = {SECURE: secure, CACHE: cache}

    @property
    def secure(self) -> StorageRegion:
        return self._regions[SECURE]

    @property
    def cache(self) -> StorageRegion:
        return self._regions[CACHE]

    def region(self, name: str) -> StorageRegion:
        if name not in self._regions:
            raise StorageError(f"Unknown storage region {name!r}.")
        return self._regions[name]

    @classmethod
    def in_memory(cls) -> "StoragePort":
        return cls(secure=MemoryRegion(), cache=MemoryRegion())

    @classmethod
    def on_disk(cls, *, key_path: str, secure_store_path: str, cache_path: str) -> "StoragePort":
        return cls(
            secure=EncryptedFileRegion(key_path=key_path, store_path=secure_store_path),
            cache=JsonFileRegion(cache_path),
        )
