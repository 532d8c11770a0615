"""
Device key + AES-GCM sealing for the secure storage region.

The device key is a random 32-byte file next to the encrypted store. It never
leaves the machine and is not derived from user input.
"""
from __future__ import annotations

import base64
import hashlib
import os
import secrets
from typing import Any, Dict, Union

from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, ConfigDict, Field

KEY_BYTES = 32
NONCE_BYTES = 12


class DeviceKeyMissingError(RuntimeError):
    pass


class SealedBlob(BaseModel):
    """On-disk envelope: {"v": 1, "nonce": b64, "ciphertext": b64}."""

    model_config = ConfigDict(extra="forbid")

    v: int = Field(default=1, ge=1, le=1)
    nonce: str
    ciphertext: str


def key_id_from_key_bytes(key: bytes) -> str:
    # fingerprint only; safe to print
    return hashlib.sha256(key).hexdigest()[:16]


def generate_device_key_bytes() -> bytes:
    return secrets.token_bytes(KEY_BYTES)


def best_effort_restrict_permissions(path: str) -> None:
    """
    Owner-only access on POSIX. Windows ACLs are left alone.
    """
    if os.name == "nt":
        return
    try:
        os.chmod(path, 0o600)
    except OSError:
        return


def write_device_key(path: str, key_bytes: bytes) -> None:
    if len(key_bytes) != KEY_BYTES:
        raise ValueError(f"Device key must be {KEY_BYTES} bytes (AES-256).")
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as f:
        f.write(key_bytes)
    best_effort_restrict_permissions(path)


def read_device_key(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            raw = f.read()
    except FileNotFoundError as e:
        raise DeviceKeyMissingError(f"Device key not found at {path!r}") from e
    if len(raw) != KEY_BYTES:
        raise ValueError(f"Device key must be {KEY_BYTES} bytes (AES-256).")
    return raw


def ensure_device_key(path: str) -> bytes:
    """
    Read the device key, creating it on first use.
    """
    try:
        return read_device_key(path)
    except DeviceKeyMissingError:
        key = generate_device_key_bytes()
        write_device_key(path, key)
        return key


def aesgcm_encrypt(key: bytes, plaintext: bytes, aad: bytes = b"") -> Dict[str, Any]:
    nonce = secrets.token_bytes(NONCE_BYTES)
    ct = AESGCM(key).encrypt(nonce, plaintext, aad or None)
    blob = SealedBlob(
        nonce=base64.urlsafe_b64encode(nonce).decode("ascii"),
        ciphertext=base64.urlsafe_b64encode(ct).decode("ascii"),
    )
    return blob.model_dump()


def aesgcm_decrypt(key: bytes, blob: Union[SealedBlob, Dict[str, Any]], aad: bytes = b"") -> bytes:
    """
    Raises ValueError for a malformed or unsupported envelope and
    cryptography's InvalidTag when the key or aad do not match.
    """
    try:
        sealed = blob if isinstance(blob, SealedBlob) else SealedBlob.model_validate(blob)
    except Exception as e:  # noqa: BLE001
        raise ValueError("Unsupported encrypted blob.") from e
    nonce = base64.urlsafe_b64decode(sealed.nonce.encode("ascii"))
    ct = base64.urlsafe_b64decode(sealed.ciphertext.encode("ascii"))
    return AESGCM(key).decrypt(nonce, ct, aad or None)
