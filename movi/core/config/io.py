"""
Small JSON file helpers shared by the config layer and the on-disk storage regions.
"""
from __future__ import annotations

import json
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

MISSING = "missing"
NOT_OBJECT = "not_object"


@dataclass(frozen=True)
class ReadResult:
    ok: bool
    data: Dict[str, Any]
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "ReadResult":
        return cls(ok=False, data={}, error=error)


def ensure_dirs(*dirs: str) -> None:
    for d in dirs:
        if d:
            os.makedirs(d, exist_ok=True)


def read_json_file(path: str) -> ReadResult:
    """
    Never raises. `error` is "missing", "not_object", "corrupt_json:<detail>"
    or the OS error text.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except FileNotFoundError:
        return ReadResult.failed(MISSING)
    except json.JSONDecodeError as e:
        return ReadResult.failed(f"corrupt_json:{e}")
    except OSError as e:
        return ReadResult.failed(str(e))
    if not isinstance(obj, dict):
        return ReadResult.failed(NOT_OBJECT)
    return ReadResult(ok=True, data=obj)


def quarantine_file(path: str, backups_dir: str) -> Optional[str]:
    """
    Move an unreadable file into backups_dir; returns the new path, or None if nothing moved.
    """
    if not os.path.isfile(path):
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    target = os.path.join(backups_dir, f"{os.path.basename(path)}.{stamp}.corrupt")
    try:
        ensure_dirs(backups_dir)
        shutil.move(path, target)
    except OSError:
        return None
    return target


def atomic_write_json(path: str, data: Any, *, private: bool = False) -> None:
    """
    Write to a temp file in the same directory, then os.replace() over `path`.
    With private=True the file is chmod 0600 (POSIX only).
    """
    folder = os.path.dirname(path) or "."
    ensure_dirs(folder)
    fd, tmp = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", suffix=".tmp", dir=folder)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, sort_keys=True)
            f.write("\n")
        if private and os.name != "nt":
            os.chmod(tmp, 0o600)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
