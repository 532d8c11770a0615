from __future__ import annotations

import os

from movi.core.config import ConfigManager
from movi.core.config.paths import ConfigFsPaths
from movi.core.crypto import best_effort_restrict_permissions, generate_device_key_bytes, key_id_from_key_bytes, write_device_key


def main() -> None:
    cm = ConfigManager(fs=ConfigFsPaths("."), logger=None)
    cfg = cm.load_all()
    key_path = cm.resolve_path(cfg.storage.device_key_path)

    if os.path.exists(key_path):
        print(f"Device key already exists at: {key_path}")
        return

    key = generate_device_key_bytes()
    write_device_key(key_path, key)
    best_effort_restrict_permissions(key_path)
    print(f"Created device key at: {key_path}")
    print(f"Key fingerprint (key_id): {key_id_from_key_bytes(key)}")


if __name__ == "__main__":
    main()
