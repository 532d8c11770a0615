"""
Show the effective Movi client configuration (file + MOVI_* env overrides).

Credentials such as the provider anon key are masked. Never writes to disk.
"""
from __future__ import annotations

import argparse
import json
import sys

from movi.core.config import ConfigManager
from movi.core.config.paths import ConfigFsPaths
from movi.core.errors import ConfigError
from movi.core.events import redact


def _resolved_paths(cm: ConfigManager) -> dict:
    cfg = cm.get()
    paths = {
        "config_file": cm.fs.app,
        "device_key": cm.resolve_path(cfg.storage.device_key_path),
        "secure_store": cm.resolve_path(cfg.storage.secure_store_path),
        "cache": cm.resolve_path(cfg.storage.cache_path),
        "log_dir": cm.resolve_path(cfg.logging.log_dir),
    }
    if cfg.logging.audit_path:
        paths["audit_log"] = cm.resolve_path(cfg.logging.audit_path)
    return paths


def main() -> None:
    ap = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    ap.add_argument("--root", default=".", help="Directory holding config/ and secure/.")
    ap.add_argument("--section", choices=["api", "auth", "storage", "logging", "pricing"])
    ap.add_argument("--paths", action="store_true", help="Print resolved file locations instead.")
    args = ap.parse_args()

    cm = ConfigManager(fs=ConfigFsPaths(args.root), logger=None, read_only=True)
    try:
        cfg = cm.load_all()
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.paths:
        out = _resolved_paths(cm)
    else:
        out = cfg.model_dump(mode="json")
        if args.section:
            out = out[args.section]
    print(json.dumps(redact(out), indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
