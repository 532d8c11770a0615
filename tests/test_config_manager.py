from __future__ import annotations

import json
import os

import pytest

from movi.core.config.manager import ConfigManager
from movi.core.config.paths import ConfigFsPaths
from movi.core.errors import ConfigError


class DummyLogger:
    def info(self, *_a, **_k): ...
    def warning(self, *_a, **_k): ...
    def error(self, *_a, **_k): ...


def _write_json(path: str, obj: dict) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")


def test_defaults_created_when_missing(config_manager, tmp_config_root):
    cfg = config_manager.get()
    assert os.path.exists(tmp_config_root.app)
    assert cfg.api.base_url == "http://localhost:4000"
    assert cfg.api.timeout_seconds == 15
    assert cfg.auth.timeout_seconds == 10
    assert cfg.auth.session_skew_seconds == 30
    assert cfg.pricing.base_price == 1000


def test_env_overrides_applied(tmp_config_root):
    env = {"MOVI_API_URL": "https://api.movi.test/", "MOVI_AUTH_ANON_KEY": "anon"}
    cfg = ConfigManager(fs=tmp_config_root, logger=DummyLogger(), env=env).load_all()
    assert cfg.api.base_url == "https://api.movi.test"
    assert cfg.auth.anon_key == "anon"


def test_invalid_url_is_config_error(tmp_config_root):
    _write_json(tmp_config_root.app, {"config_version": 1, "api": {"base_url": "ftp://nope"}})
    with pytest.raises(ConfigError):
        ConfigManager(fs=tmp_config_root, logger=DummyLogger(), env={}).load_all()


def test_unknown_keys_rejected(tmp_config_root):
    _write_json(tmp_config_root.app, {"config_version": 1, "api": {"retries": 3}})
    with pytest.raises(ConfigError):
        ConfigManager(fs=tmp_config_root, logger=DummyLogger(), env={}).load_all()


def test_corrupt_file_backed_up_and_defaults_used(tmp_config_root):
    with open(tmp_config_root.app, "w", encoding="utf-8") as f:
        f.write("{broken")
    cfg = ConfigManager(fs=tmp_config_root, logger=DummyLogger(), env={}).load_all()
    assert cfg.api.base_url == "http://localhost:4000"
    assert os.listdir(tmp_config_root.backups_dir)


def test_save_and_reload(config_manager, tmp_config_root):
    cfg = config_manager.get().model_copy(deep=True)
    cfg.pricing.price_per_km = 650
    config_manager.save(cfg)
    again = ConfigManager(fs=tmp_config_root, env={}).load_all()
    assert again.pricing.price_per_km == 650


def test_read_only_does_not_write(tmp_path):
    fs = ConfigFsPaths(str(tmp_path))
    cm = ConfigManager(fs=fs, read_only=True, env={})
    cm.load_all()
    assert not os.path.exists(fs.app)
    with pytest.raises(ConfigError):
        cm.save(cm.get())
    assert cm.resolve_path("secure/device.key") == os.path.join(str(tmp_path), "secure/device.key")


SCRIPTS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "scripts")


def _run_print_config(monkeypatch, *argv: str) -> None:
    import runpy
    import sys

    monkeypatch.setattr(sys, "argv", ["print_config.py", *argv])
    runpy.run_path(os.path.join(SCRIPTS_DIR, "print_config.py"), run_name="__main__")


def test_print_config_masks_anon_key_and_writes_nothing(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("MOVI_AUTH_ANON_KEY", "super-secret-anon")

    _run_print_config(monkeypatch, "--root", str(tmp_path), "--section", "auth")

    out = json.loads(capsys.readouterr().out)
    assert out["anon_key"] == "***REDACTED***"
    assert out["timeout_seconds"] == 10
    assert os.listdir(tmp_path) == []


def test_print_config_paths_are_resolved_under_root(tmp_path, monkeypatch, capsys):
    _run_print_config(monkeypatch, "--root", str(tmp_path), "--paths")

    out = json.loads(capsys.readouterr().out)
    assert out["config_file"] == os.path.join(str(tmp_path), "config", "app.json")
    assert out["secure_store"].startswith(str(tmp_path))
