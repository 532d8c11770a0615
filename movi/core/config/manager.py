from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from movi.core.config.io import MISSING, atomic_write_json, ensure_dirs, quarantine_file, read_json_file
from movi.core.config.models import AppConfig
from movi.core.config.paths import ConfigFsPaths
from movi.core.errors import ConfigError


# env var -> (section, field)
ENV_OVERRIDES: Dict[str, tuple] = {
    "MOVI_API_URL": ("api", "base_url"),
    "MOVI_AUTH_URL": ("auth", "provider_url"),
    "MOVI_AUTH_ANON_KEY": ("auth", "anon_key"),
}


class ConfigManager:
    def __init__(
        self,
        *,
        fs: Optional[ConfigFsPaths] = None,
        logger=None,
        read_only: bool = False,
        env: Optional[Mapping[str, str]] = None,
    ):
        self.fs = fs or ConfigFsPaths(".")
        self.logger = logger
        self.read_only = read_only
        self.env = os.environ if env is None else env
        self._cfg: Optional[AppConfig] = None

    # ---------- public API ----------
    def load_all(self) -> AppConfig:
        if not self.read_only:
            ensure_dirs(*self.fs.required_dirs())

        raw = self._load_raw()
        raw = self._apply_env(raw)
        try:
            cfg = AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigError("Configuration is invalid.", file=self.fs.app, errors=e.errors(include_url=False)) from e
        self._cfg = cfg
        if self.logger:
            self.logger.info(f"Config loaded: api={cfg.api.base_url} auth={cfg.auth.provider_url}")
        return cfg

    def get(self) -> AppConfig:
        if self._cfg is None:
            raise ConfigError("Config not loaded.")
        return self._cfg

    def save(self, cfg: AppConfig) -> None:
        if self.read_only:
            raise ConfigError("Config manager is read-only.")
        atomic_write_json(self.fs.app, cfg.model_dump(mode="json"))
        self._cfg = cfg

    def resolve_path(self, path: str) -> str:
        return self.fs.resolve(path)

    # ---------- internal ----------
    def _load_raw(self) -> Dict[str, Any]:
        rr = read_json_file(self.fs.app)
        if rr.ok:
            return rr.data
        if rr.error == MISSING:
            defaults = AppConfig().model_dump(mode="json")
            if not self.read_only:
                atomic_write_json(self.fs.app, defaults)
                if self.logger:
                    self.logger.info(f"Created default config at {self.fs.app}")
            return defaults
        # corrupt or unreadable: keep the bad file for inspection, fall back to defaults
        moved = quarantine_file(self.fs.app, self.fs.backups_dir) if not self.read_only else None
        if self.logger:
            self.logger.warning(f"Config {self.fs.app} unreadable ({rr.error}); using defaults. Backup: {moved}")
        return AppConfig().model_dump(mode="json")

    def _apply_env(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        out = {k: (dict(v) if isinstance(v, dict) else v) for k, v in raw.items()}
        for var, (section, key) in ENV_OVERRIDES.items():
            val = self.env.get(var)
            if val:
                sec = out.get(section)
                if not isinstance(sec, dict):
                    sec = {}
                sec[key] = val
                out[section] = sec
        return out
