from __future__ import annotations

from movi.core.config.manager import ConfigManager
from movi.core.config.models import AppConfig
from movi.core.config.paths import ConfigFsPaths

__all__ = ["AppConfig", "ConfigFsPaths", "ConfigManager"]
