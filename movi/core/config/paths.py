from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ConfigFsPaths:
    """
    On-disk layout under one root:

        <root>/config/app.json
        <root>/config/backups/
        <root>/secure/        device key, encrypted session store, cache
    """

    root: str = "."

    def _under(self, *parts: str) -> str:
        return os.path.join(os.path.expanduser(self.root), *parts)

    @property
    def config_dir(self) -> str:
        return self._under("config")

    @property
    def backups_dir(self) -> str:
        return self._under("config", "backups")

    @property
    def secure_dir(self) -> str:
        return self._under("secure")

    @property
    def app(self) -> str:
        return self._under("config", "app.json")

    def required_dirs(self) -> Tuple[str, ...]:
        return (self.config_dir, self.secure_dir)

    def resolve(self, path: str) -> str:
        # config values may be relative to the root
        path = os.path.expanduser(path)
        return path if os.path.isabs(path) else self._under(path)
