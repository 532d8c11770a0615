from __future__ import annotations

import os

import pytest

from movi.core.config.manager import ConfigManager
from movi.core.config.paths import ConfigFsPaths

from .helpers.harness import SessionHarness


@pytest.fixture
def tmp_config_root(tmp_path):
    """
    Provides an isolated root with config/ and secure/ under tmp_path.
    """
    fs = ConfigFsPaths(root=str(tmp_path))
    os.makedirs(fs.config_dir, exist_ok=True)
    os.makedirs(fs.secure_dir, exist_ok=True)
    return fs


@pytest.fixture
def config_manager(tmp_config_root):
    cm = ConfigManager(fs=tmp_config_root, logger=None, read_only=False, env={})
    cm.load_all()
    return cm


@pytest.fixture
def harness(tmp_path):
    h = SessionHarness.make(tmp_path=tmp_path)
    yield h
    if h.provider.gate is not None:
        h.provider.gate.set()
    h.manager.shutdown()
