"""
Tests for config.py configuration module.

Tests case database path resolution, busy timeout parsing, validation, and
global config management.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

import commsgraph.config as config_module
from commsgraph.config import Config, get_config, set_config


@pytest.fixture(autouse=True)
def clean_env():
    """Run each test without the commsgraph environment variables."""
    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop(Config.CASE_DB_ENV_VAR, None)
        os.environ.pop(Config.BUSY_TIMEOUT_ENV_VAR, None)
        yield


@pytest.fixture
def reset_global_config():
    original = config_module._config
    config_module._config = None
    yield
    config_module._config = original


class TestConfigInit:
    """Tests for Config initialization."""

    def test_explicit_path(self, tmp_path: Path):
        config = Config(case_db_path=str(tmp_path / "case.db"))
        assert config.case_db_path == tmp_path / "case.db"
        assert config.case_db_path_str == str(tmp_path / "case.db")

    def test_env_path(self, tmp_path: Path):
        with patch.dict(os.environ, {Config.CASE_DB_ENV_VAR: str(tmp_path / "env.db")}):
            assert Config().case_db_path == tmp_path / "env.db"

    def test_explicit_path_beats_env(self, tmp_path: Path):
        with patch.dict(os.environ, {Config.CASE_DB_ENV_VAR: str(tmp_path / "env.db")}):
            assert Config(case_db_path=str(tmp_path / "arg.db")).case_db_path == tmp_path / "arg.db"

    def test_default_path(self):
        assert Config().case_db_path == Path.home() / ".commsgraph" / "case.db"


class TestBusyTimeout:
    """Tests for busy timeout resolution."""

    def test_default(self):
        assert Config().busy_timeout == 30.0

    def test_explicit(self):
        assert Config(busy_timeout=2).busy_timeout == 2.0

    def test_env(self):
        with patch.dict(os.environ, {Config.BUSY_TIMEOUT_ENV_VAR: "7.5"}):
            assert Config().busy_timeout == 7.5

    @pytest.mark.parametrize("raw", ["soon", "-1"])
    def test_invalid_env_falls_back(self, raw: str):
        with patch.dict(os.environ, {Config.BUSY_TIMEOUT_ENV_VAR: raw}):
            assert Config().busy_timeout == Config.DEFAULT_BUSY_TIMEOUT


class TestConfigValidation:
    """Tests for validate and ensure_case_dir."""

    def test_validate_missing(self, tmp_path: Path):
        assert Config(case_db_path=str(tmp_path / "missing.db")).validate() is False

    def test_validate_existing(self, tmp_path: Path):
        db_path = tmp_path / "case.db"
        db_path.touch()
        assert Config(case_db_path=str(db_path)).validate() is True

    def test_ensure_case_dir(self, tmp_path: Path):
        config = Config(case_db_path=str(tmp_path / "a" / "b" / "case.db"))
        config.ensure_case_dir()
        assert (tmp_path / "a" / "b").is_dir()


class TestGlobalConfig:
    """Tests for get_config and set_config."""

    def test_get_config_cached(self, reset_global_config):
        assert get_config() is get_config()

    def test_get_config_with_path_replaces(self, reset_global_config, tmp_path: Path):
        first = get_config()
        second = get_config(case_db_path=str(tmp_path / "case.db"))
        assert second is not first
        assert get_config() is second

    def test_set_config(self, reset_global_config, tmp_path: Path):
        custom = Config(case_db_path=str(tmp_path / "custom.db"))
        set_config(custom)
        assert get_config() is custom
