"""Tests for common.config module."""

import os
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from common.config import ConfigSingleton, Settings, load_settings
from common.exceptions import ConfigError


class TestLoadSettings:
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True), patch("common.config.load_dotenv"):
            settings = load_settings()
        assert settings.pipeline_store == "file"
        assert settings.max_items_per_feed == 10
        assert settings.cache_dir == Path(".cache")
        assert settings.scoring_cache_path is None

    def test_environment_overrides(self) -> None:
        env = {
            "PIPELINE_STORE": "DB",
            "MAX_ITEMS_PER_FEED": "5",
            "OPENAI_MODEL_NAME": "gpt-test",
            "SCORING_CACHE_PATH": "/tmp/audit.json",
        }
        with patch.dict(os.environ, env, clear=True), patch("common.config.load_dotenv"):
            settings = load_settings()
        assert settings.pipeline_store == "db"
        assert settings.max_items_per_feed == 5
        assert settings.report_model == "gpt-test"
        assert settings.scoring_cache_path == Path("/tmp/audit.json")

    def test_unknown_store_raises(self) -> None:
        with patch.dict(os.environ, {"PIPELINE_STORE": "s3"}, clear=True), patch("common.config.load_dotenv"):
            with pytest.raises(ConfigError):
                load_settings()

    def test_non_integer_raises(self) -> None:
        with patch.dict(os.environ, {"MAX_ITEMS_PER_FEED": "many"}, clear=True), patch("common.config.load_dotenv"):
            with pytest.raises(ConfigError):
                load_settings()


class TestSettings:
    def test_report_model_override(self) -> None:
        settings = Settings(openai_model="a", openai_report_model="b")
        assert settings.report_model == "b"


class TestConfigSingleton:
    def test_loads_once_until_reset(self) -> None:
        loader = Mock(side_effect=[Settings(openai_model="first"), Settings(openai_model="second")])
        manager = ConfigSingleton(loader)

        assert manager.get().openai_model == "first"
        assert manager.get().openai_model == "first"
        manager.reset()
        assert manager.get().openai_model == "second"
        assert loader.call_count == 2

    def test_set_bypasses_loader(self) -> None:
        manager = ConfigSingleton()
        manager.set(Settings(default_account_id="acme"))
        assert manager.get().default_account_id == "acme"

    def test_get_without_loader_raises(self) -> None:
        with pytest.raises(RuntimeError):
            ConfigSingleton().get()
