"""Unit tests for config module."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from config import (
    AgentConfig,
    BrowserConfig,
    ReasonerConfig,
    RunnerConfig,
    StorageConfig,
    load_config,
)
from exceptions import ConfigFileNotFoundError, ConfigurationError
from prompts import DEFAULT_INSTRUCTIONS
from run_types import Scope


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("OPENAI_BASE_URL", "OPENAI_API_KEY", "OPENAI_CUA_MODEL"):
        monkeypatch.delenv(name, raising=False)


class TestAgentConfig:
    """Tests for AgentConfig model."""

    def test_default_values(self):
        config = AgentConfig()
        assert config.max_steps == 40
        assert config.step_timeout_ms == 15000
        assert config.scopes == [Scope.NAVIGATE]

    def test_max_steps_validation(self):
        with pytest.raises(ValueError):
            AgentConfig(max_steps=0)
        with pytest.raises(ValueError):
            AgentConfig(max_steps=501)

    def test_scopes_from_strings(self):
        config = AgentConfig(scopes=["navigate", "clipboard_read"])
        assert config.scopes == [Scope.NAVIGATE, Scope.CLIPBOARD_READ]

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError):
            AgentConfig(scopes=["root"])


class TestReasonerConfig:
    """Tests for ReasonerConfig model."""

    def test_default_values(self):
        config = ReasonerConfig()
        assert config.model == "computer-use-preview"
        assert config.base_url == "https://api.openai.com/v1"
        assert config.api_key == ""
        assert config.instructions == DEFAULT_INSTRUCTIONS
        assert config.stop_on_message is True
        assert config.keep_thread_on_message is False
        assert config.auto_confirm_text is None
        assert config.max_retries == 3

    def test_base_url_trailing_slash_stripped(self):
        config = ReasonerConfig(base_url="https://proxy.example.com/v1/")
        assert config.base_url == "https://proxy.example.com/v1"

    def test_env_var_loading(self, monkeypatch):
        monkeypatch.setenv("OPENAI_BASE_URL", "https://env.example.com/v1")
        monkeypatch.setenv("OPENAI_API_KEY", "env-api-key")
        monkeypatch.setenv("OPENAI_CUA_MODEL", "computer-use-env")

        config = ReasonerConfig()
        assert config.base_url == "https://env.example.com/v1"
        assert config.api_key == "env-api-key"
        assert config.model == "computer-use-env"

    def test_explicit_values_win_over_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "env-api-key")
        assert ReasonerConfig(api_key="explicit").api_key == "explicit"

    def test_wants_computer_tool(self):
        assert ReasonerConfig().wants_computer_tool
        assert not ReasonerConfig(model="gpt-4o").wants_computer_tool

    def test_environment_choices(self):
        with pytest.raises(ValueError):
            ReasonerConfig(environment="amiga")


class TestBrowserConfig:
    """Tests for BrowserConfig model."""

    def test_default_values(self):
        config = BrowserConfig()
        assert config.browser == "chromium"
        assert config.headless is True
        assert config.viewport_width == 1280
        assert config.viewport_height == 800
        assert config.settle_ms == 400

    def test_invalid_browser_rejected(self):
        with pytest.raises(ValueError):
            BrowserConfig(browser="invalid")

    def test_viewport_validation(self):
        with pytest.raises(ValueError):
            BrowserConfig(viewport_width=100)


class TestStorageConfig:
    """Tests for StorageConfig model."""

    def test_path_conversion(self):
        config = StorageConfig(runs_folder="./custom/runs", reports_folder="./custom/reports")
        assert isinstance(config.runs_folder, Path)
        assert isinstance(config.reports_folder, Path)

    def test_output_format_choices(self):
        for fmt in ["json", "junit", "all"]:
            assert StorageConfig(output_format=fmt).output_format == fmt
        with pytest.raises(ValueError):
            StorageConfig(output_format="html")


class TestRunnerConfig:
    """Tests for root RunnerConfig model."""

    def test_default_nested_configs(self):
        config = RunnerConfig()
        assert isinstance(config.agent, AgentConfig)
        assert isinstance(config.reasoner, ReasonerConfig)
        assert isinstance(config.browser, BrowserConfig)
        assert isinstance(config.storage, StorageConfig)
        assert config.parallel_workers == 1

    def test_from_flat_dict(self):
        config = RunnerConfig.from_flat_dict(
            {
                "model": "computer-use-flat",
                "max_steps": 12,
                "browser": "firefox",
                "headless": False,
                "save_screenshots": False,
                "parallel_workers": 4,
            }
        )
        assert config.reasoner.model == "computer-use-flat"
        assert config.agent.max_steps == 12
        assert config.browser.browser == "firefox"
        assert config.browser.headless is False
        assert config.storage.save_screenshots is False
        assert config.parallel_workers == 4


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_nested_json(self, temp_dir: Path):
        config_file = temp_dir / "config.json"
        config_file.write_text(
            json.dumps(
                {
                    "agent": {"max_steps": 10, "scopes": ["navigate", "network"]},
                    "reasoner": {"model": "computer-use-file"},
                }
            )
        )

        config = load_config(config_file)
        assert config.agent.max_steps == 10
        assert config.agent.scopes == [Scope.NAVIGATE, Scope.NETWORK]
        assert config.reasoner.model == "computer-use-file"

    def test_loads_flat_json(self, temp_dir: Path):
        config_file = temp_dir / "config.json"
        config_file.write_text(json.dumps({"model": "flat-model", "browser": "webkit"}))

        config = load_config(config_file)
        assert config.reasoner.model == "flat-model"
        assert config.browser.browser == "webkit"

    def test_yaml_config(self, temp_dir: Path):
        config_file = temp_dir / "config.yaml"
        config_file.write_text(
            """
reasoner:
  auto_confirm_text: "Yes, go ahead."
  keep_thread_on_message: true
storage:
  output_format: junit
"""
        )

        config = load_config(config_file)
        assert config.reasoner.auto_confirm_text == "Yes, go ahead."
        assert config.reasoner.keep_thread_on_message is True
        assert config.storage.output_format == "junit"

    def test_cli_overrides(self, temp_dir: Path):
        config_file = temp_dir / "config.json"
        config_file.write_text(json.dumps({"browser": {"browser": "firefox"}}))

        config = load_config(
            config_file,
            cli_overrides={
                "browser": "chromium",
                "headful": True,
                "parallel": 4,
                "max_steps": 7,
                "model": None,
            },
        )
        assert config.browser.browser == "chromium"
        assert config.browser.headless is False
        assert config.parallel_workers == 4
        assert config.agent.max_steps == 7
        assert config.reasoner.model == "computer-use-preview"

    def test_default_config_path(self, temp_dir: Path, monkeypatch):
        monkeypatch.chdir(temp_dir)
        config = load_config()
        assert config.reasoner.model == "computer-use-preview"

    def test_missing_explicit_path_raises(self, temp_dir: Path):
        with pytest.raises(ConfigFileNotFoundError):
            load_config(temp_dir / "nope.json")

    def test_invalid_json_raises(self, temp_dir: Path):
        config_file = temp_dir / "config.json"
        config_file.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_config(config_file)
