"""Pydantic configuration models for the computer-use agent."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from exceptions import ConfigFileNotFoundError, ConfigurationError
from prompts import DEFAULT_INSTRUCTIONS
from run_types import Scope


# Load .env file if present
load_dotenv()


class AgentConfig(BaseModel):
    """Run controller budgets and granted capabilities."""

    max_steps: int = Field(
        default=40,
        ge=1,
        le=500,
        description="Maximum number of loop iterations per run",
    )
    step_timeout_ms: int = Field(
        default=15000,
        ge=100,
        le=600000,
        description="Timeout for a single device action",
    )
    scopes: List[Scope] = Field(
        default_factory=lambda: [Scope.NAVIGATE],
        description="Capability scopes granted to the run",
    )


class ReasonerConfig(BaseModel):
    """Remote reasoning service configuration."""

    model: str = Field(
        default="computer-use-preview",
        description="Model name to use for the computer-use service",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the Responses API",
    )
    api_key: str = Field(
        default="",
        description="API key for the service",
    )
    instructions: str = Field(
        default=DEFAULT_INSTRUCTIONS,
        description="Operator instructions prepended to every goal",
    )
    stop_on_message: bool = Field(
        default=True,
        description="Treat any plain message from the service as completion",
    )
    keep_thread_on_message: bool = Field(
        default=False,
        description="Keep the conversation thread open after a plain message",
    )
    auto_confirm_text: Optional[str] = Field(
        default=None,
        description="One-shot hint sent with the first turn of a conversation",
    )
    display_width: int = Field(default=1280, ge=320, le=3840)
    display_height: int = Field(default=800, ge=240, le=2160)
    environment: Literal["browser", "mac", "windows", "ubuntu", "linux"] = Field(
        default="browser",
        description="Environment advertised to the computer-use tool",
    )
    truncation: Literal["auto", "disabled"] = Field(default="auto")
    request_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Per-request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per request on transient transport errors",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base_url doesn't have trailing slash."""
        return v.rstrip("/")

    @model_validator(mode="before")
    @classmethod
    def load_from_env(cls, data: Any) -> Any:
        """Load values from environment variables if not explicitly set."""
        if not isinstance(data, dict):
            return data
        env_mapping = {
            "base_url": "OPENAI_BASE_URL",
            "api_key": "OPENAI_API_KEY",
            "model": "OPENAI_CUA_MODEL",
        }
        for field_name, env_var in env_mapping.items():
            if field_name not in data or data[field_name] is None:
                env_value = os.getenv(env_var)
                if env_value:
                    data[field_name] = env_value
        return data

    @property
    def wants_computer_tool(self) -> bool:
        return "computer-use" in self.model


class BrowserConfig(BaseModel):
    """Browser automation configuration."""

    browser: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use",
    )
    headless: bool = Field(
        default=True,
        description="Run browser in headless mode",
    )
    viewport_width: int = Field(default=1280, ge=320, le=3840)
    viewport_height: int = Field(default=800, ge=240, le=2160)
    slow_mo: int = Field(
        default=0,
        ge=0,
        le=5000,
        description="Slow down browser operations by this many ms",
    )
    user_agent: Optional[str] = Field(default=None)
    settle_ms: int = Field(
        default=400,
        ge=0,
        le=10000,
        description="Pause after navigation before capturing a snapshot",
    )


class StorageConfig(BaseModel):
    """Run log, snapshot and report output configuration."""

    runs_folder: Path = Field(
        default=Path("./runs"),
        description="Directory for per-run logs and screenshots",
    )
    reports_folder: Path = Field(
        default=Path("./reports"),
        description="Directory for run reports",
    )
    save_screenshots: bool = Field(default=True)
    save_run_log: bool = Field(default=True)
    output_format: Literal["json", "junit", "all"] = Field(
        default="json",
        description="Report output format",
    )

    @field_validator("runs_folder", "reports_folder", mode="before")
    @classmethod
    def convert_to_path(cls, v: Any) -> Path:
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v


class RunnerConfig(BaseModel):
    """Root configuration model combining all config sections."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    reasoner: ReasonerConfig = Field(default_factory=ReasonerConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    parallel_workers: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Number of goals run concurrently",
    )
    verbose: bool = Field(default=False)

    @classmethod
    def from_flat_dict(cls, data: dict[str, Any]) -> "RunnerConfig":
        """Create config from a flat dictionary."""
        sections = {
            "agent": set(AgentConfig.model_fields),
            "reasoner": set(ReasonerConfig.model_fields),
            "browser": set(BrowserConfig.model_fields),
            "storage": set(StorageConfig.model_fields),
        }
        nested: dict[str, Any] = {name: {} for name in sections}

        for key, value in data.items():
            if key in ("parallel_workers", "verbose"):
                nested[key] = value
                continue
            for section, keys in sections.items():
                if key in keys:
                    nested[section][key] = value
                    break

        return cls.model_validate(nested)


def load_config(
    config_path: Optional[Path] = None,
    cli_overrides: Optional[dict[str, Any]] = None,
) -> RunnerConfig:
    """
    Load configuration from file with CLI overrides.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Config file
    4. Defaults
    """
    config_data: dict[str, Any] = {}

    explicit = config_path is not None
    if config_path is None:
        config_path = Path("config.json")

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                if config_path.suffix in {".yaml", ".yml"}:
                    import yaml
                    config_data = yaml.safe_load(f) or {}
                else:
                    config_data = json.load(f)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Failed to read config file {config_path}: {exc}") from exc
    elif explicit:
        raise ConfigFileNotFoundError(str(config_path))

    is_flat = any(key in config_data for key in ["model", "api_key", "max_steps", "headless"])

    if is_flat:
        config = RunnerConfig.from_flat_dict(config_data)
    else:
        config = RunnerConfig.model_validate(config_data)

    if cli_overrides:
        config_dict = config.model_dump()
        _apply_overrides(config_dict, cli_overrides)
        config = RunnerConfig.model_validate(config_dict)

    return config


def _apply_overrides(config_dict: dict[str, Any], overrides: dict[str, Any]) -> None:
    """Apply CLI overrides to config dictionary."""
    override_mapping = {
        "browser": ("browser", "browser"),
        "headless": ("browser", "headless"),
        "parallel": ("parallel_workers", None),
        "verbose": ("verbose", None),
        "output_format": ("storage", "output_format"),
        "runs_dir": ("storage", "runs_folder"),
        "reports_dir": ("storage", "reports_folder"),
        "model": ("reasoner", "model"),
        "base_url": ("reasoner", "base_url"),
        "max_steps": ("agent", "max_steps"),
        "step_timeout_ms": ("agent", "step_timeout_ms"),
        "scopes": ("agent", "scopes"),
    }

    for key, value in overrides.items():
        if value is None:
            continue

        if key == "headful":
            config_dict["browser"]["headless"] = not value
            continue

        mapping = override_mapping.get(key)
        if mapping:
            section, field = mapping
            if field is None:
                config_dict[section] = value
            else:
                config_dict[section][field] = value
