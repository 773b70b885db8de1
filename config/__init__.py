"""Configuration module for the computer-use agent."""
from config.models import (
    AgentConfig,
    BrowserConfig,
    ReasonerConfig,
    RunnerConfig,
    StorageConfig,
    load_config,
)

__all__ = [
    "AgentConfig",
    "BrowserConfig",
    "ReasonerConfig",
    "RunnerConfig",
    "StorageConfig",
    "load_config",
]
