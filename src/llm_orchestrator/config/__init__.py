"""
Configuration system for llm-orchestrator.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
"""

from .agent import AgentConfig
from .logging import LogFormat, LoggingConfig, LogLevel
from .provider import CacheConfig, OpenAIConfig
from .retry import RetryConfig
from .settings import Settings, configure, get_settings, load_env, reset_settings

__all__ = [
    "LogLevel",
    "LogFormat",
    "OpenAIConfig",
    "CacheConfig",
    "AgentConfig",
    "RetryConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
    "configure",
    "reset_settings",
    "load_env",
]
