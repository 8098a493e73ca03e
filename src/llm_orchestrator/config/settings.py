"""
Top-level ``Settings`` plus the process-wide settings instance.
"""

from __future__ import annotations

import dataclasses
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import find_dotenv, load_dotenv

from ..errors import InvalidConfigError
from .agent import AgentConfig
from .logging import LoggingConfig
from .provider import CacheConfig, OpenAIConfig
from .retry import RetryConfig
from .schema import CONFIG_SCHEMA


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    Master configuration for the orchestration runtime.

    Aggregates every configuration section into one object that can be
    loaded from environment variables, files, or constructed in code.
    """

    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "ORCH_") -> Settings:
        """
        Build settings from ``{prefix}*`` environment variables.

        Example:
            ORCH_OPENAI_API_KEY=sk-...
            ORCH_OPENAI_BASE_URL=https://dashscope.aliyuncs.com/compatible-mode/v1
            ORCH_AGENT_MAX_TURNS=5
            ORCH_LOG_FORMAT=json
        """
        settings = cls()

        try:
            # Provider settings
            if key := os.getenv(f"{prefix}OPENAI_API_KEY"):
                settings.openai.api_key = key
            if url := os.getenv(f"{prefix}OPENAI_BASE_URL"):
                settings.openai.base_url = url
            if model := os.getenv(f"{prefix}OPENAI_MODEL"):
                settings.openai.model = model
            if timeout := os.getenv(f"{prefix}OPENAI_TIMEOUT"):
                settings.openai.timeout = float(timeout)

            # Cache settings
            if enabled := os.getenv(f"{prefix}CACHE_ENABLED"):
                settings.cache.enabled = _env_bool(enabled)
            if max_entries := os.getenv(f"{prefix}CACHE_MAX_ENTRIES"):
                settings.cache.max_entries = int(max_entries)

            # Agent settings
            if max_turns := os.getenv(f"{prefix}AGENT_MAX_TURNS"):
                settings.agent.max_turns = int(max_turns)
            if timeout := os.getenv(f"{prefix}AGENT_CAPABILITY_TIMEOUT"):
                settings.agent.capability_timeout = float(timeout)
            if parallel := os.getenv(f"{prefix}AGENT_PARALLEL_CAPABILITIES"):
                settings.agent.parallel_capabilities = _env_bool(parallel)
            if batch_concurrency := os.getenv(f"{prefix}AGENT_BATCH_CONCURRENCY"):
                settings.agent.batch_concurrency = int(batch_concurrency)

            # Retry settings
            if attempts := os.getenv(f"{prefix}RETRY_ATTEMPTS"):
                settings.retry.attempts = int(attempts)
            if backoff := os.getenv(f"{prefix}RETRY_BACKOFF"):
                settings.retry.backoff = float(backoff)
        except ValueError as exc:
            raise InvalidConfigError(f"Invalid environment configuration: {exc}", cause=exc) from exc

        # Logging settings
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging.level = level.upper()  # type: ignore[assignment]
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging.format = log_format.lower()  # type: ignore[assignment]

        settings.validate()
        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Read a ``.yaml``, ``.yml`` or ``.toml`` file.

        Top-level keys name sections (``openai``, ``agent``, ...); the
        content is checked against ``CONFIG_SCHEMA`` before use.
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()
        if suffix in (".yaml", ".yml"):
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise InvalidConfigError(f"Unsupported config file format: {suffix}")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary validated against ``CONFIG_SCHEMA``.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as exc:
            raise InvalidConfigError(f"Configuration validation failed: {exc.message}", cause=exc) from exc

        sections = {
            "openai": OpenAIConfig,
            "cache": CacheConfig,
            "agent": AgentConfig,
            "retry": RetryConfig,
            "logging": LoggingConfig,
        }
        kwargs = {name: factory(**data[name]) for name, factory in sections.items() if name in data}
        return cls(**kwargs)

    def validate(self) -> None:
        """Re-run each section's checks after in-place edits."""
        for section in (self.openai, self.cache, self.agent, self.retry, self.logging):
            section.__post_init__()

    def to_dict(self) -> dict[str, Any]:
        def convert(obj):
            if dataclasses.is_dataclass(obj):
                return convert(dataclasses.asdict(obj))
            if isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            if isinstance(obj, Path):
                return str(obj)
            return obj

        return convert(self)


# =============================================================================
# Process-wide settings
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Install ``settings`` as the process-wide instance and/or patch sections.

    Args:
        settings: Replaces the current instance when given
        **kwargs: Replace whole sections, e.g. ``agent=AgentConfig(max_turns=4)``
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if not hasattr(_global_settings, key):
            raise InvalidConfigError(f"Unknown settings section: {key}")
        setattr(_global_settings, key, value)

    return _global_settings


def reset_settings() -> None:
    global _global_settings
    _global_settings = None


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Populate ``os.environ`` from a ``.env`` file (searched upward from the
    working directory when ``path`` is omitted). Returns False when none is found.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "reset_settings", "load_env"]
