"""
Completion provider configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from ..errors import InvalidConfigError


@dataclass
class OpenAIConfig:
    """Settings for OpenAI and OpenAI-compatible chat completion services.

    Point ``base_url`` at any compatible endpoint (a local server, DashScope
    for Qwen models, a proxy).
    """

    api_key: str | None = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    base_url: str | None = None
    model: str = "gpt-4o-mini"
    timeout: float = 60.0
    max_retries: int = 0
    organization: str | None = None

    def __post_init__(self):
        if self.timeout <= 0:
            raise InvalidConfigError("timeout must be positive")
        if self.max_retries < 0:
            raise InvalidConfigError("max_retries cannot be negative")
        if self.base_url and not self.base_url.startswith(("http://", "https://")):
            raise InvalidConfigError("base_url must be a valid HTTP(S) URL")


@dataclass
class CacheConfig:
    """In-memory completion cache settings."""

    enabled: bool = False
    max_entries: int | None = 1024

    def __post_init__(self):
        if self.max_entries is not None and self.max_entries < 1:
            raise InvalidConfigError("max_entries must be at least 1")


__all__ = ["OpenAIConfig", "CacheConfig"]
