"""Configuration and provider profiles for quillstream.

Config discovery (first match wins):
  1. ``--config`` flag
  2. ``./quillstream.yaml``
  3. ``~/.config/quillstream/config.yaml``
  4. Built-in defaults

Provider profile fields resolve per field as: explicit argument, then
environment variable, then config file, then the static provider table.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

_logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openai"

# provider -> (base_url, default_model)
PROVIDER_DEFAULTS: dict[str, tuple[str, str]] = {
    "openai": ("https://api.openai.com/v1", "gpt-4.1"),
    "anthropic": ("https://api.anthropic.com/v1", "claude-opus-4-6"),
    "gemini": (
        "https://generativelanguage.googleapis.com/v1beta/openai",
        "gemini-3-flash-preview",
    ),
    "xai": ("https://api.x.ai/v1", "grok-4-0709"),
    "deepseek": ("https://api.deepseek.com", "deepseek-chat"),
    "qwen": ("https://dashscope.aliyuncs.com/compatible-mode/v1", "qwen3-max"),
    "glm": ("https://open.bigmodel.cn/api/paas/v4", "glm-5"),
    "glm-code": ("https://open.bigmodel.cn/api/coding/paas/v4", "GLM-5"),
    "minimax": ("https://api.minimaxi.com/v1", "MiniMax-M2.5"),
    "minimax-code": ("https://api.minimaxi.com/v1", "MiniMax-M2.5"),
    "kimi": ("https://api.moonshot.cn/v1", "kimi-k2.5"),
    "kimi-code": ("https://api.kimi.com/coding/v1", "kimi-for-coding"),
    "litellm": ("http://localhost:4000", "gpt-4.1"),
}

ENV_PROVIDER = "AI_PROVIDER"
ENV_API_KEY = "AI_API_KEY"
ENV_BASE_URL = "AI_BASE_URL"
ENV_MODEL = "AI_MODEL"

MAX_BUFFER_BYTES = 10 * 1024 * 1024


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class ProviderProfile:
    """A fully resolved provider profile for one call.

    Built fresh per call and never persisted.
    """

    provider: str = DEFAULT_PROVIDER
    api_key: str | None = None
    base_url: str = PROVIDER_DEFAULTS[DEFAULT_PROVIDER][0]
    model: str = PROVIDER_DEFAULTS[DEFAULT_PROVIDER][1]

    @property
    def is_anthropic(self) -> bool:
        return self.provider == "anthropic"

    def __repr__(self) -> str:
        key = "***" if self.api_key else None
        return (
            f"ProviderProfile(provider={self.provider!r}, api_key={key!r}, "
            f"base_url={self.base_url!r}, model={self.model!r})"
        )


@dataclass
class EngineConfig:
    """Top-level config for the engine."""

    # Fallback profile values, below explicit arguments and environment
    provider: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None

    # Request shaping
    temperature: float = 0.7
    max_tokens: int | None = None

    # Timeouts (seconds)
    request_timeout: float = 120
    connection_test_timeout: float = 15

    # Tool calling
    max_tool_rounds: int = 5

    # Stream decoding
    max_buffer_bytes: int = MAX_BUFFER_BYTES


# ---------------------------------------------------------------------------
# Profile resolution
# ---------------------------------------------------------------------------

def provider_defaults(provider: str) -> tuple[str, str]:
    """Return ``(base_url, default_model)`` for *provider*.

    Unknown providers resolve to the OpenAI-compatible defaults.
    """
    defaults = PROVIDER_DEFAULTS.get(provider)
    if defaults is None:
        _logger.debug("Unknown provider %r, using OpenAI defaults", provider)
        return PROVIDER_DEFAULTS[DEFAULT_PROVIDER]
    return defaults


def _first(*values: str | None) -> str | None:
    for value in values:
        if value:
            return value
    return None


def resolve_profile(
    provider: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    model: str | None = None,
    env: Mapping[str, str] | None = None,
    defaults: EngineConfig | None = None,
) -> ProviderProfile:
    """Resolve a provider profile from call arguments and fallbacks.

    Parameters
    ----------
    provider, api_key, base_url, model:
        Explicit per-call overrides. Empty strings count as absent.
    env:
        Environment mapping; defaults to ``os.environ``.
    defaults:
        Config-file values consulted after the environment.
    """
    env = os.environ if env is None else env
    cfg = defaults or EngineConfig()

    name = _first(provider, env.get(ENV_PROVIDER), cfg.provider) or DEFAULT_PROVIDER
    table_url, table_model = provider_defaults(name)

    return ProviderProfile(
        provider=name,
        api_key=_first(api_key, env.get(ENV_API_KEY), cfg.api_key),
        base_url=_first(base_url, env.get(ENV_BASE_URL), cfg.base_url) or table_url,
        model=_first(model, env.get(ENV_MODEL), cfg.model) or table_model,
    )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./quillstream.yaml"),
    Path.home() / ".config" / "quillstream" / "config.yaml",
]


def _parse_config(raw: dict[str, Any]) -> EngineConfig:
    known = {
        k: v for k, v in raw.items()
        if v is not None and k in EngineConfig.__dataclass_fields__
    }
    ignored = sorted(set(raw) - set(known))
    if ignored:
        _logger.debug("Ignoring config keys: %s", ", ".join(ignored))
    return EngineConfig(**known)


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    EngineConfig
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            return EngineConfig()
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return EngineConfig()

    _logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        _logger.warning("Config file %s is not a mapping, using defaults", config_path)
        return EngineConfig()

    return _parse_config(raw)
