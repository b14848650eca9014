"""Tests for provider profile resolution and config loading."""

import pytest
import yaml

from quillstream import config as config_module
from quillstream.config import (
    MAX_BUFFER_BYTES,
    EngineConfig,
    ProviderProfile,
    load_config,
    resolve_profile,
)


PROVIDER_TABLE = [
    ("openai", "https://api.openai.com/v1", "gpt-4.1"),
    ("anthropic", "https://api.anthropic.com/v1", "claude-opus-4-6"),
    ("gemini", "https://generativelanguage.googleapis.com/v1beta/openai", "gemini-3-flash-preview"),
    ("xai", "https://api.x.ai/v1", "grok-4-0709"),
    ("deepseek", "https://api.deepseek.com", "deepseek-chat"),
    ("qwen", "https://dashscope.aliyuncs.com/compatible-mode/v1", "qwen3-max"),
    ("glm", "https://open.bigmodel.cn/api/paas/v4", "glm-5"),
    ("glm-code", "https://open.bigmodel.cn/api/coding/paas/v4", "GLM-5"),
    ("minimax", "https://api.minimaxi.com/v1", "MiniMax-M2.5"),
    ("minimax-code", "https://api.minimaxi.com/v1", "MiniMax-M2.5"),
    ("kimi", "https://api.moonshot.cn/v1", "kimi-k2.5"),
    ("kimi-code", "https://api.kimi.com/coding/v1", "kimi-for-coding"),
    ("litellm", "http://localhost:4000", "gpt-4.1"),
]


class TestProviderTable:
    @pytest.mark.parametrize("provider,base_url,model", PROVIDER_TABLE)
    def test_table_defaults(self, provider, base_url, model):
        p = resolve_profile(provider, None, None, env={})
        assert p.provider == provider
        assert p.base_url == base_url
        assert p.model == model
        assert p.api_key is None

    def test_unknown_provider_gets_openai_defaults(self):
        p = resolve_profile("some-new-vendor", env={})
        assert p.provider == "some-new-vendor"
        assert p.base_url == "https://api.openai.com/v1"
        assert p.model == "gpt-4.1"

    def test_no_provider_defaults_to_openai(self):
        p = resolve_profile(env={})
        assert p.provider == "openai"
        assert p.base_url == "https://api.openai.com/v1"


class TestPrecedence:
    def test_env_fills_missing_values(self):
        env = {
            "AI_PROVIDER": "qwen",
            "AI_API_KEY": "sk-env",
            "AI_BASE_URL": "http://proxy.local/v1",
            "AI_MODEL": "qwen-plus",
        }
        p = resolve_profile(env=env)
        assert p.provider == "qwen"
        assert p.api_key == "sk-env"
        assert p.base_url == "http://proxy.local/v1"
        assert p.model == "qwen-plus"

    def test_explicit_arguments_win_over_env(self):
        env = {"AI_PROVIDER": "qwen", "AI_API_KEY": "sk-env"}
        p = resolve_profile("deepseek", "sk-arg", env=env)
        assert p.provider == "deepseek"
        assert p.api_key == "sk-arg"
        assert p.base_url == "https://api.deepseek.com"

    def test_empty_base_url_counts_as_absent(self):
        p = resolve_profile("kimi", base_url="", env={})
        assert p.base_url == "https://api.moonshot.cn/v1"

    def test_config_defaults_below_env(self):
        cfg = EngineConfig(provider="glm", api_key="sk-file", model="glm-4.5")
        p = resolve_profile(env={"AI_API_KEY": "sk-env"}, defaults=cfg)
        assert p.provider == "glm"
        assert p.api_key == "sk-env"
        assert p.model == "glm-4.5"
        assert p.base_url == "https://open.bigmodel.cn/api/paas/v4"

    def test_reads_process_environment_by_default(self, monkeypatch):
        monkeypatch.setenv("AI_PROVIDER", "xai")
        monkeypatch.delenv("AI_BASE_URL", raising=False)
        monkeypatch.delenv("AI_MODEL", raising=False)
        p = resolve_profile()
        assert p.provider == "xai"
        assert p.base_url == "https://api.x.ai/v1"

    def test_repr_masks_api_key(self):
        p = ProviderProfile(api_key="sk-secret")
        assert "sk-secret" not in repr(p)


class TestEngineConfig:
    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.temperature == 0.7
        assert cfg.request_timeout == 120
        assert cfg.connection_test_timeout == 15
        assert cfg.max_tool_rounds == 5
        assert cfg.max_buffer_bytes == MAX_BUFFER_BYTES == 10 * 1024 * 1024


class TestLoadConfig:
    def test_defaults_when_no_file(self, tmp_path):
        cfg = load_config(tmp_path / "does_not_exist.yaml")
        assert cfg == EngineConfig()

    def test_load_from_yaml(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump({
            "provider": "anthropic",
            "api_key": "sk-ant",
            "temperature": 0.2,
            "max_tool_rounds": 3,
            "request_timeout": 60,
            "unknown_key": "ignored",
        }))

        cfg = load_config(config_path)
        assert cfg.provider == "anthropic"
        assert cfg.api_key == "sk-ant"
        assert cfg.temperature == 0.2
        assert cfg.max_tool_rounds == 3
        assert cfg.request_timeout == 60
        assert cfg.connection_test_timeout == 15

    def test_load_empty_yaml(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("")
        assert load_config(config_path) == EngineConfig()

    def test_non_mapping_yaml_uses_defaults(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- just\n- a list\n")
        assert load_config(config_path) == EngineConfig()

    def test_search_paths(self, tmp_path, monkeypatch):
        found = tmp_path / "quillstream.yaml"
        found.write_text(yaml.dump({"model": "from-search-path"}))
        monkeypatch.setattr(
            config_module, "_SEARCH_PATHS", [tmp_path / "missing.yaml", found],
        )
        assert load_config().model == "from-search-path"

    def test_no_search_path_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module, "_SEARCH_PATHS", [tmp_path / "missing.yaml"])
        assert load_config() == EngineConfig()
