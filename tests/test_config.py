"""Tests for core/config.py — loading, env expansion and validation."""

from __future__ import annotations

import json

import pytest


def _write(tmp_path, data) -> str:
    path = tmp_path / "lifestream.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return str(path)


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        from lifestream.core.config import load_config

        config = load_config(_write(tmp_path, {
            "vault_path": str(tmp_path / "vault"),
            "llamacpp": {"base_url": "http://127.0.0.1:8080", "model": "qwen"},
        }))

        assert config.llm.provider == "llamacpp"
        assert config.user_id == "local"
        assert config.pipeline.direct_threshold_chars == 18000
        assert config.pipeline.max_chars_per_call == 12000
        assert config.pipeline.entry_overhead_chars == 64
        assert config.service.port == 8787
        assert config.llamacpp.temperature == 0.3

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        from lifestream.core.config import load_config

        monkeypatch.setenv("LS_TEST_KEY", "sk-from-env")
        config = load_config(_write(tmp_path, {
            "vault_path": str(tmp_path),
            "llm": {"provider": "provider"},
            "provider": {"api_key": "${LS_TEST_KEY}", "base_url": "https://x", "model_id": "m"},
        }))

        assert config.provider.api_key == "sk-from-env"

    def test_provider_key_fallback(self, tmp_path, monkeypatch):
        from lifestream.core.config import PROVIDER_KEY_ENV_VAR, load_config

        monkeypatch.setenv(PROVIDER_KEY_ENV_VAR, "sk-fallback")
        config = load_config(_write(tmp_path, {
            "vault_path": str(tmp_path),
            "llm": {"provider": "provider"},
            "provider": {"api_key": "${LS_UNSET_VAR_XYZ}", "base_url": "https://x", "model_id": "m"},
        }))

        assert config.provider.api_key == "sk-fallback"

    def test_env_path_override(self, tmp_path, monkeypatch):
        from lifestream.core.config import CONFIG_ENV_VAR, load_config

        path = _write(tmp_path, {
            "vault_path": str(tmp_path),
            "user_id": "alice",
            "llamacpp": {"base_url": "http://h", "model": "m"},
        })
        monkeypatch.setenv(CONFIG_ENV_VAR, path)

        assert load_config().user_id == "alice"

    def test_missing_file(self, tmp_path):
        from lifestream.core.config import load_config

        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        from lifestream.core.config import load_config
        from lifestream.core.errors import ConfigError

        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, "{not json"))

    def test_selected_backend_section_required(self, tmp_path):
        from lifestream.core.config import load_config
        from lifestream.core.errors import ConfigError

        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, {"vault_path": str(tmp_path), "llm": {"provider": "provider"}}))

    def test_rejects_bad_budget(self, tmp_path):
        from lifestream.core.config import parse_config
        from lifestream.core.errors import ConfigError

        with pytest.raises(ConfigError):
            parse_config({
                "vault_path": str(tmp_path),
                "llamacpp": {"base_url": "http://h", "model": "m"},
                "pipeline": {"max_chars_per_call": 0},
            })

    def test_config_is_immutable(self, tmp_path):
        from pydantic import ValidationError

        from lifestream.core.config import parse_config

        config = parse_config({
            "vault_path": str(tmp_path),
            "llamacpp": {"base_url": "http://h", "model": "m"},
        })
        with pytest.raises(ValidationError):
            config.user_id = "other"
