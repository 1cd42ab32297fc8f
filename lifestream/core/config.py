"""Configuration loading for lifestream."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "lifestream.json"
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"
CONFIG_ENV_VAR = "LIFESTREAM_CONFIG"
PROVIDER_KEY_ENV_VAR = "LIFESTREAM_PROVIDER_API_KEY"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class LlamaCppConfig(_Frozen):
    base_url: str = Field(min_length=1)
    model: str = Field(min_length=1)
    temperature: float = Field(default=0.3, ge=0, le=2)
    api_key: Optional[str] = None


class ProviderConfig(_Frozen):
    api_key: str = Field(min_length=1)
    base_url: str = Field(min_length=1)
    model_id: str = Field(min_length=1)
    temperature: Optional[float] = Field(default=None, ge=0, le=2)


class LLMConfig(_Frozen):
    provider: Literal["llamacpp", "provider"] = "llamacpp"


class PipelineConfig(_Frozen):
    """Size budgets for the summarizer. Heuristics, not protocol constants."""

    direct_threshold_chars: int = Field(default=18000, gt=0)
    max_chars_per_call: int = Field(default=12000, gt=0)
    entry_overhead_chars: int = Field(default=64, ge=0)
    request_timeout: float = Field(default=120.0, gt=0)


class ServiceConfig(_Frozen):
    host: str = "127.0.0.1"
    port: int = Field(default=8787, gt=0)


class AppConfig(_Frozen):
    vault_path: Path
    user_id: str = "local"
    llm: LLMConfig = LLMConfig()
    llamacpp: Optional[LlamaCppConfig] = None
    provider: Optional[ProviderConfig] = None
    pipeline: PipelineConfig = PipelineConfig()
    service: ServiceConfig = ServiceConfig()

    @model_validator(mode="after")
    def _check_selected_backend(self) -> AppConfig:
        if self.llm.provider == "llamacpp" and self.llamacpp is None:
            raise ValueError("llamacpp section is required when llm.provider=llamacpp")
        if self.llm.provider == "provider" and self.provider is None:
            raise ValueError("provider section is required when llm.provider=provider")
        return self


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists (does not overwrite)."""
    if not _ENV_FILE.exists():
        return
    for line in _ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if value and not os.environ.get(key):
            os.environ[key] = value


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ${VAR} references in config values."""
    if isinstance(obj, str):
        for key, value in os.environ.items():
            obj = obj.replace(f"${{{key}}}", value)
        return obj
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def _fill_provider_key(raw: dict[str, Any]) -> dict[str, Any]:
    """Fall back to the environment when the provider key is missing or unresolved."""
    provider = raw.get("provider")
    if not isinstance(provider, dict):
        return raw
    key = str(provider.get("api_key") or "")
    if not key or key.startswith("${"):
        env_key = os.environ.get(PROVIDER_KEY_ENV_VAR, "")
        if env_key:
            raw = {**raw, "provider": {**provider, "api_key": env_key}}
    return raw


def parse_config(raw: dict[str, Any]) -> AppConfig:
    """Validate an already-expanded config dict."""
    try:
        return AppConfig.model_validate(_fill_provider_key(raw))
    except ValidationError as exc:
        raise ConfigError(f"Invalid config: {exc}") from exc


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    if config_path:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load, expand and validate the configuration file."""
    _load_dotenv()
    path = resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}. Copy config/lifestream.example.json and edit it."
        )
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse config at {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config at {path} must be a JSON object")
    return parse_config(_expand_env_vars(raw))
