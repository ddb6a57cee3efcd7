"""
config/settings.py — Jarvis Runtime Settings

Merges config.yaml (defaults/structure) with .env (secrets).
Pydantic-powered — all fields are validated and typed.

  - Field validators reject bad values at parse time (unknown provider,
    out-of-range temperature, unknown interpreter strategy, bad log level)
  - validate_all() performs cross-field startup validation and raises
    ConfigError with a numbered, human-readable list of every problem found
  - load_settings() respects the JARVIS_CONFIG env var as a fallback when no
    explicit config_path argument is given
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(Exception):
    """Raised by validate_all() when one or more config problems are found."""


_VALID_PROVIDERS = {"openai", "ollama"}
_VALID_STRATEGIES = {"greedy", "balanced"}
_VALID_BACKENDS = {"sqlite", "memory"}
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# ─────────────────────────────────────────────────────────────────────────────
# Sub-models
# ─────────────────────────────────────────────────────────────────────────────

class AssistantConfig(BaseModel):
    name: str = "Jarvis"
    version: str = "0.1.0"
    user_id: str = "local"
    # Speech needs a SpeechSynthesizer injected into the session; none ships by default.
    voice_enabled: bool = False

    @field_validator("name", "user_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("assistant.name and assistant.user_id must not be empty")
        return v.strip()


class LLMRetryConfig(BaseModel):
    """Exponential backoff config for transient LLM errors."""
    max_attempts: int = 2
    base_delay: float = 0.5
    max_delay: float = 5.0

    @field_validator("max_attempts")
    @classmethod
    def _positive_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("llm.retry.max_attempts must be >= 1")
        return v


class LLMConfig(BaseModel):
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 500
    timeout_seconds: float = 30.0
    retry: LLMRetryConfig = Field(default_factory=LLMRetryConfig)
    fallback_providers: List[str] = Field(default_factory=list)

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in _VALID_PROVIDERS:
            raise ValueError(
                f"llm.provider '{v}' is not supported. "
                f"Supported: {sorted(_VALID_PROVIDERS)}"
            )
        return v

    @field_validator("temperature")
    @classmethod
    def _valid_temperature(cls, v: float) -> float:
        if not (0.0 <= v <= 2.0):
            raise ValueError("llm.temperature must be between 0.0 and 2.0")
        return v

    @field_validator("max_tokens")
    @classmethod
    def _positive_tokens(cls, v: int) -> int:
        if v < 1:
            raise ValueError("llm.max_tokens must be >= 1")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("llm.timeout_seconds must be > 0")
        return v


class InterpreterConfig(BaseModel):
    # greedy   = first '{' .. last '}' containing "action" (wire-compatible)
    # balanced = minimal well-formed object with a top-level "action" key
    strategy: str = "greedy"

    @field_validator("strategy")
    @classmethod
    def _known_strategy(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in _VALID_STRATEGIES:
            raise ValueError(
                f"interpreter.strategy must be one of {sorted(_VALID_STRATEGIES)}, got '{v}'"
            )
        return v


class StoreConfig(BaseModel):
    backend: str = "sqlite"
    sqlite_path: str = "./data/sqlite/jarvis.db"

    @field_validator("backend")
    @classmethod
    def _known_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in _VALID_BACKENDS:
            raise ValueError(
                f"store.backend must be one of {sorted(_VALID_BACKENDS)}, got '{v}'"
            )
        return v


class AuditConfig(BaseModel):
    # False keeps the historical behaviour: every turn is recorded success=true.
    record_upstream_failure: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_dir: str = "./data/logs"
    max_file_size_mb: int = 100
    backup_count: int = 5
    console_output: bool = False
    json_format: bool = True

    @field_validator("level")
    @classmethod
    def _valid_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"logging.level '{v}' is not valid. "
                f"Must be one of: {sorted(_VALID_LOG_LEVELS)}"
            )
        return upper


# ─────────────────────────────────────────────────────────────────────────────
# Root Settings
# ─────────────────────────────────────────────────────────────────────────────

class Settings(BaseSettings):
    """
    Jarvis runtime settings.

    Priority (highest to lowest):
      1. Values passed explicitly (from config.yaml via load_settings)
      2. Environment variables
      3. .env file
      4. Field defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # -- Secrets / endpoints from .env ---------------------------------------
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None, alias="OPENAI_BASE_URL")
    ollama_base_url: str = Field(default="http://localhost:11434", alias="OLLAMA_BASE_URL")

    # -- Structured config (from config.yaml) --------------------------------
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    interpreter: InterpreterConfig = Field(default_factory=InterpreterConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # -- Convenience properties ----------------------------------------------

    @property
    def assistant_name(self) -> str:
        return self.assistant.name

    @property
    def log_level(self) -> str:
        return self.logging.level.upper()

    @property
    def log_dir(self) -> Path:
        return Path(self.logging.log_dir)

    @property
    def ollama_base_url_v1(self) -> str:
        return self.ollama_base_url.rstrip("/") + "/v1"

    def validate_all(self) -> None:
        """
        Full startup validation. Raises ConfigError listing every problem found.

        Pydantic field validators catch type/value errors at parse time; this
        method catches cross-field problems they can't see (API key presence
        for the chosen provider and for every fallback provider).
        """
        errors: list[str] = []

        key_map = {
            "openai": ("OPENAI_API_KEY", self.openai_api_key),
        }

        provider = self.llm.provider
        if provider in key_map:
            env_name, value = key_map[provider]
            if not value:
                errors.append(
                    f"LLM provider '{provider}' requires {env_name} to be set "
                    f"in your environment or .env file."
                )

        for fp in self.llm.fallback_providers:
            if fp not in _VALID_PROVIDERS:
                errors.append(
                    f"llm.fallback_providers contains unknown provider '{fp}'. "
                    f"Supported: {sorted(_VALID_PROVIDERS)}"
                )
                continue
            if fp in key_map:
                env_name, value = key_map[fp]
                if not value:
                    errors.append(
                        f"Fallback provider '{fp}' requires {env_name} but it "
                        f"is not set. Remove '{fp}' from llm.fallback_providers "
                        f"or add the key to .env."
                    )

        if self.store.backend == "sqlite" and not self.store.sqlite_path.strip():
            errors.append("store.sqlite_path must not be empty when store.backend is 'sqlite'.")

        if errors:
            numbered = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(errors))
            raise ConfigError(
                f"\n\nJarvis startup failed — {len(errors)} configuration "
                f"problem(s) found:\n\n{numbered}\n\n"
                f"Fix the issues above in config/config.yaml or your .env file "
                f"and restart.\n"
            )


# ─────────────────────────────────────────────────────────────────────────────
# Loader + singleton
# ─────────────────────────────────────────────────────────────────────────────

_singleton: Optional[Settings] = None
_singleton_lock = threading.Lock()

_KNOWN_SECTIONS = {"assistant", "llm", "interpreter", "store", "audit", "logging"}


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config format in {path}, expected a mapping.")
    return data


def _resolve_config_path(config_path: str | Path | None) -> Path:
    """
    Resolve the config file path with this priority:
      1. Explicit config_path argument (from --config CLI flag)
      2. JARVIS_CONFIG environment variable
      3. Default: config/config.yaml
    """
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("JARVIS_CONFIG")
    if env_path:
        return Path(env_path)
    return Path("config/config.yaml")


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings by merging config.yaml with environment variables."""
    global _singleton
    yaml_data = _load_yaml(_resolve_config_path(config_path))
    init_kwargs = {k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS}

    instance = Settings(**init_kwargs)
    with _singleton_lock:
        _singleton = instance
    return instance


def get_settings() -> Settings:
    """
    Return the global Settings singleton, loading from the default config
    path on first use.
    """
    global _singleton
    if _singleton is not None:
        return _singleton
    with _singleton_lock:
        if _singleton is None:
            yaml_data = _load_yaml(_resolve_config_path(None))
            _singleton = Settings(**{k: v for k, v in yaml_data.items() if k in _KNOWN_SECTIONS})
        return _singleton
