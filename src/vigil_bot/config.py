"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class TelegramConfig(BaseModel):
    token: str
    drop_pending_updates: bool = True


class AnthropicConfig(BaseModel):
    api_key: str
    base_url: Optional[str] = None
    max_retries: int = 3
    timeout: int = 120


class BackendConfig(BaseModel):
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.7
    system_prompt: str = ""
    history_limit: int = 20


class RenderConfig(BaseModel):
    max_length: int = 4000
    default_source_label: str = "Vybe Network"
    explorer_url: str = "https://solscan.io"


class DebugConfig(BaseModel):
    debug_mode: bool = False  # append stack traces to user-visible errors
    show_full_json: bool = False  # echo the raw backend result


class StorageConfig(BaseModel):
    db_path: str = "./data/vigil_bot.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    data_dir: str = "./data"
    telegram: TelegramConfig
    anthropic: Optional[AnthropicConfig] = None
    backend: BackendConfig = Field(default_factory=BackendConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")

_DEBUG_ENV_FLAGS = {
    "DEBUG_MODE": "debug_mode",
    "SHOW_FULL_JSON_RESPONSE": "show_full_json",
}


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def _apply_debug_env(data: dict) -> None:
    """Let DEBUG_MODE / SHOW_FULL_JSON_RESPONSE override the file values."""
    debug = data.setdefault("debug", {}) or {}
    for env_name, field_name in _DEBUG_ENV_FLAGS.items():
        value = os.environ.get(env_name)
        if value is not None:
            debug[field_name] = value.strip().lower() == "true"
    data["debug"] = debug


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # First pass: extract data_dir for self-referencing
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = raw_data.get("data_dir", "./data")
    data_dir = _interpolate_env_vars(data_dir)

    # Second pass: interpolate all env vars
    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}
    _apply_debug_env(data)

    return AppConfig(**data)
