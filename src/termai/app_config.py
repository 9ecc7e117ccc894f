from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from termai.agent_config import ProviderSettings
from termai.errors import ProviderConfigError
from termai.llm_models import DEFAULT_MODELS, SUPPORTED_PROVIDERS

CONFIG_FILE_NAME = ".termai.json"

_API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
}


@dataclass
class AppConfig:
    model: str
    max_tokens: int
    title_max_tokens: int
    data_directory: str
    working_directory: str | None
    max_tool_result_chars: int
    enable_bash: bool
    auto_approve_permissions: bool
    mcp_server_configs: dict
    providers: dict[str, ProviderSettings] = field(default_factory=dict)
    log_level: str = "INFO"
    log_consumers: list | None = None

    @property
    def db_path(self) -> str:
        return str(Path(self.data_directory) / "termai.db")


def load_json_config(home: Path | None = None, cwd: Path | None = None) -> dict:
    """Load ``~/.termai.json`` then ``./.termai.json``; local keys override global ones."""
    merged: dict = {}
    for directory in (home or Path.home(), cwd or Path.cwd()):
        config_path = directory / CONFIG_FILE_NAME
        if not config_path.exists():
            continue
        with open(config_path) as f:
            data = json.load(f)
        logger.debug(f"Loaded config from {config_path}")
        merged = _merge(merged, data)
    return merged


def _merge(base: dict, override: dict) -> dict:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def resolve_providers(config: dict, environ: dict[str, str] | None = None) -> dict[str, ProviderSettings]:
    """Provider credentials from config, falling back to the usual API key env vars.

    A provider with a key is enabled unless the config disables it explicitly.
    """
    environ = os.environ if environ is None else environ
    configured = config.get("Providers", {}) or {}
    providers: dict[str, ProviderSettings] = {}
    for name in SUPPORTED_PROVIDERS:
        entry = configured.get(name, {}) or {}
        api_key = str(entry.get("ApiKey") or environ.get(_API_KEY_ENV_VARS[name], "")).strip()
        if not api_key:
            continue
        providers[name] = ProviderSettings(
            api_key=api_key,
            enabled=_to_bool(entry.get("Enabled"), default=True),
            base_url=entry.get("BaseUrl") or None,
        )
    return providers


def _default_model(providers: dict[str, ProviderSettings]) -> str:
    for name in SUPPORTED_PROVIDERS:
        settings = providers.get(name)
        if settings is not None and settings.enabled:
            return DEFAULT_MODELS[name]
    raise ProviderConfigError(
        "No provider is configured. Set ANTHROPIC_API_KEY, OPENAI_API_KEY or GROQ_API_KEY, "
        f"or add Providers to {CONFIG_FILE_NAME}."
    )


def parse_app_config(config: dict, environ: dict[str, str] | None = None) -> AppConfig:
    providers = resolve_providers(config, environ)
    model = str(config.get("Model", "")).strip() or _default_model(providers)
    return AppConfig(
        model=model,
        max_tokens=int(config.get("MaxTokens", 5000)),
        title_max_tokens=int(config.get("TitleMaxTokens", 80)),
        data_directory=str(config.get("DataDirectory", ".termai")),
        working_directory=config.get("WorkingDirectory"),
        max_tool_result_chars=int(config.get("MaxToolResultChars", 40_000)),
        enable_bash=_to_bool(config.get("EnableBash", False), default=False),
        auto_approve_permissions=_to_bool(config.get("AutoApprovePermissions", False), default=False),
        mcp_server_configs=config.get("McpServers", {}),
        providers=providers,
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )
