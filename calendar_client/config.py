"""Configuration system for calendar-client using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.calendar_client] section (project-level)
3. ./calendar_client.toml (project-level, explicit)
4. ~/.config/calendar_client/config.toml (user-level, overrides project)
5. Environment variables
6. Keyword arguments to ClientSettings (highest priority)

Environment variables use CALENDAR_CLIENT_ prefix with nested delimiter __.
Example: CALENDAR_CLIENT_API__BASE_URL, CALENDAR_CLIENT_CREDENTIALS__BACKEND
"""

from __future__ import annotations

import logging
import os
import sys

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


logger = logging.getLogger("calendar_client.config")


def _user_config_dir() -> Path:
    """Return the per-user configuration directory."""
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "~")).expanduser() / "calendar_client"
    return Path("~/.config/calendar_client").expanduser()


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    # Project-level pyproject.toml [tool.calendar_client] (lowest file priority)
    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    project_toml = Path("calendar_client.toml")
    if project_toml.exists():
        files.append(project_toml)

    user_config = _user_config_dir() / "config.toml"
    if user_config.exists():
        files.append(user_config)

    # Environment variable override for config file (highest file priority)
    env_config = os.environ.get("CALENDAR_CLIENT_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", config_file, exc)
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("calendar_client", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {
    "redis_url",
}

_REDACTED = "********"


class ApiSettings(BaseSettings):
    """Remote calendar API settings.

    Environment prefix: CALENDAR_CLIENT_API__
    Example: CALENDAR_CLIENT_API__BASE_URL=https://crm.example.com/api/v1.0
    """

    model_config = SettingsConfigDict(
        env_prefix="CALENDAR_CLIENT_API__",
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost/api/v1.0",
        description="Base URL every request path is resolved against",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout in seconds for each request",
    )
    user_agent: str = "calendar-client/1.0.0"
    accept_language: str = "en"

    login_path: str = "/login"
    refresh_path: str = "/auth/refresh"
    identity_path: str = "/identity"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended verbatim."""
        return v.rstrip("/")


class CredentialSettings(BaseSettings):
    """Credential persistence settings.

    Environment prefix: CALENDAR_CLIENT_CREDENTIALS__
    Example: CALENDAR_CLIENT_CREDENTIALS__BACKEND=keyring
    """

    model_config = SettingsConfigDict(
        env_prefix="CALENDAR_CLIENT_CREDENTIALS__",
        extra="ignore",
    )

    backend: Literal["memory", "file", "keyring", "redis"] = Field(
        default="file",
        description="Where the token pair is persisted between runs",
    )
    path: Path = Field(
        default_factory=lambda: _user_config_dir() / "credentials.json",
        description="Credential file location (file backend)",
    )
    service_name: str = Field(
        default="calendar-client",
        description="Keyring service name (keyring backend)",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (redis backend)",
    )
    prefix: str = Field(
        default="calendar_client",
        description="Redis key prefix (redis backend)",
    )
    profile: str = Field(
        default="default",
        description="Credential profile name, allows several logins side by side",
    )


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: CALENDAR_CLIENT_LOG__
    Example: CALENDAR_CLIENT_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="CALENDAR_CLIENT_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


_SECTIONS: list[tuple[str, str, str]] = [
    # (display name, attribute, env prefix)
    ("API", "api", "API"),
    ("Credentials", "credentials", "CREDENTIALS"),
    ("Logging", "log", "LOG"),
]

_SECTION_TYPES: dict[str, type[BaseSettings]] = {
    "api": ApiSettings,
    "credentials": CredentialSettings,
    "log": LogSettings,
}


def _build_section(
    section_cls: type[BaseSettings], file_values: dict[str, Any], explicit: dict[str, Any]
) -> BaseSettings:
    """Build one section: defaults < config files < environment < explicit values.

    File values are dropped for any field whose environment variable is set.
    """
    prefix = section_cls.model_config.get("env_prefix", "").upper()
    env_names = {name.upper() for name in os.environ}
    from_files = {
        key: value
        for key, value in file_values.items()
        if f"{prefix}{key.upper()}" not in env_names
    }
    return section_cls(**_deep_merge(from_files, explicit))


class ClientSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: CALENDAR_CLIENT__

    Configuration sources (in order of precedence):
    1. Built-in defaults
    2. pyproject.toml [tool.calendar_client] section
    3. ./calendar_client.toml (project-level)
    4. ~/.config/calendar_client/config.toml (user-level, overrides project)
    5. Environment variables
    6. Keyword arguments (highest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="CALENDAR_CLIENT__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    api: ApiSettings = Field(default_factory=ApiSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def __init__(self, **data: Any) -> None:
        file_config = _load_toml_config()
        for attr, section_cls in _SECTION_TYPES.items():
            value = data.get(attr) or {}
            if not isinstance(value, section_cls):
                data[attr] = _build_section(section_cls, file_config.get(attr, {}), value)
        super().__init__(**data)

    def _dump_sections(self) -> dict[str, Any]:
        """Dump all sections with sensitive fields excluded."""
        return self.model_dump(
            mode="json",
            exclude={attr: _SENSITIVE_FIELDS for _, attr, _ in _SECTIONS},
        )

    def _redacted_fields(self, attr_name: str) -> list[str]:
        """Sensitive field names defined on a section."""
        section_cls = type(getattr(self, attr_name))
        return sorted(_SENSITIVE_FIELDS & section_cls.model_fields.keys())

    def to_toml(self) -> str:
        """Export settings as TOML string."""
        lines = [
            "# calendar-client configuration",
            "# Generated by: calendar-client config --toml",
            "",
        ]
        all_data = self._dump_sections()

        for _, attr_name, _ in _SECTIONS:
            lines.append(f"[{attr_name}]")
            for field_name, field_value in all_data.get(attr_name, {}).items():
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                elif isinstance(field_value, str):
                    value_str = f'"{field_value}"'
                else:
                    value_str = str(field_value)
                lines.append(f"{field_name} = {value_str}")
            lines.extend(f'{rn} = "{_REDACTED}"' for rn in self._redacted_fields(attr_name))
            lines.append("")

        return "\n".join(lines)

    def to_env(self) -> str:
        """Export settings as shell environment variables."""
        lines = [
            "# calendar-client environment variables",
            "# Generated by: calendar-client config --env",
            "",
        ]
        all_data = self._dump_sections()

        for _, attr_name, env_prefix in _SECTIONS:
            for field_name, field_value in all_data.get(attr_name, {}).items():
                env_name = f"CALENDAR_CLIENT_{env_prefix}__{field_name.upper()}"
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                else:
                    value_str = str(field_value)
                lines.append(f'export {env_name}="{value_str}"')
            for redacted_name in self._redacted_fields(attr_name):
                env_name = f"CALENDAR_CLIENT_{env_prefix}__{redacted_name.upper()}"
                lines.append(f'export {env_name}="{_REDACTED}"')

        return "\n".join(lines)

    def show(self) -> str:
        """Format settings as a readable table."""
        lines = ["calendar-client configuration", "=" * 60, ""]
        all_data = self._dump_sections()

        for display_name, attr_name, _ in _SECTIONS:
            lines.append(f"\n{display_name}")
            lines.append("-" * 40)
            for field_name, field_value in all_data.get(attr_name, {}).items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:20} = {value_str}")
            lines.extend(f"  {rn:20} = {_REDACTED}" for rn in self._redacted_fields(attr_name))

        return "\n".join(lines)


def config_sources() -> list[Path]:
    """List the configuration files that currently contribute settings."""
    return _find_config_files()


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return ClientSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()


def reload_settings() -> ClientSettings:
    """Reload settings from all sources."""
    clear_settings()
    return get_settings()
