"""Tests for configuration classes.

Tests ClientSettings and its sections, TOML layering and env overrides.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pydantic import ValidationError

from calendar_client.config import (
    ApiSettings,
    ClientSettings,
    CredentialSettings,
    LogSettings,
    clear_settings,
    config_sources,
    get_settings,
    reload_settings,
)


class TestApiSettings:
    """Tests for ApiSettings."""

    def test_defaults(self) -> None:
        """Endpoint paths default to the service's routes."""
        settings = ApiSettings()
        assert settings.login_path == "/login"
        assert settings.refresh_path == "/auth/refresh"
        assert settings.identity_path == "/identity"
        assert settings.timeout == 30.0

    def test_trailing_slash_stripped(self) -> None:
        """The base URL is normalized."""
        assert ApiSettings(base_url="https://crm.example.com/api/").base_url == (
            "https://crm.example.com/api"
        )

    def test_timeout_must_be_positive(self) -> None:
        """A zero timeout is rejected."""
        with pytest.raises(ValidationError):
            ApiSettings(timeout=0)

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """CALENDAR_CLIENT_API__ variables override defaults."""
        monkeypatch.setenv("CALENDAR_CLIENT_API__BASE_URL", "https://env.example.com/v2/")
        monkeypatch.setenv("CALENDAR_CLIENT_API__TIMEOUT", "5")
        settings = ApiSettings()
        assert settings.base_url == "https://env.example.com/v2"
        assert settings.timeout == 5.0


class TestCredentialSettings:
    """Tests for CredentialSettings."""

    def test_default_backend_is_file(self, tmp_path: Path) -> None:
        """Credentials go to a file under the user config dir by default."""
        settings = CredentialSettings()
        assert settings.backend == "file"
        assert settings.path.name == "credentials.json"
        assert str(tmp_path) in str(settings.path)

    def test_unknown_backend_rejected(self) -> None:
        """Only known backends validate."""
        with pytest.raises(ValidationError):
            CredentialSettings(backend="etcd")

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """CALENDAR_CLIENT_CREDENTIALS__ variables override defaults."""
        monkeypatch.setenv("CALENDAR_CLIENT_CREDENTIALS__BACKEND", "keyring")
        monkeypatch.setenv("CALENDAR_CLIENT_CREDENTIALS__PROFILE", "work")
        settings = CredentialSettings()
        assert (settings.backend, settings.profile) == ("keyring", "work")


class TestLogSettings:
    """Tests for LogSettings."""

    def test_default_level(self) -> None:
        """Logging is quiet by default."""
        assert LogSettings().level == "WARNING"

    def test_invalid_level(self) -> None:
        """Unknown level names are rejected."""
        with pytest.raises(ValidationError):
            LogSettings(level="LOUD")


class TestTomlLayering:
    """Tests for config file discovery and precedence."""

    def test_project_toml(self, tmp_path: Path) -> None:
        """./calendar_client.toml is read."""
        (tmp_path / "calendar_client.toml").write_text(
            '[api]\nbase_url = "https://project.example.com"\n', encoding="utf-8"
        )
        assert ClientSettings().api.base_url == "https://project.example.com"

    def test_pyproject_section(self, tmp_path: Path) -> None:
        """[tool.calendar_client] in pyproject.toml is read."""
        (tmp_path / "pyproject.toml").write_text(
            '[tool.calendar_client.credentials]\nbackend = "memory"\n', encoding="utf-8"
        )
        assert ClientSettings().credentials.backend == "memory"

    def test_user_config_overrides_project(self, tmp_path: Path) -> None:
        """The user config file wins over the project file."""
        (tmp_path / "calendar_client.toml").write_text(
            '[log]\nlevel = "INFO"\n', encoding="utf-8"
        )
        user_dir = tmp_path / ".config" / "calendar_client"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text('[log]\nlevel = "DEBUG"\n', encoding="utf-8")

        assert ClientSettings().log.level == "DEBUG"

    def test_config_file_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """CALENDAR_CLIENT_CONFIG_FILE adds an explicit config file."""
        explicit = tmp_path / "explicit.toml"
        explicit.write_text("[api]\ntimeout = 3\n", encoding="utf-8")
        monkeypatch.setenv("CALENDAR_CLIENT_CONFIG_FILE", str(explicit))

        assert ClientSettings().api.timeout == 3.0
        assert config_sources() == [explicit]

    def test_keyword_arguments_win(self, tmp_path: Path) -> None:
        """Explicit keyword data overrides files, keeping other file values."""
        (tmp_path / "calendar_client.toml").write_text(
            '[api]\nbase_url = "https://file.example.com"\nuser_agent = "file-agent"\n',
            encoding="utf-8",
        )
        settings = ClientSettings(api={"base_url": "https://kw.example.com"})
        assert settings.api.base_url == "https://kw.example.com"
        assert settings.api.user_agent == "file-agent"

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """An environment variable beats the file value for the same field."""
        (tmp_path / "calendar_client.toml").write_text(
            '[api]\nbase_url = "http://from-toml"\nuser_agent = "file-agent"\n',
            encoding="utf-8",
        )
        monkeypatch.setenv("CALENDAR_CLIENT_API__BASE_URL", "http://from-env")

        settings = ClientSettings()
        assert settings.api.base_url == "http://from-env"
        assert settings.api.user_agent == "file-agent"
        assert reload_settings().api.base_url == "http://from-env"

    def test_env_overrides_user_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Environment variables beat the user config file too."""
        user_dir = tmp_path / ".config" / "calendar_client"
        user_dir.mkdir(parents=True)
        (user_dir / "config.toml").write_text('[log]\nlevel = "DEBUG"\n', encoding="utf-8")
        monkeypatch.setenv("CALENDAR_CLIENT_LOG__LEVEL", "ERROR")

        assert ClientSettings().log.level == "ERROR"

    def test_keyword_arguments_beat_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Explicit keyword data outranks both files and the environment."""
        (tmp_path / "calendar_client.toml").write_text(
            '[api]\nbase_url = "http://from-toml"\n', encoding="utf-8"
        )
        monkeypatch.setenv("CALENDAR_CLIENT_API__BASE_URL", "http://from-env")

        settings = ClientSettings(api={"base_url": "http://from-kw"})
        assert settings.api.base_url == "http://from-kw"

    def test_invalid_toml_is_ignored(self, tmp_path: Path) -> None:
        """An unparseable file is skipped."""
        (tmp_path / "calendar_client.toml").write_text("[api\n", encoding="utf-8")
        assert ClientSettings().api.base_url == "http://localhost/api/v1.0"

    def test_no_sources(self) -> None:
        """A clean directory contributes no files."""
        assert config_sources() == []


class TestExport:
    """Tests for TOML/env/table export."""

    def test_toml_has_sections(self) -> None:
        """to_toml writes one table per section."""
        output = ClientSettings().to_toml()
        for section in ("[api]", "[credentials]", "[log]"):
            assert section in output

    def test_redis_url_is_redacted(self) -> None:
        """The Redis URL never appears in any export."""
        settings = ClientSettings(credentials={"redis_url": "redis://:hunter2@host/0"})
        for output in (settings.to_toml(), settings.to_env(), settings.show()):
            assert "hunter2" not in output
            assert "********" in output

    def test_show_truncates_long_values(self) -> None:
        """Long values are shortened in the table."""
        settings = ClientSettings(api={"user_agent": "x" * 80})
        assert "x" * 47 + "..." in settings.show()


class TestSettingsCache:
    """Tests for the cached global settings."""

    def test_get_settings_is_cached(self) -> None:
        """get_settings returns the same instance until cleared."""
        assert get_settings() is get_settings()

    def test_reload_picks_up_changes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """reload_settings rebuilds from current sources."""
        first = get_settings()
        monkeypatch.setenv("CALENDAR_CLIENT_LOG__LEVEL", "ERROR")
        assert get_settings().log.level == first.log.level

        assert reload_settings().log.level == "ERROR"
        clear_settings()
        assert get_settings() is not first
