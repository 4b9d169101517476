"""
Tests for Configuration
=======================

Test suite for NewsQueueSettings and load_settings with environment
overrides.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from newsqueue.config.settings import (
    LogLevel,
    NewsQueueSettings,
    TelegramSettings,
    load_settings,
)
from newsqueue.utils.exceptions import ConfigurationError


@pytest.fixture
def isolated_paths(tmp_path, monkeypatch):
    """Point database and log files into a temporary directory."""
    monkeypatch.setenv("NEWSQUEUE_DATABASE__PATH", str(tmp_path / "data" / "test.db"))
    monkeypatch.setenv("NEWSQUEUE_LOGGING__FILE_PATH", str(tmp_path / "logs" / "test.log"))
    return tmp_path


class TestSettings:
    """Test suite for settings loading."""

    def test_defaults(self, monkeypatch):
        """Test built-in defaults without environment overrides."""
        monkeypatch.delenv("NEWSQUEUE_DEBUG", raising=False)
        monkeypatch.delenv("NEWSQUEUE_TELEGRAM__BOT_TOKEN", raising=False)

        settings = NewsQueueSettings(_env_file=None)

        assert settings.database.pool_size == 5
        assert settings.scheduler.max_workers == 4
        assert settings.scheduler.seconds_per_minute == 60.0
        assert settings.scheduler.announce_start is False
        assert settings.telegram.bot_token is None
        assert settings.logging.level == LogLevel.INFO
        assert settings.get_effective_log_level() == "INFO"

    def test_nested_environment_overrides(self, monkeypatch):
        """Test that NEWSQUEUE_SECTION__FIELD variables override defaults."""
        monkeypatch.setenv("NEWSQUEUE_SCHEDULER__MAX_WORKERS", "8")
        monkeypatch.setenv("NEWSQUEUE_EXTRACTION__REQUEST_TIMEOUT", "12")
        monkeypatch.setenv("NEWSQUEUE_LOGGING__LEVEL", "WARNING")
        monkeypatch.setenv("NEWSQUEUE_SCHEDULER__ANNOUNCE_START", "true")

        settings = NewsQueueSettings(_env_file=None)

        assert settings.scheduler.max_workers == 8
        assert settings.scheduler.announce_start is True
        assert settings.extraction.request_timeout == 12
        assert settings.logging.level == LogLevel.WARNING

    def test_debug_forces_debug_level(self, monkeypatch):
        """Test that debug mode overrides the configured level."""
        monkeypatch.setenv("NEWSQUEUE_DEBUG", "true")

        assert NewsQueueSettings(_env_file=None).get_effective_log_level() == "DEBUG"

    def test_load_settings_creates_directories(self, isolated_paths):
        """Test that validation prepares database and log directories."""
        settings = load_settings(env_file=None)

        assert (isolated_paths / "data").is_dir()
        assert (isolated_paths / "logs").is_dir()
        assert settings.telegram.bot_token.endswith("_test")

    def test_load_settings_from_env_file(self, isolated_paths, monkeypatch):
        """Test loading values from a dotenv file."""
        # Registered with monkeypatch so the value load_dotenv exports is undone
        monkeypatch.setenv("NEWSQUEUE_SCHEDULER__SECONDS_PER_MINUTE", "60")
        monkeypatch.delenv("NEWSQUEUE_SCHEDULER__SECONDS_PER_MINUTE")
        env_file = isolated_paths / ".env"
        env_file.write_text("NEWSQUEUE_SCHEDULER__SECONDS_PER_MINUTE=0.5\n", encoding="utf-8")

        settings = load_settings(env_file=str(env_file))

        assert settings.scheduler.seconds_per_minute == 0.5

    def test_invalid_value_is_configuration_error(self, isolated_paths, monkeypatch):
        """Test that invalid values surface as ConfigurationError."""
        monkeypatch.setenv("NEWSQUEUE_SCHEDULER__MAX_WORKERS", "0")

        with pytest.raises(ConfigurationError):
            load_settings(env_file=None)


class TestTelegramSettings:
    """Test bot token validation."""

    def test_valid_token(self):
        token = "123456789:ABCdefGHIjklMNOpqrSTUvwxYZ"
        assert TelegramSettings(bot_token=token).bot_token == token

    def test_test_token_allowed(self):
        assert TelegramSettings(bot_token="fake_test").bot_token == "fake_test"

    @pytest.mark.parametrize("token", ["short", "no-colon-in-this-long-token", "a:b:c:dddddddddddddddddddd"])
    def test_invalid_token(self, token):
        with pytest.raises(PydanticValidationError):
            TelegramSettings(bot_token=token)
