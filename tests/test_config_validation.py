"""Tests for config loading and validation."""

import socket

import pytest
from pathlib import Path
from unittest.mock import patch

from claude_notify.config import (
    DEFAULT_COMMAND, DEFAULT_TIMEOUT_MS, Config, default_socket_path, load_config,
    validate_config,
)
from claude_notify.exceptions import ConfigValidationError

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


@pytest.fixture
def no_dotenv(monkeypatch):
    """Keep .env files and the real environment out of load_config."""
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
    with patch("claude_notify.config.load_dotenv"):
        yield


class TestValidateConfig:
    """Test validate_config function."""

    def test_valid_config_returns_empty_warnings(self):
        assert validate_config(Config(webhook_url=WEBHOOK)) == []

    def test_missing_webhook_raises_error(self):
        with pytest.raises(ConfigValidationError) as exc:
            validate_config(Config())
        assert "SLACK_WEBHOOK_URL" in str(exc.value)
        assert "--disable-notifications" in str(exc.value)

    def test_missing_webhook_ok_when_disabled(self):
        assert validate_config(Config(notifications_disabled=True)) == []

    def test_non_https_webhook_warns(self):
        warnings = validate_config(Config(webhook_url="http://localhost:8080/hook"))
        assert len(warnings) == 1
        assert "https" in warnings[0]

    def test_non_positive_timeout_raises_error(self):
        with pytest.raises(ConfigValidationError) as exc:
            validate_config(Config(webhook_url=WEBHOOK, timeout_ms=0))
        assert "timeout" in str(exc.value)

    def test_empty_command_raises_error(self):
        with pytest.raises(ConfigValidationError) as exc:
            validate_config(Config(webhook_url=WEBHOOK, command=""))
        assert "command" in str(exc.value)

    def test_socket_path_that_is_a_file_raises_error(self, tmp_path):
        regular = tmp_path / "not-a-socket"
        regular.write_text("x")
        with pytest.raises(ConfigValidationError) as exc:
            validate_config(Config(webhook_url=WEBHOOK, socket_path=regular))
        assert "not a socket" in str(exc.value)

    def test_existing_socket_is_accepted(self, tmp_path):
        path = tmp_path / "live.sock"
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(path))
            assert validate_config(Config(webhook_url=WEBHOOK, socket_path=path)) == []
        finally:
            sock.close()

    def test_all_errors_reported_together(self):
        with pytest.raises(ConfigValidationError) as exc:
            validate_config(Config(timeout_ms=-5, command=""))
        message = str(exc.value)
        assert "timeout" in message
        assert "SLACK_WEBHOOK_URL" in message
        assert "command" in message


class TestLoadConfig:
    """Test load_config precedence and parsing."""

    def test_defaults_without_file(self, tmp_path, no_dotenv):
        config = load_config(tmp_path / "missing.yaml")

        assert config.timeout_ms == DEFAULT_TIMEOUT_MS
        assert config.command == DEFAULT_COMMAND
        assert config.webhook_url is None
        assert config.bridge_enabled is False
        assert config.working_directory == Path.cwd()

    def test_reads_yaml_file(self, tmp_path, no_dotenv):
        path = tmp_path / "config.yaml"
        path.write_text(
            "timeout_ms: 30000\n"
            f"webhook_url: {WEBHOOK}\n"
            "debug: true\n"
            "command: claude-beta\n"
        )

        config = load_config(path)

        assert config.timeout_ms == 30000
        assert config.webhook_url == WEBHOOK
        assert config.debug is True
        assert config.command == "claude-beta"

    def test_env_webhook_beats_file(self, tmp_path, no_dotenv, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("webhook_url: https://example.com/from-file\n")
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://example.com/from-env")

        assert load_config(path).webhook_url == "https://example.com/from-env"

    def test_cli_overrides_beat_everything(self, tmp_path, no_dotenv, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("timeout_ms: 30000\nwebhook_url: https://example.com/from-file\n")
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://example.com/from-env")

        config = load_config(path, {
            "timeout_ms": 5000,
            "webhook_url": "https://example.com/from-cli",
            "debug": None,
        })

        assert config.timeout_ms == 5000
        assert config.webhook_url == "https://example.com/from-cli"
        assert config.debug is False

    def test_socket_path_implies_bridge(self, tmp_path, no_dotenv):
        config = load_config(tmp_path / "missing.yaml", {"socket_path": "~/notify.sock"})

        assert config.bridge_enabled is True
        assert config.socket_path == Path.home() / "notify.sock"

    def test_invalid_yaml_raises(self, tmp_path, no_dotenv):
        path = tmp_path / "config.yaml"
        path.write_text("timeout_ms: [unclosed\n")
        with pytest.raises(ConfigValidationError):
            load_config(path)

    def test_non_mapping_raises(self, tmp_path, no_dotenv):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigValidationError) as exc:
            load_config(path)
        assert "mapping" in str(exc.value)

    def test_non_integer_timeout_raises(self, tmp_path, no_dotenv):
        path = tmp_path / "config.yaml"
        path.write_text("timeout_ms: soon\n")
        with pytest.raises(ConfigValidationError) as exc:
            load_config(path)
        assert "timeout_ms" in str(exc.value)

    def test_quoted_boolean_raises(self, tmp_path, no_dotenv):
        """A quoted "false" must not silently switch notifications off."""
        path = tmp_path / "config.yaml"
        path.write_text('disable_notifications: "false"\n')
        with pytest.raises(ConfigValidationError) as exc:
            load_config(path)
        assert "disable_notifications" in str(exc.value)

    def test_command_args_from_file(self, tmp_path, no_dotenv):
        path = tmp_path / "config.yaml"
        path.write_text("command_args: ['--resume', '--verbose']\n")
        assert load_config(path).command_args == ["--resume", "--verbose"]

    def test_scalar_command_args_raises(self, tmp_path, no_dotenv):
        path = tmp_path / "config.yaml"
        path.write_text("command_args: --resume\n")
        with pytest.raises(ConfigValidationError) as exc:
            load_config(path)
        assert "command_args" in str(exc.value)

    def test_unknown_key_warns(self, tmp_path, no_dotenv, caplog):
        path = tmp_path / "config.yaml"
        path.write_text("telegram_token: abc\n")

        load_config(path)

        assert "telegram_token" in caplog.text


class TestDotenv:
    """.env files are read for real, not patched out."""

    @pytest.fixture
    def clean_env(self, tmp_path, monkeypatch):
        # setenv first so whatever load_dotenv writes is undone after the test
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "")
        monkeypatch.delenv("SLACK_WEBHOOK_URL")
        home = tmp_path / "home"
        home.mkdir()
        monkeypatch.setenv("HOME", str(home))
        return home

    def test_reads_dotenv_in_working_directory(self, tmp_path, clean_env, monkeypatch):
        project = tmp_path / "project"
        project.mkdir()
        (project / ".env").write_text("SLACK_WEBHOOK_URL=https://example.com/cwd\n")
        monkeypatch.chdir(project)

        config = load_config(tmp_path / "missing.yaml")

        assert config.webhook_url == "https://example.com/cwd"

    def test_reads_dotenv_in_home(self, tmp_path, clean_env, monkeypatch):
        (clean_env / ".env").write_text("SLACK_WEBHOOK_URL=https://example.com/home\n")
        empty = tmp_path / "empty"
        empty.mkdir()
        monkeypatch.chdir(empty)

        assert load_config(tmp_path / "missing.yaml").webhook_url == "https://example.com/home"


class TestConfigPaths:
    """Test derived paths."""

    def test_logs_live_in_working_directory(self, tmp_path):
        config = Config(working_directory=tmp_path)
        assert config.audit_log_path == tmp_path / "claude-notify-audit.log"
        assert config.debug_log_path == tmp_path / "claude-notify-debug.log"

    def test_default_socket_path_keyed_by_pid(self):
        path = default_socket_path(4242)
        assert path.name == "4242.sock"
        assert path.parent.name == "sessions"

    def test_delay_seconds(self):
        assert Config(timeout_ms=1500).delay_seconds == 1.5
