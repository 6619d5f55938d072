"""Tests for perfagent configuration system."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from perfagent.config import (
    DEFAULT_CONFIG,
    Config,
    ConfigError,
    ConfigSyntaxError,
    ConfigValidationError,
    DeliveryConfig,
    LoggingConfig,
    SamplingConfig,
    SentryConfig,
    deep_merge,
    expand_env_vars,
    get_config_path,
    load_config,
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep tests away from the real home directory and agent env vars."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
    for var in ("SERVER_URL", "LOGGING", "SENTRY_DSN", "PERFAGENT_CONFIG_PATH"):
        monkeypatch.delenv(var, raising=False)
    return home


def _write(path: Path, data: dict | str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else yaml.safe_dump(data))
    return path


class TestExpandEnvVars:
    """Tests for environment variable expansion."""

    def test_expand_simple_var(self) -> None:
        """Test expanding a simple environment variable."""
        with patch.dict(os.environ, {"TEST_VAR": "hello"}):
            assert expand_env_vars("${TEST_VAR}") == "hello"

    def test_expand_with_default(self) -> None:
        """Test ${VAR:-default} uses the default when unset."""
        assert expand_env_vars("${PERFAGENT_UNSET_VAR:-fallback}") == "fallback"

    def test_expand_empty_default(self) -> None:
        """Test ${VAR:-} expands to an empty string."""
        assert expand_env_vars("${PERFAGENT_UNSET_VAR:-}") == ""

    def test_unset_without_default_kept(self) -> None:
        """Test unset variables without default are left as written."""
        assert expand_env_vars("${PERFAGENT_UNSET_VAR}") == "${PERFAGENT_UNSET_VAR}"

    def test_nested_structures(self) -> None:
        """Test expansion recurses into dicts and lists."""
        with patch.dict(os.environ, {"A": "1"}):
            result = expand_env_vars({"x": ["${A}", {"y": "${A}"}], "z": 3})
        assert result == {"x": ["1", {"y": "1"}], "z": 3}


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_override(self) -> None:
        """Test nested keys are merged, not replaced wholesale."""
        base = {"sampling": {"interval": 60, "batch_size": 30}}
        merged = deep_merge(base, {"sampling": {"batch_size": 5}})

        assert merged == {"sampling": {"interval": 60, "batch_size": 5}}
        assert base["sampling"]["batch_size"] == 30


class TestModels:
    """Tests for the pydantic config models."""

    def test_defaults(self) -> None:
        """Test built-in defaults."""
        config = Config()

        assert config.sampling == SamplingConfig(interval=60.0, batch_size=30, include_network=True)
        assert config.delivery.server_url == "http://yourserver.com/api/monitor"
        assert config.delivery.compress is True
        assert config.logging == LoggingConfig(enabled=False, level="INFO", file="perf_monitor.log")
        assert config.sentry.active is False

    def test_batch_size_bounds(self) -> None:
        """Test batch size must be positive."""
        with pytest.raises(ValueError):
            SamplingConfig(batch_size=0)

    def test_server_url_scheme(self) -> None:
        """Test server_url must be http(s)."""
        with pytest.raises(ValueError):
            DeliveryConfig(server_url="ftp://collector")

    def test_level_case_insensitive(self) -> None:
        """Test log level names are normalized."""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_sentry_active_needs_dsn(self) -> None:
        """Test Sentry is only active with both flag and DSN."""
        assert SentryConfig(enabled=True).active is False
        assert SentryConfig(enabled=False, dsn="https://k@example.invalid/1").active is False
        assert SentryConfig(enabled=True, dsn="https://k@example.invalid/1").active is True


class TestGetConfigPath:
    """Tests for config file discovery."""

    def test_no_config(self) -> None:
        """Test None when nothing exists."""
        assert get_config_path() is None

    def test_custom_path_missing(self, tmp_path: Path) -> None:
        """Test an explicit missing path is an error."""
        with pytest.raises(FileNotFoundError):
            get_config_path(str(tmp_path / "missing.yaml"))

    def test_env_var_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test PERFAGENT_CONFIG_PATH is honoured."""
        path = _write(tmp_path / "env.yaml", {})
        monkeypatch.setenv("PERFAGENT_CONFIG_PATH", str(path))
        assert get_config_path() == path

    def test_env_var_missing_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a dangling PERFAGENT_CONFIG_PATH falls back to defaults."""
        monkeypatch.setenv("PERFAGENT_CONFIG_PATH", str(tmp_path / "nope.yaml"))
        assert get_config_path() is None

    def test_xdg_before_legacy(self, isolated_env: Path) -> None:
        """Test the XDG location wins over the legacy one."""
        xdg = _write(isolated_env / ".config" / "perfagent" / "config.yaml", {})
        _write(isolated_env / ".perfagent" / "config.yaml", {})
        assert get_config_path() == xdg

    def test_legacy_location(self, isolated_env: Path) -> None:
        """Test the legacy location is found."""
        legacy = _write(isolated_env / ".perfagent" / "config.yaml", {})
        assert get_config_path() == legacy


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self) -> None:
        """Test loading with no file gives the defaults."""
        config = load_config()
        assert config == Config()
        assert DEFAULT_CONFIG["sampling"]["batch_size"] == config.sampling.batch_size

    def test_server_url_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test SERVER_URL selects the collector endpoint."""
        monkeypatch.setenv("SERVER_URL", "https://collector.example/ingest")
        assert load_config().delivery.server_url == "https://collector.example/ingest"

    def test_logging_flag_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test LOGGING=true turns the log file on."""
        monkeypatch.setenv("LOGGING", "true")
        assert load_config().logging.enabled is True

    def test_sentry_dsn_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test SENTRY_DSN fills the DSN and an unset one means None."""
        assert load_config().sentry.dsn is None
        monkeypatch.setenv("SENTRY_DSN", "https://k@example.invalid/1")
        assert load_config().sentry.dsn == "https://k@example.invalid/1"

    def test_file_values(self, tmp_path: Path) -> None:
        """Test values from the file override defaults."""
        path = _write(tmp_path / "c.yaml", {"sampling": {"interval": 5, "batch_size": 50}})

        config = load_config(str(path))

        assert config.sampling.interval == 5.0
        assert config.sampling.batch_size == 50
        assert config.sampling.include_network is True

    def test_cli_overrides_win(self, tmp_path: Path) -> None:
        """Test CLI overrides beat the file."""
        path = _write(tmp_path / "c.yaml", {"sampling": {"batch_size": 50}, "delivery": {"compress": False}})

        config = load_config(str(path), cli_overrides={"sampling": {"batch_size": 3}})

        assert config.sampling.batch_size == 3
        assert config.delivery.compress is False

    def test_env_expansion_in_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ${VAR} references inside the file are expanded."""
        monkeypatch.setenv("COLLECTOR_HOST", "metrics.internal")
        path = _write(tmp_path / "c.yaml", {"delivery": {"server_url": "http://${COLLECTOR_HOST}/api"}})

        assert load_config(str(path)).delivery.server_url == "http://metrics.internal/api"

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file means defaults."""
        path = _write(tmp_path / "c.yaml", "")
        assert load_config(str(path)) == Config()

    def test_syntax_error(self, tmp_path: Path) -> None:
        """Test YAML syntax errors carry file and line."""
        path = _write(tmp_path / "c.yaml", "sampling:\n  interval: [1, 2\n")

        with pytest.raises(ConfigSyntaxError) as exc_info:
            load_config(str(path))

        assert exc_info.value.file_path == str(path)
        assert exc_info.value.line_number is not None
        assert isinstance(exc_info.value, ConfigError)

    def test_top_level_not_mapping(self, tmp_path: Path) -> None:
        """Test a file that is not a mapping is rejected."""
        path = _write(tmp_path / "c.yaml", "- just\n- a list\n")
        with pytest.raises(ConfigSyntaxError, match="mapping"):
            load_config(str(path))

    def test_unknown_key_suggestion(self, tmp_path: Path) -> None:
        """Test misspelled keys get a suggestion."""
        path = _write(tmp_path / "c.yaml", {"sampling": {"batchsize": 10}})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(str(path))

        assert "sampling.batchsize" in exc_info.value.message
        assert exc_info.value.suggestion == "Did you mean 'batch_size'?"

    def test_unknown_section_suggestion(self, tmp_path: Path) -> None:
        """Test misspelled sections get a suggestion."""
        path = _write(tmp_path / "c.yaml", {"delivry": {}})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(str(path))

        assert exc_info.value.suggestion == "Did you mean 'delivery'?"

    def test_out_of_range(self, tmp_path: Path) -> None:
        """Test range errors name the limit."""
        path = _write(tmp_path / "c.yaml", {"sampling": {"interval": 0.01}})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(str(path))

        assert "sampling.interval" in exc_info.value.message
        assert "at least" in (exc_info.value.suggestion or "")

    def test_bad_boolean(self, tmp_path: Path) -> None:
        """Test non-boolean flags are reported."""
        path = _write(tmp_path / "c.yaml", {"delivery": {"compress": "sometimes"}})

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(str(path))

        assert "delivery.compress" in exc_info.value.message

    def test_error_message_format(self) -> None:
        """Test the rendered message includes location and suggestion."""
        error = ConfigError("bad value", file_path="/etc/x.yaml", line_number=3, suggestion="fix it")
        text = str(error)

        assert text.startswith("Error in /etc/x.yaml line 3:")
        assert "bad value" in text
        assert "Suggestion: fix it" in text
