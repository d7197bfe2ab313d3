"""
Unit tests for application configuration.
"""

import logging

import pytest

from httpbind import AppConfig, configure_logging
from httpbind.__main__ import build_parser, main


class TestAppConfig:
    """Defaults, environment and validation."""

    def test_defaults(self):
        config = AppConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8888
        assert config.time_format == "%Y-%m-%d"
        assert config.log_format == "text"
        config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HTTPBIND_PORT", "9000")
        monkeypatch.setenv("HTTPBIND_UPLOAD_DIR", "/tmp/up")
        monkeypatch.setenv("HTTPBIND_LOG_LEVEL", "debug")
        monkeypatch.setenv("HTTPBIND_LOG_FORMAT", "JSON")

        config = AppConfig.from_env()

        assert config.port == 9000
        assert config.upload_dir == "/tmp/up"
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"
        assert config.log_file is None

    def test_from_env_bad_integer(self, monkeypatch):
        monkeypatch.setenv("HTTPBIND_PORT", "eighty")

        with pytest.raises(ValueError) as exc_info:
            AppConfig.from_env()

        assert "HTTPBIND_PORT" in str(exc_info.value)

    def test_with_overrides_ignores_none(self):
        config = AppConfig().with_overrides(port=9999, host=None)

        assert config.port == 9999
        assert config.host == "127.0.0.1"

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 70000},
        {"max_request_size": 0},
        {"max_memory_file_size": -1},
        {"upload_dir": ""},
        {"time_format": ""},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            AppConfig(**overrides).validate()

    def test_form_config(self):
        config = AppConfig(max_memory_file_size=10, max_request_size=100)

        assert config.form_config() == {"MAX_MEMORY_FILE_SIZE": 10, "MAX_BODY_SIZE": 100}


class TestConfigureLogging:
    """File handlers added from config."""

    def test_error_log_file(self, tmp_path):
        root = logging.getLogger()
        before = list(root.handlers)
        package_level = logging.getLogger("httpbind").level
        error_file = tmp_path / "errors.log"

        try:
            configure_logging(AppConfig(error_log_file=str(error_file)))
            added = [h for h in root.handlers if h not in before]

            assert any(h.level == logging.ERROR for h in added)
            logging.getLogger("httpbind.test").error("disk full")
            for h in added:
                h.flush()
            assert "disk full" in error_file.read_text()
        finally:
            for h in root.handlers[:]:
                if h not in before:
                    root.removeHandler(h)
                    h.close()
            logging.getLogger("httpbind").setLevel(package_level)


class TestCommandLine:
    """Argument parsing."""

    def test_parse_arguments(self):
        args = build_parser().parse_args(["--port", "8080", "-u", "/tmp/up", "--log-format", "json"])

        assert args.port == 8080
        assert args.upload_dir == "/tmp/up"
        assert args.log_format == "json"
        assert args.host is None

    def test_invalid_config_exits_2(self, capsys):
        assert main(["--port", "0"]) == 2
        assert "invalid configuration" in capsys.readouterr().err
