"""
StealthChat - Configuration & Logging Tests
=============================================
Unit tests for settings, error formatting and structured logging.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from stealth_chat.config import (
    StealthSettings,
    get_settings,
    reload_settings,
    override_settings,
    validate_config,
)
from stealth_chat.errors import (
    InvalidAnnouncementError,
    RecipientNotRegisteredError,
    StealthChatException,
    format_validation_error,
)
from stealth_chat import logging_setup
from stealth_chat.logging_setup import (
    JSONFormatter,
    PerformanceLogger,
    configure_logging,
    get_logger,
    setup_logging,
    short_hex,
)
from stealth_chat.services.stealth_service import StealthService


class TestSettings:
    """Test StealthSettings"""

    def test_defaults(self):
        config = StealthSettings()

        assert config.curve_tag == "eth"
        assert config.announcement_scheme_id == 1
        assert config.scanner_background is True
        assert config.scanner_queue_size == 0

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("STEALTHCHAT_SCANNER_BACKGROUND", "false")
        monkeypatch.setenv("STEALTHCHAT_LOG_LEVEL", "debug")

        config = StealthSettings()

        assert config.scanner_background is False
        assert config.log_level == "DEBUG"

    def test_reload_settings(self, monkeypatch):
        monkeypatch.setenv("STEALTHCHAT_CURVE_TAG", "base")

        try:
            assert reload_settings().curve_tag == "base"
            assert get_settings() is get_settings()
        finally:
            monkeypatch.delenv("STEALTHCHAT_CURVE_TAG")
            reload_settings()

    @pytest.mark.parametrize("kwargs", [
        {"curve_tag": "ETH"},
        {"curve_tag": "e:th"},
        {"curve_tag": ""},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
        {"scanner_queue_size": -1},
        {"key_derivation_message": ""},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValidationError):
            override_settings(**kwargs)

    def test_validate_config(self):
        assert validate_config(override_settings()) == (True, [])

        valid, errors = validate_config(
            override_settings(scanner_background=False, scanner_queue_size=8)
        )
        assert not valid
        assert len(errors) == 1

    def test_json_round_trip(self, tmp_path):
        config = override_settings(curve_tag="base", scanner_slow_batch_ms=50)
        path = tmp_path / "config.json"
        path.write_text(config.to_json())

        loaded = StealthSettings.from_file(path)

        assert loaded.curve_tag == "base"
        assert loaded.scanner_slow_batch_ms == 50


class TestErrors:
    """Test gerarchia eccezioni"""

    def test_format_validation_error(self):
        error = format_validation_error("viewTag", 300, "integer 0-255")

        assert isinstance(error, InvalidAnnouncementError)
        assert error.code == "INVALID_ANNOUNCEMENT"
        assert error.details["field"] == "viewTag"
        assert "viewTag" in str(error)

    def test_to_dict(self):
        error = RecipientNotRegisteredError("0xabc")

        assert isinstance(error, StealthChatException)
        assert error.to_dict() == {
            "error": "RECIPIENT_NOT_REGISTERED",
            "message": "No stealth meta-address registered for 0xabc",
            "details": {"identity": "0xabc"},
        }

    def test_default_code(self):
        assert StealthChatException("boom").code == "StealthChatException"


class TestLogging:
    """Test logging strutturato"""

    def test_json_formatter(self):
        record = logging.LogRecord(
            "stealthchat.scanner", logging.INFO, __file__, 10, "Batch scanned", None, None
        )
        record.extra_data = {"count": 3}

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "stealthchat.scanner"
        assert data["extra_data"] == {"count": 3}
        assert data["timestamp"].endswith("Z")

    def test_file_logging(self, tmp_path):
        setup_logging(log_level="DEBUG", log_to_file=True, log_dir=tmp_path, enable_console=False)
        try:
            logger = get_logger("tests")
            logger.set_context(session="s1")
            logger.info("hello", extra_data={"n": 1})

            for handler in logging.getLogger("stealthchat").handlers:
                handler.flush()

            line = (tmp_path / "stealthchat.log").read_text().strip().splitlines()[-1]
            data = json.loads(line)

            assert data["message"] == "hello"
            assert data["extra_data"] == {"session": "s1", "n": 1}
        finally:
            root = logging.getLogger("stealthchat")
            for handler in list(root.handlers):
                handler.close()
            root.handlers.clear()

    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("STEALTHCHAT_LOG_LEVEL", "DEBUG")
        root = logging.getLogger("stealthchat")
        previous = root.level

        try:
            configure_logging(StealthSettings(enable_console=False), force=True)
            assert root.level == logging.DEBUG

            # già configurato: senza force i nuovi settings non vengono applicati
            configure_logging(StealthSettings(log_level="ERROR", enable_console=False))
            assert root.level == logging.DEBUG
        finally:
            root.handlers.clear()
            root.setLevel(previous)

    def test_service_applies_log_settings(self, monkeypatch, alice_signer, client):
        monkeypatch.setattr(logging_setup, "LOGGER", None)
        root = logging.getLogger("stealthchat")
        previous = root.level

        try:
            settings = override_settings(scanner_background=False, log_level="WARNING", enable_console=False)
            StealthService(alice_signer, client, settings=settings)

            assert root.level == logging.WARNING
            assert logging_setup.LOGGER is not None
        finally:
            root.handlers.clear()
            root.setLevel(previous)

    def test_performance_logger(self):
        logger = get_logger("tests")

        with PerformanceLogger(logger, "noop", threshold_ms=1000) as perf:
            pass

        assert perf.elapsed_ms is not None
        assert perf.elapsed_ms < 1000

    def test_short_hex(self):
        assert short_hex("0x" + "ab" * 20) == "0xabababab..."
        assert short_hex(b"\x01\x02") == "0x0102"
