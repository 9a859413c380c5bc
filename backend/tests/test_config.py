"""Unit tests for settings loading and logging setup."""

from __future__ import annotations

import logging

import pytest

from docmigrate.core.config import Settings, load_settings
from docmigrate.core.exceptions import ConfigurationError
from docmigrate.core.logging import LogContext, get_logger, setup_logging


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(environ={})
        assert settings == Settings()
        assert settings.batch_size == 500
        assert settings.fail_fast is True
        assert settings.dry_run is False

    def test_environment_overrides(self):
        settings = load_settings(environ={
            "MONGO_URI": "mongodb://db:27017",
            "DB_NAME": "ashravi-prod",
            "MIGRATION_BATCH_SIZE": "250",
            "MIGRATION_FAIL_FAST": "false",
            "MIGRATION_DRY_RUN": "yes",
        })
        assert settings.mongo_uri == "mongodb://db:27017"
        assert settings.db_name == "ashravi-prod"
        assert settings.batch_size == 250
        assert settings.fail_fast is False
        assert settings.dry_run is True

    @pytest.mark.parametrize("value", ["0", "-5", "many"])
    def test_invalid_batch_size(self, value):
        with pytest.raises(ConfigurationError):
            load_settings(environ={"MIGRATION_BATCH_SIZE": value})

    def test_reads_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DB_NAME", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("DB_NAME=from-dotenv\n")

        settings = load_settings(env_file=env_file)

        assert settings.db_name == "from-dotenv"
        monkeypatch.delenv("DB_NAME", raising=False)


class TestLogging:
    def test_setup_is_idempotent(self):
        logger = setup_logging("DEBUG")
        handlers = list(logger.handlers)
        assert setup_logging(logging.INFO).handlers == handlers
        assert logger.level == logging.INFO

    def test_log_context(self, caplog):
        logger = get_logger("logcontext.tests")
        with caplog.at_level(logging.INFO, logger="logcontext.tests"):
            with LogContext(logger, "migration", id="m_1"):
                pass
        assert "Starting migration (id=m_1)" in caplog.text
        assert "Completed migration (id=m_1)" in caplog.text

    def test_log_context_failure(self, caplog):
        logger = get_logger("logcontext.tests")
        with caplog.at_level(logging.INFO, logger="logcontext.tests"):
            with pytest.raises(RuntimeError):
                with LogContext(logger, "migration"):
                    raise RuntimeError("boom")
        assert "Failed migration: boom" in caplog.text
