"""
Tests for observability — logging setup and level resolution.
"""

import logging
from pathlib import Path

import pytest

from provisioner.core.observability.logging_config import resolve_level, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    @pytest.mark.parametrize("flags,env,expected", [
        ((True, True, True), "ERROR", "DEBUG"),
        ((False, True, True), None, "INFO"),
        ((False, False, True), "DEBUG", "ERROR"),
        ((False, False, False), "INFO", "INFO"),
        ((False, False, False), None, "WARNING"),
    ])
    def test_precedence(self, flags, env, expected):
        assert resolve_level(*flags, env) == expected


class TestSetupLogging:
    def test_console_level(self):
        setup_logging(level="INFO")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.handlers[0].level == logging.INFO
        assert root.level == logging.INFO

    def test_unknown_level_falls_back(self):
        setup_logging(level="LOUD")
        assert logging.getLogger().handlers[0].level == logging.WARNING

    def test_file_handler_defaults_to_info(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "provision.log"
        setup_logging(level="ERROR", log_file=str(log_file))

        root = logging.getLogger()
        assert len(root.handlers) == 2
        assert root.level == logging.INFO

        logging.getLogger("provisioner.test").info("resuming at step 3")
        for handler in root.handlers:
            handler.flush()
        assert "resuming at step 3" in log_file.read_text()

    def test_file_level_override(self, tmp_path: Path):
        log_file = tmp_path / "provision.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_third_party_quieted(self):
        logging.getLogger("urllib3").setLevel(logging.DEBUG)
        setup_logging(level="INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_repeat_setup_replaces_handlers(self):
        setup_logging(level="INFO")
        setup_logging(level="DEBUG")
        assert len(logging.getLogger().handlers) == 1
