from __future__ import annotations

import logging

import pytest

from scrollguard_shared import logging_utils


@pytest.fixture
def clean_logger():
    logger = logging.getLogger(logging_utils.ROOT_LOGGER_NAME)
    yield logger
    for handler in list(logger.handlers):
        if getattr(handler, "_scrollguard_handler", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_resolve_logs_dir_prefers_env_override(tmp_path, monkeypatch):
    target = tmp_path / "custom-logs"
    monkeypatch.setenv(logging_utils.LOG_DIR_ENV_VAR, str(target))

    assert logging_utils.resolve_logs_dir() == target
    assert target.is_dir()


def test_resolve_logs_dir_uses_xdg_state(tmp_path, monkeypatch):
    monkeypatch.delenv(logging_utils.LOG_DIR_ENV_VAR, raising=False)
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))

    assert logging_utils.resolve_logs_dir() == tmp_path / "state" / "ScrollGuard" / "logs"


def test_rotating_handler_keeps_retention_minus_one_backups(tmp_path):
    handler = logging_utils.build_rotating_file_handler(tmp_path, retention=4)
    try:
        assert handler.backupCount == 3
        assert handler.baseFilename.endswith(logging_utils.LOG_FILENAME)
    finally:
        handler.close()


def test_configure_logging_is_idempotent(tmp_path, monkeypatch, clean_logger):
    monkeypatch.delenv(logging_utils.PROPAGATE_ENV_VAR, raising=False)

    logging_utils.configure_logging(debug_enabled=False, log_dir=tmp_path)
    logger = logging_utils.configure_logging(debug_enabled=True, log_dir=tmp_path)

    owned = [handler for handler in logger.handlers if getattr(handler, "_scrollguard_handler", False)]
    assert len(owned) == 1
    assert logger.level == logging.DEBUG
    assert logger.propagate is False

    logging.getLogger("ScrollGuard.Content.Coordinator").info("hello from the coordinator")
    owned[0].flush()
    assert "hello from the coordinator" in (tmp_path / logging_utils.LOG_FILENAME).read_text(encoding="utf-8")


def test_propagation_can_be_enabled_from_env(tmp_path, monkeypatch, clean_logger):
    monkeypatch.setenv(logging_utils.PROPAGATE_ENV_VAR, "1")

    logger = logging_utils.configure_logging(debug_enabled=False, log_dir=tmp_path)

    assert logger.propagate is True
    assert logger.level == logging.INFO
