from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "ScrollGuard"
LOG_DIR_ENV_VAR = "SCROLLGUARD_LOG_DIR"
PROPAGATE_ENV_VAR = "SCROLLGUARD_PROPAGATE_LOGS"
LOG_FILENAME = "scrollguard.log"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def resolve_logs_dir(log_dir_name: str = "ScrollGuard") -> Path:
    """
    Resolve the directory to store ScrollGuard logs.

    Strategy:
    - Use SCROLLGUARD_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    candidates = []

    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        try:
            candidates.append(Path(env_override).expanduser())
        except Exception:
            pass

    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.append(state_home / log_dir_name / "logs")
    candidates.append(cache_home / log_dir_name / "logs")
    candidates.append(Path.cwd() / "logs" / log_dir_name)

    for target in candidates:
        try:
            target.mkdir(parents=True, exist_ok=True)
            return target
        except Exception:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str = LOG_FILENAME,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler with sane defaults."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_logging(*, debug_enabled: bool, retention: int = 5, log_dir: Optional[Path] = None) -> logging.Logger:
    """Attach a rotating file handler to the ScrollGuard logger tree (idempotent)."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(resolve_log_level(debug_enabled))
    logger.propagate = os.environ.get(PROPAGATE_ENV_VAR, "").lower() in {"1", "true", "yes", "on"}
    for existing in list(logger.handlers):
        if getattr(existing, "_scrollguard_handler", False):
            logger.removeHandler(existing)
            existing.close()
    target_dir = log_dir if log_dir is not None else resolve_logs_dir()
    handler = build_rotating_file_handler(
        target_dir,
        retention=retention,
        formatter=logging.Formatter(LOG_FORMAT),
    )
    handler._scrollguard_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
