"""Dev-mode switches and troubleshooting flags read from debug.json."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

DEV_MODE_ENV_VAR = "SCROLLGUARD_DEV_MODE"
DEBUG_CONFIG_FILE = "debug.json"
LOG_RETENTION_MIN = 1
LOG_RETENTION_MAX = 20
LOG_RETENTION_DEFAULT = 5


def is_dev_mode(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    value = env.get(DEV_MODE_ENV_VAR)
    if value is None:
        return False
    token = value.strip().lower()
    if token in {"1", "true", "yes", "on"}:
        return True
    return False


@dataclass(frozen=True)
class DebugConfig:
    log_retention: int = LOG_RETENTION_DEFAULT
    trace_scroll: bool = False


def _coerce_log_retention(value: Any) -> int:
    if value is None:
        return LOG_RETENTION_DEFAULT
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        return LOG_RETENTION_DEFAULT
    if numeric <= 0:
        return LOG_RETENTION_MIN
    if numeric > LOG_RETENTION_MAX:
        return LOG_RETENTION_MAX
    return numeric


def load_debug_config(path: Path, *, enabled: bool) -> DebugConfig:
    """Read troubleshooting flags; release mode ignores the file entirely."""

    if not enabled:
        return DebugConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, OSError, json.JSONDecodeError):
        data = {}
    if not isinstance(data, dict):
        data = {}
    return DebugConfig(
        log_retention=_coerce_log_retention(data.get("log_retention")),
        trace_scroll=bool(data.get("trace_scroll", False)),
    )
