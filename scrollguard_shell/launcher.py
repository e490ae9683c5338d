from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QUrl
from PyQt6.QtWidgets import QApplication

from scrollguard_content.sites.registry import default_registry
from scrollguard_shared.debug_config import DEBUG_CONFIG_FILE, DEV_MODE_ENV_VAR, is_dev_mode, load_debug_config
from scrollguard_shared.logging_utils import configure_logging
from scrollguard_shared.settings_store import SettingsStore, default_settings_path
from scrollguard_shell.browser_window import BrowserWindow

DEFAULT_START_URL = "https://x.com/home"

_LOGGER = logging.getLogger("ScrollGuard.Shell")


def resolve_settings_path(arg_path: Optional[str]) -> Path:
    if arg_path:
        return Path(arg_path).expanduser().resolve()
    return default_settings_path().resolve()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="ScrollGuard browser shell")
    parser.add_argument("--url", default=DEFAULT_START_URL, help="Page to open on start")
    parser.add_argument("--settings", help="Path to scrollguard_settings.json")
    parser.add_argument("--debug", action="store_true", help=f"Verbose logging and debug.json flags (same as {DEV_MODE_ENV_VAR}=1)")
    args = parser.parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    debug_enabled = bool(args.debug) or is_dev_mode()
    debug_config_path = settings_path.parent / DEBUG_CONFIG_FILE
    debug_config = load_debug_config(debug_config_path, enabled=debug_enabled)
    configure_logging(debug_enabled=debug_enabled, retention=debug_config.log_retention)

    _LOGGER.info("Starting ScrollGuard (pid=%s)", os.getpid())
    _LOGGER.debug(
        "Settings at %s; debug config %s: retention=%d trace_scroll=%s",
        settings_path,
        debug_config_path,
        debug_config.log_retention,
        debug_config.trace_scroll,
    )

    store = SettingsStore(settings_path, site_ids=default_registry().site_ids())
    app = QApplication(sys.argv[:1])
    window = BrowserWindow(store, start_url=QUrl(args.url), debug_config=debug_config)
    window.resize(1200, 900)
    window.show()

    exit_code = app.exec()
    _LOGGER.info("ScrollGuard exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":
    raise SystemExit(main())
