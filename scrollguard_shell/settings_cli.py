#!/usr/bin/env python3
"""Inspect and edit ScrollGuard settings from the command line."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from scrollguard_content.sites.registry import default_registry
from scrollguard_shared.settings_store import (
    THRESHOLD_MAX,
    THRESHOLD_MIN,
    Settings,
    SettingsStore,
    default_settings_path,
)


class SettingsCliError(ValueError):
    """Bad command-line input."""


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Show or change ScrollGuard settings")
    parser.add_argument("--settings", type=Path, default=None, help="Path to scrollguard_settings.json")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("show", help="Print the effective settings")
    commands.add_parser("reset", help="Delete stored settings and fall back to defaults")
    for name in ("enable", "disable"):
        sub = commands.add_parser(name, help=f"{name.capitalize()} blocking on a site")
        sub.add_argument("--site", default="x", help="Site id (default: x)")

    threshold = commands.add_parser("threshold", help=f"Screens before blocking ({THRESHOLD_MIN}-{THRESHOLD_MAX})")
    threshold.add_argument("value", help="Number of screens")

    feed = commands.add_parser("feed", help="Toggle an optional feed")
    feed.add_argument("key", help="Optional feed key, e.g. search or profile")
    feed.add_argument("state", choices=("on", "off"))
    feed.add_argument("--site", default="x", help="Site id (default: x)")
    return parser.parse_args(argv)


def _parse_threshold(raw: str) -> float:
    try:
        return float(raw)
    except ValueError as exc:
        raise SettingsCliError(f"threshold must be a number, got {raw!r}") from exc


def _require_site(site_id: str) -> None:
    if site_id not in default_registry().site_ids():
        known = ", ".join(default_registry().site_ids())
        raise SettingsCliError(f"unknown site {site_id!r} (known: {known})")


def apply_command(store: SettingsStore, args: argparse.Namespace) -> Settings:
    command = args.command
    if command == "show":
        return store.load()
    if command == "reset":
        return store.clear()
    current = store.load()
    if command in ("enable", "disable"):
        _require_site(args.site)
        return store.save(current.with_site(args.site, enabled=command == "enable"))
    if command == "threshold":
        return store.save(current.with_threshold(_parse_threshold(args.value)))
    if command == "feed":
        _require_site(args.site)
        descriptor = default_registry().get_descriptor_by_name(args.site)
        keys = descriptor.optional_feed_keys() if descriptor is not None else ()
        if args.key not in keys:
            raise SettingsCliError(f"unknown feed {args.key!r} for {args.site} (known: {', '.join(keys) or 'none'})")
        feeds = dict(current.site(args.site).optional_feeds)
        feeds[args.key] = args.state == "on"
        return store.save(current.with_site(args.site, optional_feeds=feeds))
    raise SettingsCliError(f"unknown command {command!r}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    path = args.settings.expanduser().resolve() if args.settings else default_settings_path()
    store = SettingsStore(path, site_ids=default_registry().site_ids())
    try:
        settings = apply_command(store, args)
    except SettingsCliError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    print(json.dumps(settings.to_json(), indent=2, sort_keys=True))
    if args.command == "reset":
        print(f"Reset {path}")
    elif args.command != "show":
        print(f"Saved {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
