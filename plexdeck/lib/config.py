# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for the Plexamp Deck plugin.

Loads a single JSON config file.  Search order:
  1. $PLEXDECK_CONFIG              (explicit override)
  2. config.json                    (plugin working directory)
  3. ../../config/default.json      (repo fallback)

Usage:
    from plexdeck.lib.config import cfg

    plexamp_url = cfg("plexamp", "url", default="http://localhost:63460")
    interval    = cfg("sync", "interval", default=1.0)
    images      = cfg("images")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None


def _search_paths() -> list[str]:
    paths = []
    override = os.environ.get("PLEXDECK_CONFIG")
    if override:
        paths.append(override)
    paths.append("config.json")
    paths.append(os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"))
    return paths


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    for section in ("plexamp", "plex"):
        url = (config.get(section) or {}).get("url")
        if not url:
            logger.warning("Config %s: missing %s.url, using built-in default", path, section)
        elif not url.startswith(("http://", "https://")):
            logger.warning("Config %s: %s.url '%s' is not an http(s) URL", path, section, url)
    interval = (config.get("sync") or {}).get("interval")
    if interval is not None and (not isinstance(interval, (int, float)) or interval <= 0):
        logger.warning("Config %s: sync.interval must be a positive number, got %r", path, interval)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found, using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("plexamp")                   → config["plexamp"]
    cfg("plexamp", "url")            → config["plexamp"]["url"]
    cfg("sync", "interval", default=1.0)  → config["sync"]["interval"] or 1.0
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
