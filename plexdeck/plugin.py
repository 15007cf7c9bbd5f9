#!/usr/bin/env python3
# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Plexamp Deck Stream Deck plugin (plexdeck)

Shows the artwork of the track currently playing in Plexamp on every Stream
Deck key that carries the plugin's action.  Started by the Stream Deck
application with -port/-pluginUUID/-registerEvent/-info; logs to stdout.log
in the plugin directory (truncated on each start).

Lifetime:
  start     — connectivity check, default artwork, Stream Deck registration
  running   — sync loop task + Stream Deck event pump
  shutdown  — SIGTERM/SIGINT or socket close; cached thumbnails are purged
"""

import asyncio
import logging
import signal
import sys

import aiohttp

from .lib.config import cfg
from .lib.errors import StartupError
from .lib.streamdeck import LaunchArgs, StreamDeck, parse_launch_args
from .lib.surfaces import SurfaceRegistry
from .lib.sync_loop import SyncLoop
from .lib.thumbnail_cache import ThumbnailCache
from .players.plexamp import PlexampClient

LOG_FILE = "stdout.log"

logger = logging.getLogger("plexdeck")

# Events that need no action beyond acknowledging them
_QUIET_EVENTS = {"deviceDidConnect", "titleParametersDidChange", "keyDown", "keyUp"}


def configure_logging(path: str = LOG_FILE, level: int = logging.INFO):
    """Log to *path* in the working directory, truncating any previous run."""
    logging.basicConfig(
        filename=path,
        filemode="w",
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )


def log_level(name) -> int:
    """Numeric level for a config value; unknown names fall back to INFO."""
    if isinstance(name, int):
        return name
    level = logging.getLevelName(str(name).upper())
    if isinstance(level, int):
        return level
    logger.warning("Unknown logging.level %r, using INFO", name)
    return logging.INFO


class PlexampPlugin:
    """Owns the registry, cache, sync loop and Stream Deck socket for one run."""

    def __init__(self, launch: LaunchArgs):
        self.launch = launch
        self.registry = SurfaceRegistry()
        self.deck = StreamDeck(launch)
        self.cache: ThumbnailCache | None = None
        self.sync: SyncLoop | None = None
        self._http_session: aiohttp.ClientSession | None = None
        self._sync_task: asyncio.Task | None = None
        self._purged = False

    # ── Stream Deck events ──

    def handle_event(self, event: dict):
        name = event.get("event")
        context = event.get("context")
        if name == "willAppear" and context:
            self.registry.add(context)
        elif name == "willDisappear" and context:
            self.registry.remove(context)
        elif name in _QUIET_EVENTS:
            logger.debug("Event %s (%s)", name, context)
        else:
            logger.info("Unhandled event: %s", event)

    async def pump_events(self):
        async for event in self.deck.events():
            self.handle_event(event)

    # ── Lifecycle ──

    async def start(self):
        """Bring everything up. Raises StartupError on any fatal problem."""
        self._http_session = aiohttp.ClientSession()
        client = PlexampClient(
            self._http_session,
            plexamp_url=cfg("plexamp", "url", default="http://localhost:63460"),
            plex_url=cfg("plex", "url", default="http://192.168.1.100:32401"),
            timeout=float(cfg("http", "timeout", default=10)),
        )

        if cfg("startup", "verify_connections", default=True):
            await client.verify_connections()

        self.cache = ThumbnailCache(
            client,
            images_dir=cfg("images", "dir", default="images"),
            default_image=cfg("images", "default", default="plexamp.png"),
        )

        await self.deck.connect(self._http_session)
        logger.info("Stream Deck info: %s", self.deck.info)

        self.sync = SyncLoop(
            client, self.cache, self.registry, self.deck,
            interval=float(cfg("sync", "interval", default=1.0)),
        )
        self._sync_task = asyncio.create_task(self.sync.run())

    async def run(self):
        """Start, serve events until a signal or socket close, then shut down."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Windows event loops have no signal handlers
                pass
        try:
            await self.start()
            pump = asyncio.create_task(self.pump_events())
            stopper = asyncio.create_task(stop_event.wait())
            done, pending = await asyncio.wait(
                {pump, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                if task is pump and task.exception():
                    logger.error("Event pump failed: %s", task.exception())
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Stop the loop, close connections and purge cached thumbnails."""
        if self._sync_task:
            self._sync_task.cancel()
            try:
                await self._sync_task
            except (asyncio.CancelledError, Exception):
                pass
            self._sync_task = None

        try:
            await self.deck.close()
        except Exception as e:
            logger.warning("Error closing Stream Deck socket: %s", e)

        if self._http_session:
            await self._http_session.close()
            self._http_session = None

        if self.cache is not None and not self._purged:
            self._purged = True
            await self.cache.close()
            self.cache.purge_all()


async def main(argv: list[str] | None = None):
    plugin = PlexampPlugin(parse_launch_args(sys.argv[1:] if argv is None else argv))
    await plugin.run()


def cli():
    configure_logging()
    logger.info("Args: %s", sys.argv)
    logging.getLogger().setLevel(log_level(cfg("logging", "level", default="INFO")))
    try:
        asyncio.run(main())
    except StartupError as e:
        logger.error("Startup failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    cli()
