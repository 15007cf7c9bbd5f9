# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SyncLoop — keeps every visible Stream Deck key showing the current artwork.

Each tick:
  1. poll Plexamp for the music timeline
  2. resolve the thumbnail cache entry (fetching on first sight of a key)
  3. push the entry's identifier to every key in the surface registry

A tick that finds nothing to show (poll failed, nothing playing, artwork
could not be fetched or written) leaves the keys untouched, so the last good
artwork stays up.  Ticks fire on a fixed interval; a tick that is still busy
when the next one is due causes that next tick to be skipped.
"""

import asyncio
import logging

from .errors import PersistError, TransientQueryError

log = logging.getLogger(__name__)

IDLE = "idle"
DISPLAYING = "displaying"


class SyncLoop:
    def __init__(self, client, cache, registry, deck, interval: float = 1.0):
        self._client = client
        self._cache = cache
        self._registry = registry
        self._deck = deck
        self.interval = interval
        self.state: str = IDLE
        self.current_image: str | None = None
        self.skipped_ticks = 0
        self._tick_task: asyncio.Task | None = None

    async def tick(self) -> str | None:
        """Run one poll/resolve/broadcast pass. Returns the pushed image id."""
        try:
            snapshot = await self._client.get_snapshot()
        except TransientQueryError as e:
            log.debug("Status poll failed: %s", e)
            self.state = IDLE
            return None

        if snapshot is None:
            self.state = IDLE
            return None

        try:
            path = await self._cache.resolve(snapshot)
        except (TransientQueryError, PersistError) as e:
            log.error("Error resolving thumbnail for %s: %s", snapshot.cache_key, e)
            self.state = IDLE
            return None

        image = self._cache.display_id(path)
        if image != self.current_image:
            log.info("Track changed: %s — %s", snapshot.artist or "—", snapshot.title or "—")
        self.current_image = image
        self.state = DISPLAYING

        await self.broadcast(image)
        return image

    async def broadcast(self, image: str):
        """Send *image* to every visible key; one failing key does not stop the rest."""
        for context in self._registry.members():
            try:
                await self._deck.set_image(context, image)
            except Exception as e:
                log.warning("setImage failed for %s: %s", context, e)

    async def run(self):
        """Fire a tick every ``interval`` seconds until cancelled."""
        log.info("Sync loop started (interval=%.1fs)", self.interval)
        try:
            while True:
                if self._tick_task is not None and not self._tick_task.done():
                    self.skipped_ticks += 1
                    log.debug("Previous tick still running, skipping")
                else:
                    self._tick_task = asyncio.create_task(self._guarded_tick())
                await asyncio.sleep(self.interval)
        finally:
            if self._tick_task is not None and not self._tick_task.done():
                self._tick_task.cancel()
                try:
                    await self._tick_task
                except asyncio.CancelledError:
                    pass
            log.info("Sync loop stopped")

    async def _guarded_tick(self):
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Error in sync tick: %s", e)
