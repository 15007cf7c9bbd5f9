# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
ThumbnailCache — per-track artwork files for the Stream Deck keys.

Each entry is ``<images_dir>/thumb_<rating key>_<version>.png`` where version
is the track's updatedAt (or addedAt) timestamp.  Both parts are
percent-encoded with `~` as the escape character, so distinct keys always
get distinct file names.  An entry is written once, the first time its key
is resolved, and reused without network access for every later tick.
Nothing is evicted while the plugin runs; ``purge_all()`` removes every
entry at shutdown and never touches the bundled default artwork, which
lives outside the ``thumb_*`` namespace.

Fetcher contract (PlexampClient satisfies it):

    async def fetch_thumbnail(self, thumb: str) -> bytes: ...
"""

import asyncio
import glob
import logging
import os
import urllib.parse
from concurrent.futures import ThreadPoolExecutor

from .errors import PersistError, StartupError

log = logging.getLogger(__name__)

ENTRY_PREFIX = "thumb_"
ENTRY_SUFFIX = ".png"
# A lone escape character; encoded parts only ever contain "~XX"
NO_VERSION = "~"


def _encode(part: str) -> str:
    """Filesystem-safe, reversible encoding of one key part.

    Output alphabet is [A-Za-z0-9.-] plus "~XX" escapes, so "_" (the part
    separator) never appears and no two inputs share an encoding.
    """
    quoted = urllib.parse.quote(part, safe="")
    return quoted.replace("~", "%7E").replace("_", "%5F").replace("%", "~")


def _write_entry(path: str, data: bytes) -> None:
    """Write *data* to *path* atomically (temp file + rename)."""
    tmp = os.path.join(os.path.dirname(path), f".{os.path.basename(path)}.tmp")
    try:
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except OSError:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise


class ThumbnailCache:
    def __init__(self, fetcher, images_dir: str = "images",
                 default_image: str = "plexamp.png"):
        self._fetcher = fetcher
        self.images_dir = images_dir
        self.default_path = os.path.join(images_dir, default_image)
        try:
            with open(self.default_path, "rb") as f:
                self._default_data = f.read()
        except OSError as e:
            raise StartupError(f"default artwork missing: {self.default_path}: {e}") from e
        os.makedirs(images_dir, exist_ok=True)
        self._miss_lock = asyncio.Lock()
        # Disk writes run off the event loop; one worker keeps them ordered
        self._write_executor = ThreadPoolExecutor(max_workers=1)
        self.hits = 0
        self.misses = 0
        self.fetches = 0

    @property
    def default_data(self) -> bytes:
        return self._default_data

    def filename_for(self, snapshot) -> str:
        rating_key, version = snapshot.cache_key
        version_part = NO_VERSION if version is None else _encode(version)
        name = f"{ENTRY_PREFIX}{_encode(rating_key)}_{version_part}{ENTRY_SUFFIX}"
        return os.path.join(self.images_dir, name)

    @staticmethod
    def display_id(path: str) -> str:
        """Image identifier for Stream Deck: the entry path without ``.png``."""
        if path.endswith(ENTRY_SUFFIX):
            return path[:-len(ENTRY_SUFFIX)]
        return path

    async def resolve(self, snapshot) -> str:
        """Return the entry path for *snapshot*, creating it on first use.

        Raises FetchError if the artwork download fails and PersistError if
        the entry cannot be written.
        """
        path = self.filename_for(snapshot)
        if os.path.exists(path):
            self.hits += 1
            return path

        async with self._miss_lock:
            # Another caller may have filled the entry while we waited
            if os.path.exists(path):
                self.hits += 1
                return path
            self.misses += 1

            data = None
            if snapshot.thumb:
                self.fetches += 1
                data = await self._fetcher.fetch_thumbnail(snapshot.thumb)
            if not data:
                log.debug("No artwork for %s, using default", snapshot.cache_key)
                data = self._default_data

            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(self._write_executor, _write_entry, path, data)
            except OSError as e:
                raise PersistError(f"could not write {path}: {e}") from e

            log.info("Cached artwork %s (%d bytes)", path, len(data))
            return path

    async def close(self):
        """Wait for in-flight writes to land. Call before ``purge_all()``.

        A cancelled ``resolve`` stops awaiting its write, but the worker thread
        still finishes it; draining here keeps such a late entry from
        surviving the purge.
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_executor.shutdown, True)

    def entries(self) -> list[str]:
        return sorted(glob.glob(os.path.join(self.images_dir, f"{ENTRY_PREFIX}*{ENTRY_SUFFIX}")))

    def purge_all(self) -> int:
        """Delete every cache entry. Best effort: failures are only logged."""
        removed = 0
        for path in self.entries():
            try:
                os.remove(path)
                removed += 1
            except OSError as e:
                log.warning("Could not remove %s: %s", path, e)
        log.info("Purged %d cached thumbnails", removed)
        return removed
