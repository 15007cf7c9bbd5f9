# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Plexamp player client (status poll + thumbnail fetch).

Plexamp HTTP API (port 63460, XML responses):
  GET /player/timeline/poll?wait=0&includeMetadata=1&commandID=1
      — MediaContainer with one Timeline per media type (music, video, photo)

Plex Media Server (port 32400/32401):
  GET <thumb>      — artwork bytes, e.g. /library/metadata/355914/thumb/1724958934
  GET /identity    — cheap reachability check

Both calls are single request/response with no retry; the sync loop's next
tick is the only recovery mechanism.
"""

import asyncio
import logging
from dataclasses import dataclass
from xml.etree import ElementTree

import aiohttp

from ..lib.errors import FetchError, StartupError, StatusQueryError

logger = logging.getLogger(__name__)

TIMELINE_PATH = "/player/timeline/poll?wait=0&includeMetadata=1&commandID=1"
IDENTITY_PATH = "/identity"


@dataclass(frozen=True)
class PlaybackSnapshot:
    """The music timeline of one Plexamp poll."""

    rating_key: str
    version: str | None = None
    thumb: str | None = None
    state: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""

    @property
    def cache_key(self) -> tuple[str, str | None]:
        return (self.rating_key, self.version)


def _attr(el: ElementTree.Element | None, name: str) -> str | None:
    """Attribute value, with missing and empty both mapped to None."""
    if el is None:
        return None
    value = el.get(name)
    return value if value else None


def parse_timeline(xml_text: str) -> PlaybackSnapshot | None:
    """Parse a timeline poll response into a snapshot of the music timeline.

    Returns None when no music timeline is reported or it carries no rating
    key.  Raises StatusQueryError when the document is not a MediaContainer.
    """
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as e:
        raise StatusQueryError(f"invalid timeline XML: {e}") from e
    if root.tag != "MediaContainer":
        raise StatusQueryError(f"unexpected root element <{root.tag}>")

    timeline = next(
        (t for t in root.findall("Timeline") if t.get("type") == "music"), None)
    if timeline is None:
        return None

    track = timeline.find("Track")
    rating_key = _attr(timeline, "ratingKey") or _attr(track, "ratingKey")
    if rating_key is None:
        logger.debug("Music timeline without ratingKey, ignoring")
        return None

    return PlaybackSnapshot(
        rating_key=rating_key,
        version=_attr(track, "updatedAt") or _attr(track, "addedAt"),
        thumb=_attr(track, "thumb"),
        state=_attr(timeline, "state") or "",
        title=_attr(track, "title") or "",
        artist=_attr(track, "grandparentTitle") or "",
        album=_attr(track, "parentTitle") or "",
    )


class PlexampClient:
    """Stateless wrapper over the Plexamp timeline and Plex artwork endpoints."""

    def __init__(self, session: aiohttp.ClientSession, plexamp_url: str,
                 plex_url: str, timeout: float = 10):
        self._session = session
        self.plexamp_url = plexamp_url.rstrip("/")
        self.plex_url = plex_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_snapshot(self) -> PlaybackSnapshot | None:
        """Poll Plexamp once. Raises StatusQueryError on any failure."""
        url = f"{self.plexamp_url}{TIMELINE_PATH}"
        try:
            async with self._session.get(url, timeout=self._timeout) as resp:
                resp.raise_for_status()
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise StatusQueryError(f"timeline poll failed: {e}") from e
        return parse_timeline(text)

    async def fetch_thumbnail(self, thumb: str) -> bytes:
        """Download artwork bytes for *thumb*. Raises FetchError on failure."""
        url = f"{self.plex_url}{thumb}"
        try:
            async with self._session.get(url, timeout=self._timeout) as resp:
                resp.raise_for_status()
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"thumbnail fetch failed for {thumb}: {e}") from e
        logger.debug("Fetched %d bytes of artwork from %s", len(data), thumb)
        return data

    async def verify_connections(self):
        """Request Plexamp and Plex once each. Raises StartupError if either fails."""
        for name, url in (
            ("Plexamp", f"{self.plexamp_url}{TIMELINE_PATH}"),
            ("Plex", f"{self.plex_url}{IDENTITY_PATH}"),
        ):
            try:
                async with self._session.get(url, timeout=self._timeout) as resp:
                    resp.raise_for_status()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise StartupError(f"{name} unreachable at {url}: {e}") from e
            logger.info("%s reachable at %s", name, url)
