import asyncio
import os

import pytest

from plexdeck.lib.errors import FetchError, StatusQueryError
from plexdeck.lib.surfaces import SurfaceRegistry
from plexdeck.lib.sync_loop import DISPLAYING, IDLE, SyncLoop
from plexdeck.lib.thumbnail_cache import ThumbnailCache
from plexdeck.players.plexamp import PlaybackSnapshot

from conftest import FakeFetcher, RecordingDeck

T1_V1 = PlaybackSnapshot(rating_key="T1", version="V1", thumb="/thumb/1",
                         title="So What", artist="Miles Davis")
T1_V2 = PlaybackSnapshot(rating_key="T1", version="V2", thumb="/thumb/1")


class ScriptedClient:
    """Returns queued snapshots (or raises queued exceptions) one per poll."""

    def __init__(self, *results):
        self.results = list(results)
        self.polls = 0

    async def get_snapshot(self):
        self.polls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class SpyCache:
    def __init__(self):
        self.resolved = []

    async def resolve(self, snapshot):
        self.resolved.append(snapshot)
        return "images/thumb_x.png"

    display_id = staticmethod(ThumbnailCache.display_id)


@pytest.fixture
def fetcher():
    return FakeFetcher(data=b"art")


@pytest.fixture
def cache(fetcher, images_dir):
    return ThumbnailCache(fetcher, images_dir=images_dir)


@pytest.fixture
def registry():
    reg = SurfaceRegistry()
    reg.add("S1")
    reg.add("S2")
    return reg


async def test_no_music_track_is_idle():
    cache, deck = SpyCache(), RecordingDeck()
    reg = SurfaceRegistry()
    reg.add("S1")
    loop = SyncLoop(ScriptedClient(None), cache, reg, deck)
    assert await loop.tick() is None
    assert loop.state == IDLE
    assert cache.resolved == []
    assert deck.images == []


async def test_status_error_is_idle():
    cache, deck = SpyCache(), RecordingDeck()
    loop = SyncLoop(ScriptedClient(StatusQueryError("down")), cache, SurfaceRegistry(), deck)
    assert await loop.tick() is None
    assert cache.resolved == []


async def test_repeat_ticks_fetch_once(cache, fetcher, registry, images_dir):
    deck = RecordingDeck()
    loop = SyncLoop(ScriptedClient(T1_V1), cache, registry, deck)

    image = await loop.tick()
    assert image == os.path.join(images_dir, "thumb_T1_V1")
    assert len(fetcher.calls) == 1
    assert len(cache.entries()) == 1
    assert sorted(deck.images) == [("S1", image), ("S2", image)]
    assert loop.state == DISPLAYING

    deck.images.clear()
    assert await loop.tick() == image
    assert len(fetcher.calls) == 1
    assert sorted(deck.images) == [("S1", image), ("S2", image)]


async def test_version_change_creates_second_entry(cache, fetcher, registry):
    deck = RecordingDeck()
    loop = SyncLoop(ScriptedClient(T1_V1, T1_V2), cache, registry, deck)
    first = await loop.tick()
    second = await loop.tick()
    assert first != second
    assert len(fetcher.calls) == 2
    assert len(cache.entries()) == 2
    assert os.path.exists(first + ".png")


async def test_surface_lifecycle(cache):
    deck = RecordingDeck()
    reg = SurfaceRegistry()
    loop = SyncLoop(ScriptedClient(T1_V1), cache, reg, deck)

    reg.add("S1")
    image = await loop.tick()
    assert deck.images == [("S1", image)]

    reg.remove("S1")
    deck.images.clear()
    await loop.tick()
    assert deck.images == []


async def test_resolve_failure_keeps_last_image(images_dir, registry):
    fetcher = FakeFetcher(data=b"art")
    cache = ThumbnailCache(fetcher, images_dir=images_dir)
    deck = RecordingDeck()
    loop = SyncLoop(ScriptedClient(T1_V1, T1_V2), cache, registry, deck)
    first = await loop.tick()

    fetcher.error = FetchError("plex down")
    deck.images.clear()
    assert await loop.tick() is None
    assert deck.images == []
    assert loop.state == IDLE
    assert loop.current_image == first


async def test_failing_surface_does_not_block_others(cache):
    deck = RecordingDeck(failing={"S1"})
    reg = SurfaceRegistry()
    for context in ("S1", "S2", "S3"):
        reg.add(context)
    loop = SyncLoop(ScriptedClient(T1_V1), cache, reg, deck)
    image = await loop.tick()
    assert sorted(deck.images) == [("S2", image), ("S3", image)]


async def test_run_skips_busy_ticks(cache, registry):
    gate = asyncio.Event()

    class BlockingClient(ScriptedClient):
        async def get_snapshot(self):
            self.polls += 1
            await gate.wait()
            return T1_V1

    client = BlockingClient(T1_V1)
    deck = RecordingDeck()
    loop = SyncLoop(client, cache, registry, deck, interval=0.01)
    task = asyncio.create_task(loop.run())
    await asyncio.sleep(0.1)
    assert client.polls == 1
    assert loop.skipped_ticks > 0

    gate.set()
    await asyncio.sleep(0.05)
    assert deck.images
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_run_cancels_inflight_tick(cache, registry):
    started = asyncio.Event()
    cancelled = asyncio.Event()

    class HangingClient(ScriptedClient):
        async def get_snapshot(self):
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

    loop = SyncLoop(HangingClient(None), cache, registry, RecordingDeck(), interval=0.01)
    task = asyncio.create_task(loop.run())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert cancelled.is_set()
