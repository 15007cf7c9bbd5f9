import json
import os

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from plexdeck.lib import config

DEFAULT_PNG = b"\x89PNG\r\n\x1a\ndefault-artwork"

TIMELINE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<MediaContainer commandID="1">
  <Timeline type="video" state="stopped" />
  <Timeline type="music" state="playing" ratingKey="{rating_key}" time="1000" duration="200000">
    <Track ratingKey="{rating_key}" title="So What" grandparentTitle="Miles Davis"
           parentTitle="Kind of Blue" thumb="{thumb}" updatedAt="{updated_at}" addedAt="1600000000" />
  </Timeline>
  <Timeline type="photo" state="stopped" />
</MediaContainer>
"""


def timeline_xml(rating_key="355914", thumb="/library/metadata/355914/thumb/1724958934",
                 updated_at="1724958934"):
    return TIMELINE_XML.format(rating_key=rating_key, thumb=thumb, updated_at=updated_at)


class FakePlex:
    """Plexamp timeline + Plex artwork endpoints on one in-process server."""

    def __init__(self):
        self.timeline = timeline_xml()
        self.timeline_status = 200
        self.identity_status = 200
        self.thumb_status = 200
        self.thumb_body = b"\x89PNG\r\n\x1a\nalbum-artwork"
        self.thumb_requests: list[str] = []
        self.timeline_requests = 0
        self.url = ""

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/player/timeline/poll", self._timeline)
        app.router.add_get("/identity", self._identity)
        app.router.add_get("/{tail:.*}", self._thumb)
        return app

    async def _timeline(self, request):
        self.timeline_requests += 1
        if self.timeline_status != 200:
            return web.Response(status=self.timeline_status)
        return web.Response(text=self.timeline, content_type="text/xml")

    async def _identity(self, request):
        if self.identity_status != 200:
            return web.Response(status=self.identity_status)
        return web.Response(text='<MediaContainer machineIdentifier="abc" />',
                            content_type="text/xml")

    async def _thumb(self, request):
        self.thumb_requests.append(request.path)
        if self.thumb_status != 200:
            return web.Response(status=self.thumb_status)
        return web.Response(body=self.thumb_body, content_type="image/png")


class FakeFetcher:
    """Stand-in for PlexampClient.fetch_thumbnail that counts calls."""

    def __init__(self, data=b"fetched-artwork", error=None):
        self.data = data
        self.error = error
        self.calls: list[str] = []

    async def fetch_thumbnail(self, thumb):
        self.calls.append(thumb)
        if self.error is not None:
            raise self.error
        return self.data


class RecordingDeck:
    """Stand-in for StreamDeck that records setImage commands."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.images: list[tuple[str, str]] = []

    async def set_image(self, context, image, target=0):
        if context in self.failing:
            raise ConnectionError(f"cannot reach {context}")
        self.images.append((context, image))


@pytest.fixture
async def fake_plex():
    fake = FakePlex()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.url = str(server.make_url("/")).rstrip("/")
    yield fake
    await server.close()


@pytest.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s


@pytest.fixture
def images_dir(tmp_path):
    path = tmp_path / "images"
    path.mkdir()
    (path / "plexamp.png").write_bytes(DEFAULT_PNG)
    return str(path)


@pytest.fixture
def write_config(tmp_path, monkeypatch):
    """Point the config loader at a temporary JSON file."""

    def _write(data: dict) -> str:
        path = os.path.join(str(tmp_path), "plexdeck-config.json")
        with open(path, "w") as f:
            json.dump(data, f)
        monkeypatch.setenv("PLEXDECK_CONFIG", path)
        config.reload_config()
        return path

    yield _write
    config._config = None
