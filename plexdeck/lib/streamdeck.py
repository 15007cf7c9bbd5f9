# Plexamp Deck
# Copyright (C) 2026 Plexamp Deck contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Stream Deck plugin channel.

The Stream Deck application launches the plugin executable with

    -port <n> -pluginUUID <uuid> -registerEvent <event> -info <json>

and expects it to open ws://127.0.0.1:<port>, send the registration message,
then exchange JSON events (willAppear, willDisappear, keyDown, ...) and
commands (setImage, ...) over the socket.

Usage:
    deck = StreamDeck(parse_launch_args(sys.argv[1:]))
    await deck.connect(session)
    async for event in deck.events():
        ...
    await deck.set_image(context, "images/thumb_355914_1724958934")
"""

import argparse
import json
import logging
from dataclasses import dataclass, field

import aiohttp

from .errors import StartupError

logger = logging.getLogger(__name__)

# setImage targets
TARGET_BOTH = 0
TARGET_HARDWARE = 1
TARGET_SOFTWARE = 2


@dataclass
class LaunchArgs:
    port: int
    plugin_uuid: str
    register_event: str
    info: dict = field(default_factory=dict)


class _ArgParser(argparse.ArgumentParser):
    def error(self, message):
        raise StartupError(f"bad launch arguments: {message}")


def parse_launch_args(argv: list[str]) -> LaunchArgs:
    """Parse the arguments Stream Deck passes on launch."""
    parser = _ArgParser(prog="plexdeck", add_help=False)
    parser.add_argument("-port", type=int, required=True)
    parser.add_argument("-pluginUUID", required=True)
    parser.add_argument("-registerEvent", required=True)
    parser.add_argument("-info", default="{}")
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        logger.debug("Ignoring unknown launch arguments: %s", unknown)
    try:
        info = json.loads(args.info)
    except json.JSONDecodeError as e:
        logger.warning("Could not decode -info payload: %s", e)
        info = {}
    return LaunchArgs(
        port=args.port,
        plugin_uuid=args.pluginUUID,
        register_event=args.registerEvent,
        info=info,
    )


class StreamDeck:
    """WebSocket connection to the Stream Deck application."""

    def __init__(self, launch: LaunchArgs, host: str = "127.0.0.1"):
        self.launch = launch
        self.url = f"ws://{host}:{launch.port}"
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def info(self) -> dict:
        return self.launch.info

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self, session: aiohttp.ClientSession):
        """Open the socket and register the plugin. Raises StartupError."""
        try:
            self._ws = await session.ws_connect(self.url)
            await self._ws.send_json({
                "event": self.launch.register_event,
                "uuid": self.launch.plugin_uuid,
            })
        except (aiohttp.ClientError, OSError) as e:
            raise StartupError(f"Stream Deck handshake with {self.url} failed: {e}") from e
        logger.info("Registered with Stream Deck at %s", self.url)

    async def send(self, message: dict):
        if not self.connected:
            raise ConnectionError("Stream Deck socket is not open")
        await self._ws.send_json(message)

    async def set_image(self, context: str, image: str, target: int = TARGET_BOTH):
        """Show *image* on the key identified by *context*."""
        await self.send({
            "event": "setImage",
            "context": context,
            "payload": {"image": image, "target": target},
        })

    async def events(self):
        """Yield decoded events until the socket closes."""
        if self._ws is None:
            return
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    event = json.loads(msg.data)
                except json.JSONDecodeError as e:
                    logger.warning("Undecodable Stream Deck message: %s", e)
                    continue
                if isinstance(event, dict):
                    yield event
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error("Stream Deck socket error: %s", self._ws.exception())
                break
        logger.info("Stream Deck socket closed")

    async def close(self):
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
