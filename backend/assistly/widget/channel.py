"""
Persistent chat channel

A bidirectional, ordered connection to the chat backend. Frames are JSON
text; parsing is left to the runtime so malformed frames can be shown
in the transcript.
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

import websockets
from websockets.exceptions import (
    ConnectionClosed, ConnectionClosedError, ConnectionClosedOK, WebSocketException
)

from ..core.config import settings
from ..core.exceptions import ChannelError

logger = logging.getLogger(__name__)


def build_channel_url(app_id: str, country: str, ws_url: Optional[str] = None) -> str:
    """
    Connection string for the chat channel.

    Tenant and country travel as query parameters; `/ws` is appended to the
    base when it is not already there.
    """
    base = (ws_url or settings.WS_URL).rstrip("/")
    scheme, netloc, path, query, fragment = urlsplit(base)
    if not path.endswith("/ws"):
        path = f"{path}/ws"
    params = parse_qsl(query)
    params.extend([("app_id", app_id), ("country", country)])
    return urlunsplit((scheme, netloc, path, urlencode(params), fragment))


class ChatChannel:
    """Interface the widget runtime talks to"""

    async def connect(self) -> None:
        raise NotImplementedError

    async def send(self, message: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    def frames(self) -> AsyncIterator[str]:
        """Incoming raw frames; ends when the remote side closes"""
        raise NotImplementedError


class WebSocketChannel(ChatChannel):
    """ChatChannel over the `websockets` client"""

    def __init__(self, url: str, ping_interval: float = 30, ping_timeout: float = 10):
        self.url = url
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self._websocket = None

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None

    async def connect(self) -> None:
        try:
            self._websocket = await websockets.connect(
                self.url,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
            )
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Chat channel connection failed: {e}")
            raise ChannelError(f"Failed to connect: {e}")
        logger.info(f"Connected to chat channel: {self.url}")

    async def send(self, message: Dict[str, Any]) -> None:
        if self._websocket is None:
            raise ChannelError("Not connected")
        try:
            await self._websocket.send(json.dumps(message))
        except ConnectionClosed as e:
            raise ChannelError(f"Channel closed: {e}")
        logger.debug(f"Sent {message.get('type')} message")

    async def close(self) -> None:
        websocket, self._websocket = self._websocket, None
        if websocket is not None:
            await websocket.close()
            logger.info("Chat channel closed")

    async def frames(self) -> AsyncIterator[str]:
        if self._websocket is None:
            raise ChannelError("Not connected")
        try:
            async for message in self._websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                yield message
        except ConnectionClosedOK as e:
            logger.info(f"Chat channel closed by remote: {e}")
        except ConnectionClosedError as e:
            logger.warning(f"Chat channel dropped: {e}")
            raise ChannelError(f"Connection lost: {e}")
