"""WebSocket transport for the OpenAI realtime API."""

import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..errors import ChannelClosedError, TransportError
from .base import AbstractPeerTransport

logger = logging.getLogger(__name__)

DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"


class RealtimeWebSocketTransport(AbstractPeerTransport):
    """Realtime peer over a single aiohttp websocket.

    Outbound messages go through a queue drained by one writer task, so
    control messages reach the peer in the order they were sent. Inbound
    audio deltas are decoded into the playback stream before the message is
    handed to on_message.
    """

    def __init__(self,
                 url: str = DEFAULT_REALTIME_URL,
                 model: str = "gpt-4o-realtime-preview",
                 connect_timeout: float = 10.0,
                 heartbeat: float = 20.0):
        super().__init__()
        self.url = url
        self.model = model
        self.connect_timeout = connect_timeout
        self.heartbeat = heartbeat

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._reader: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.Task] = None
        self._closing = False
        self.messages_sent = 0
        self.messages_received = 0

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed and not self._closing

    async def connect(self, ephemeral_key: str) -> None:
        headers = {
            "Authorization": f"Bearer {ephemeral_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=None, connect=self.connect_timeout))
        try:
            self._ws = await self._session.ws_connect(
                self.url,
                params={"model": self.model},
                headers=headers,
                heartbeat=self.heartbeat,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await self._session.close()
            self._session = None
            raise TransportError(f"Realtime websocket connect failed: {e}") from e

        logger.info(f"Realtime websocket connected: {self.url} (model={self.model})")
        self._outbox = asyncio.Queue()
        self._writer = asyncio.ensure_future(self._write_loop())
        self._reader = asyncio.ensure_future(self._read_loop())
        if self.on_open:
            self.on_open()

    def send(self, message: Dict[str, Any]) -> None:
        if not self.is_open:
            raise ChannelClosedError(f"Cannot send {message.get('type')}: websocket is closed")
        self._outbox.put_nowait(message)

    def send_audio(self, pcm: bytes) -> None:
        self.send({
            "type": "input_audio_buffer.append",
            "audio": base64.b64encode(pcm).decode("ascii"),
        })

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self.media_stream.close()
        if self._writer:
            self._writer.cancel()
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._reader:
            await asyncio.gather(self._reader, return_exceptions=True)
        if self._session is not None:
            await self._session.close()
            self._session = None
        logger.info(f"Realtime websocket closed (sent={self.messages_sent}, received={self.messages_received})")

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self._ws.send_str(json.dumps(message))
                self.messages_sent += 1
            except (ConnectionResetError, aiohttp.ClientError) as e:
                logger.error(f"Websocket write failed: {e}")
                await self._ws.close()
                return

    async def _read_loop(self) -> None:
        reason = "remote closed"
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"websocket error: {self._ws.exception()}"
                    break
        except aiohttp.ClientError as e:
            reason = f"websocket read failed: {e}"
        finally:
            if self._writer:
                self._writer.cancel()
            if not self._closing:
                logger.warning(f"Realtime websocket dropped: {reason}")
            elif reason == "remote closed":
                reason = "closed locally"
            if self.on_close:
                self.on_close(reason)

    def _dispatch(self, raw: str) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring non-JSON message: {raw[:80]}")
            return

        self.messages_received += 1
        if message.get("type") == "response.audio.delta" and message.get("delta"):
            self.media_stream.push(base64.b64decode(message["delta"]))
        if self.on_message:
            self.on_message(message)
