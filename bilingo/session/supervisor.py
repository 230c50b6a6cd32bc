"""Connection lifecycle for the realtime peer."""

import asyncio
import logging
from functools import partial
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from ..errors import BilingoError, ConnectionAttemptsExhausted
from ..models.connection import ConnectionState, ConnectionStatus
from .channel import ControlChannel
from .scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


class ConnectionSupervisor:
    """Owns the ConnectionState and every transition of it.

    Responsibilities:
    - gate connection attempts (max attempts within a cooldown window)
    - schedule a single retry after an unexpected disconnect
    - rebind the playback sink and outbound track to each new transport
    - tell listeners when the channel is ready for control messages
    """

    def __init__(self,
                 transport_factory: Callable[[], Any],
                 credential_provider,
                 scheduler: Scheduler,
                 channel: Optional[ControlChannel] = None,
                 audio_sink=None,
                 media_track=None,
                 max_attempts: int = 3,
                 cooldown_seconds: float = 5.0,
                 retry_delay_seconds: float = 1.0,
                 channel_open_delay_seconds: float = 0.5):
        """Initialize supervisor.

        Args:
            transport_factory: Returns a fresh, unconnected peer transport
            credential_provider: Object with an async fetch() returning an ephemeral key
            scheduler: Clock and timer source
            channel: Control channel to bind to the connected transport
            audio_sink: Playback sink for remote audio, exclusively owned here
            media_track: Outbound microphone track started while connected
            max_attempts: Attempts allowed before the cooldown applies
            cooldown_seconds: Window after the last attempt during which connects are rejected
            retry_delay_seconds: Delay before the automatic retry after a disconnect
            channel_open_delay_seconds: Delay between channel open and the ready notification
        """
        self.transport_factory = transport_factory
        self.credential_provider = credential_provider
        self.scheduler = scheduler
        self.channel = channel or ControlChannel()
        self.audio_sink = audio_sink
        self.media_track = media_track
        self.max_attempts = max_attempts
        self.cooldown_seconds = cooldown_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.channel_open_delay_seconds = channel_open_delay_seconds

        self.state = ConnectionState()
        self.session_desired = False
        self.transport = None
        self._attempt_serial = 0
        self._retry_task: Optional[ScheduledTask] = None
        self._ready_task: Optional[ScheduledTask] = None

        self._ready_listeners: List[Callable[[], None]] = []
        self._message_listeners: List[Callable[[Dict[str, Any]], None]] = []
        self._disconnect_listeners: List[Callable[[str], None]] = []
        self._notice_listeners: List[Callable[[str], None]] = []
        self._status_listeners: List[Callable[[ConnectionStatus], None]] = []

        self.channel.add_failure_listener(self.report_transport_failure)

    @property
    def status(self) -> ConnectionStatus:
        return self.state.status

    @property
    def is_connected(self) -> bool:
        return self.state.status == ConnectionStatus.CONNECTED and self.channel.is_open

    def add_ready_listener(self, listener: Callable[[], None]) -> None:
        self._ready_listeners.append(listener)

    def add_message_listener(self, listener: Callable[[Dict[str, Any]], None]) -> None:
        self._message_listeners.append(listener)

    def add_disconnect_listener(self, listener: Callable[[str], None]) -> None:
        self._disconnect_listeners.append(listener)

    def add_notice_listener(self, listener: Callable[[str], None]) -> None:
        self._notice_listeners.append(listener)

    def add_status_listener(self, listener: Callable[[ConnectionStatus], None]) -> None:
        self._status_listeners.append(listener)

    async def start(self) -> bool:
        """Mark the session as wanted and connect."""
        self.session_desired = True
        return await self.connect()

    async def connect(self) -> bool:
        """Attempt one connection.

        Returns:
            True if the transport connected. A rejected attempt (already
            connecting, or inside the cooldown) returns False without
            touching the attempt counter.
        """
        if self.state.status != ConnectionStatus.DISCONNECTED:
            logger.info(f"Connect ignored while {self.state.status.value}")
            return False

        now = self.scheduler.now()
        if self.state.attempt_count >= self.max_attempts:
            elapsed = now - (self.state.last_attempt_at or 0.0)
            if elapsed < self.cooldown_seconds:
                exhausted = ConnectionAttemptsExhausted(self.state.attempt_count,
                                                        self.cooldown_seconds - elapsed)
                logger.warning(str(exhausted))
                self._notify_notice(str(exhausted))
                return False
            logger.info("Connection cooldown elapsed, resetting attempt counter")
            self.state.attempt_count = 0

        self.state.attempt_count += 1
        self.state.last_attempt_at = now
        self._attempt_serial += 1
        serial = self._attempt_serial
        self._set_status(ConnectionStatus.CONNECTING)
        logger.info(f"Connecting (attempt {self.state.attempt_count}/{self.max_attempts})")

        transport = None
        try:
            key = await self.credential_provider.fetch()
            if self._superseded(serial):
                logger.info("Connection attempt superseded while fetching credentials")
                return False

            transport = self.transport_factory()
            transport.bind(on_open=partial(self._on_transport_open, transport),
                           on_message=partial(self._on_transport_message, transport),
                           on_close=partial(self._on_transport_close, transport))
            self.transport = transport
            await transport.connect(key)
        except (BilingoError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error(f"❌ Connection attempt {self.state.attempt_count} failed: {e}")
            await self._abandon_attempt(serial, transport, e)
            return False
        except Exception as e:
            logger.exception(f"❌ Unexpected error during connection attempt: {e}")
            await self._abandon_attempt(serial, transport, e)
            return False

        if transport is not self.transport:
            logger.info("Connection attempt superseded while opening the transport")
            if transport.is_open:
                await transport.close()
            return False

        return self.state.status == ConnectionStatus.CONNECTED

    async def disconnect(self) -> None:
        """User-initiated disconnect; no retry follows."""
        self.session_desired = False
        self._cancel_retry()
        transport = self.transport
        self._enter_disconnected("closed by user")
        if transport is not None:
            await transport.close()

    def report_transport_failure(self, reason: str) -> None:
        """A send or read failed on the live transport."""
        if self.state.status != ConnectionStatus.CONNECTED:
            return
        logger.warning(f"Transport failure: {reason}")
        transport = self.transport
        self._enter_disconnected(reason)
        if transport is not None:
            self.scheduler.spawn(transport.close())

    def _on_transport_open(self, transport) -> None:
        if transport is not self.transport or self.state.status != ConnectionStatus.CONNECTING:
            logger.warning(f"Transport opened while {self.state.status.value}, ignoring")
            return

        self._set_status(ConnectionStatus.CONNECTED)
        self.state.attempt_count = 0
        self.channel.bind(self.transport)
        self._bind_audio(self.transport)
        if self.media_track is not None:
            self.media_track.start()
        logger.info("✅ Connected to realtime peer")

        self._cancel_ready()
        self._ready_task = self.scheduler.call_later(self.channel_open_delay_seconds, self._notify_ready)

    def _on_transport_message(self, transport, message: Dict[str, Any]) -> None:
        if transport is not self.transport:
            logger.debug(f"Dropping {message.get('type')} from a stale transport")
            return
        if message.get("type") == "session.created":
            logger.info(f"Remote session created: {(message.get('session') or {}).get('id')}")
        for listener in self._message_listeners:
            listener(message)

    def _on_transport_close(self, transport, reason: str) -> None:
        if transport is not self.transport:
            return
        logger.warning(f"Transport closed: {reason}")
        self._enter_disconnected(reason)

    def _enter_disconnected(self, reason: str) -> None:
        if self.state.status == ConnectionStatus.DISCONNECTED:
            return

        self._cancel_ready()
        if self.media_track is not None:
            self.media_track.stop()
        if self.audio_sink is not None:
            self.audio_sink.detach()
        self.channel.unbind()
        self.transport = None
        self._set_status(ConnectionStatus.DISCONNECTED)

        for listener in self._disconnect_listeners:
            listener(reason)

        if self.session_desired:
            self._cancel_retry()
            self._retry_task = self.scheduler.call_later(self.retry_delay_seconds, self._retry)
            logger.info(f"Reconnect scheduled in {self.retry_delay_seconds}s")

    def _superseded(self, serial: int) -> bool:
        return serial != self._attempt_serial or self.state.status != ConnectionStatus.CONNECTING

    async def _abandon_attempt(self, serial: int, transport, error: Exception) -> None:
        if not self._superseded(serial):
            self._notify_notice(f"Connection failed: {error}")
            self._enter_disconnected(f"connect failed: {error}")
        if transport is not None and transport.is_open:
            await transport.close()

    def _retry(self) -> None:
        self._retry_task = None
        if self.session_desired and self.state.status == ConnectionStatus.DISCONNECTED:
            self.scheduler.spawn(self.connect())

    def _bind_audio(self, transport) -> None:
        if self.audio_sink is None:
            return
        # Detach first so an old stream never plays alongside the new one
        self.audio_sink.detach()
        self.audio_sink.attach(transport.media_stream)

    def _notify_ready(self) -> None:
        self._ready_task = None
        if not self.is_connected:
            return
        for listener in self._ready_listeners:
            listener()

    def _notify_notice(self, text: str) -> None:
        for listener in self._notice_listeners:
            listener(text)

    def _set_status(self, status: ConnectionStatus) -> None:
        if not self.state.can_transition_to(status):
            raise RuntimeError(f"Illegal connection transition {self.state.status.value} -> {status.value}")
        self.state.status = status
        for listener in self._status_listeners:
            listener(status)

    def _cancel_retry(self) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None

    def _cancel_ready(self) -> None:
        if self._ready_task is not None:
            self._ready_task.cancel()
            self._ready_task = None
