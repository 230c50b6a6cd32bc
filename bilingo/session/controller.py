"""UI-facing translation session."""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from ..language.locales import to_locale
from ..language.pair_state import (
    LanguagePair,
    LanguagePairState,
    LanguagePairTracker,
    LanguagePolicy,
    LanguageTransition,
)
from ..models.agent import AgentConfig
from ..models.connection import ConnectionStatus
from ..models.events import (
    AudioEvent,
    LocalTextSubmitted,
    LocalTurnEnded,
    LocalTurnStarted,
    RecognizerResult,
    parse_peer_event,
)
from ..models.transcript import EntryRole, EntryStatus, EntryStream, is_valid_entry_id, new_entry_id
from ..transcript.ledger import TranscriptLedger
from . import messages
from .reconciler import DualStreamReconciler, ReconcileAction, Reconciliation
from .scheduler import Scheduler
from .supervisor import ConnectionSupervisor
from .synchronizer import SessionSynchronizer

logger = logging.getLogger(__name__)

PLEASE_WAIT_NOTICE = "Updating translation settings, please wait..."
CONNECTING_NOTICE = "Connecting, please wait..."
RECONNECTING_NOTICE = "Connection lost, reconnecting. Please try again in a moment."


class TranslationSession:
    """Owns the transcript and coordinates the push-to-talk translation loop.

    All methods must be called on the event loop thread, except
    handle_audio_frame which is safe to call from the capture thread.
    """

    def __init__(self,
                 supervisor: ConnectionSupervisor,
                 recognizer,
                 classifier,
                 scheduler: Scheduler,
                 agent: Optional[AgentConfig] = None,
                 policy: Optional[LanguagePolicy] = None,
                 ledger: Optional[TranscriptLedger] = None,
                 settle_delay: float = 1.0):
        """Initialize session.

        Args:
            supervisor: Connection supervisor for the realtime peer
            recognizer: Local speech recognizer (AbstractSpeechRecognizer)
            classifier: LanguageClassifier used on finalized utterances
            scheduler: Clock and timer source
            agent: Persona and session parameters
            policy: Language pair defaults and transition rules
            ledger: Transcript ledger, created if not given
            settle_delay: Seconds the session-update lock is held after a sync
        """
        self.supervisor = supervisor
        self.channel = supervisor.channel
        self.recognizer = recognizer
        self.scheduler = scheduler
        self.agent = agent or AgentConfig()
        self.ledger = ledger or TranscriptLedger()
        self.reconciler = DualStreamReconciler(self.ledger)
        self.languages = LanguagePairTracker(
            classifier,
            LanguagePairState(policy),
            on_change=self._on_language_change,
        )
        self.synchronizer = SessionSynchronizer(
            send=self.channel.send,
            scheduler=scheduler,
            is_channel_open=lambda: self.channel.is_open,
            settle_delay=settle_delay,
        )

        self.is_speaking = False
        self._welcomed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._background: Set[asyncio.Future] = set()

        self.recognizer.set_result_callback(self.handle_recognizer_result)
        self.channel.add_failure_listener(self.notice)
        supervisor.add_ready_listener(self._on_channel_ready)
        supervisor.add_message_listener(self.handle_peer_message)
        supervisor.add_disconnect_listener(self._on_disconnected)
        supervisor.add_notice_listener(self.notice)

    @property
    def language_pair(self) -> LanguagePair:
        return self.languages.pair

    async def start(self) -> bool:
        """Connect and keep the session alive until stop()."""
        self._loop = asyncio.get_event_loop()
        return await self.supervisor.start()

    async def stop(self) -> None:
        if self.is_speaking:
            self.is_speaking = False
            await self._abort_talk()
        await self.supervisor.disconnect()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        logger.info("Translation session stopped")

    def notice(self, text: str) -> str:
        """Show a system notice in the transcript."""
        return self.ledger.add_breadcrumb(text)

    # Push-to-talk

    async def start_talking(self) -> bool:
        """Talk control pressed.

        Returns:
            True if capture started
        """
        if self.is_speaking:
            return False
        if self.synchronizer.is_locked:
            self.notice(PLEASE_WAIT_NOTICE)
            return False
        if not self.supervisor.is_connected:
            if self.supervisor.status == ConnectionStatus.DISCONNECTED:
                self.notice(RECONNECTING_NOTICE)
                self.spawn(self.supervisor.connect())
            else:
                self.notice(CONNECTING_NOTICE)
            return False

        active = self.ledger.find_active(EntryRole.ASSISTANT)
        if active:
            self.cancel_response(active)
        if not self.channel.send(messages.clear_input_buffer()):
            return False

        self.reconciler.handle(LocalTurnStarted())
        pair = self.languages.pair
        self.recognizer.alternative_locales = [to_locale(pair.main_language)]
        self.recognizer.start(to_locale(pair.target_language), reset_accumulated_state=True)
        self.is_speaking = True
        logger.info("🎤 Talking")
        return True

    async def stop_talking(self) -> Optional[Reconciliation]:
        """Talk control released: flush the recognizer and submit the turn."""
        if not self.is_speaking:
            return None
        self.is_speaking = False
        await self.recognizer.stop()

        result = self.reconciler.handle(LocalTurnEnded())
        if not result.submit:
            return result
        # The slot is taken now so classification follows speaking order
        token = self.languages.next_token()
        if self.supervisor.is_connected:
            if not result.text:
                self.reconciler.current_turn.language_token = token
            self._submit(result, token)
        else:
            self.notice("Connection lost, the last utterance was not sent")
            self.languages.skip(token)
            if result.entry_id:
                self.ledger.set_status(result.entry_id, EntryStatus.ERROR)
        return result

    def send_text(self, text: str) -> bool:
        """Send a typed message as a user turn."""
        if not text or not text.strip():
            return False
        if not self.supervisor.is_connected:
            self.notice("Not connected, message not sent")
            return False

        active = self.ledger.find_active(EntryRole.ASSISTANT)
        if active:
            self.cancel_response(active)
        result = self.reconciler.handle(LocalTextSubmitted(text))
        if result.submit:
            self._submit(result, self.languages.next_token())
        return result.submit

    def cancel_response(self, entry_id: Optional[str] = None) -> bool:
        """Interrupt the assistant's current output.

        Args:
            entry_id: Assistant entry to truncate, defaults to the active one

        Returns:
            True if truncate and cancel were sent
        """
        entry_id = entry_id or self.ledger.find_active(EntryRole.ASSISTANT)
        if entry_id is None:
            logger.debug("No active assistant response to cancel")
            return False

        entry = self.ledger.get(entry_id)
        if not is_valid_entry_id(entry_id) or entry is None or entry.role != EntryRole.ASSISTANT:
            logger.warning(f"Refusing to cancel invalid or foreign entry {entry_id!r}")
            return False

        audio_end_ms = int((self.ledger.clock() - entry.created_at) * 1000)
        self.channel.send(messages.truncate_item(entry_id, audio_end_ms))
        self.channel.send(messages.cancel_response())
        transport = self.supervisor.transport
        if transport is not None:
            transport.media_stream.flush()
        self.notice("Assistant response cancelled")
        return True

    # Inbound events

    def handle_peer_message(self, message: Dict[str, Any]) -> Reconciliation:
        result = self.reconciler.handle(parse_peer_event(message))
        if result.action == ReconcileAction.FINALIZE_USER_TURN and not result.submit:
            # Remote transcription of a turn the local recognizer missed
            token = self.reconciler.take_language_token(result.entry_id)
            if result.text:
                self._classify(result.text, token)
            elif token is not None:
                self.languages.skip(token)
        return result

    def handle_recognizer_result(self, result: RecognizerResult) -> Reconciliation:
        return self.reconciler.handle(result)

    def handle_audio_frame(self, event: AudioEvent) -> None:
        """Capture-thread entry point for microphone chunks."""
        if not self.is_speaking or self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._route_audio, event.audio_data)

    def _route_audio(self, pcm: bytes) -> None:
        if not self.is_speaking:
            return
        self.recognizer.feed_audio(pcm)
        self.channel.send_audio(pcm)

    # Internals

    def _submit(self, result: Reconciliation, token: int) -> None:
        if result.text:
            sent = (self.channel.send(messages.clear_input_buffer())
                    and self.channel.send(messages.create_item(result.entry_id, result.text))
                    and self.channel.send(messages.create_response()))
            if not sent:
                self.ledger.set_status(result.entry_id, EntryStatus.ERROR)
                self.languages.skip(token)
                return
            self._classify(result.text, token)
        else:
            if self.channel.send(messages.commit_input_buffer()):
                self.channel.send(messages.create_response())

    def _classify(self, text: str, token: Optional[int] = None) -> None:
        if token is None:
            token = self.languages.next_token()
        self.spawn(self.languages.classify_and_apply(token, text))

    def _on_language_change(self, pair: LanguagePair, transition: LanguageTransition) -> None:
        self.notice(f"Languages {transition.value}: main={pair.main_language}, target={pair.target_language}")
        self.synchronizer.sync_session(pair, self.agent)

    def _on_channel_ready(self) -> None:
        self.notice(f"Agent: {self.agent.name}")
        if self.agent.welcome_message and not self._welcomed:
            self._welcomed = True
            self.ledger.create(new_entry_id(), EntryRole.ASSISTANT, content=self.agent.welcome_message,
                               status=EntryStatus.DONE, stream=EntryStream.ASSISTANT_OUTPUT)
        self.synchronizer.sync_session(self.languages.pair, self.agent)

    def _on_disconnected(self, reason: str) -> None:
        self.synchronizer.reset()
        # Transcripts of the old remote session will never arrive
        for token in self.reconciler.release_language_tokens():
            self.languages.skip(token)
        self.notice(f"Disconnected: {reason}")
        if self.is_speaking:
            self.is_speaking = False
            self.spawn(self._abort_talk())

    async def _abort_talk(self) -> None:
        await self.recognizer.stop()
        result = self.reconciler.handle(LocalTurnEnded())
        if result.entry_id:
            self.ledger.set_status(result.entry_id, EntryStatus.ERROR)

    def spawn(self, coro) -> asyncio.Future:
        task = self.scheduler.spawn(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
