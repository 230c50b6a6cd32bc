"""Merges the local recognizer stream and the remote peer stream into one transcript.

Each inbound event is classified into a ReconcileAction and applied to the
TranscriptLedger. The reconciler never sends anything itself; when a local
turn finishes it tells the caller what to submit.
"""

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from ..models.events import (
    LocalTextSubmitted,
    LocalTurnEnded,
    LocalTurnStarted,
    PeerEvent,
    PeerEventType,
    RecognizerResult,
)
from ..models.transcript import (
    EntryRole,
    EntryStatus,
    EntryStream,
    is_valid_entry_id,
    new_entry_id,
)
from ..transcript.ledger import TranscriptLedger

logger = logging.getLogger(__name__)

INAUDIBLE = "[inaudible]"
INVALID_TRUNCATE_CODE = "item_truncate_invalid_item_id"


class ReconcileAction(Enum):
    OPEN_USER_TURN = "open_user_turn"
    APPEND_INTERIM = "append_interim"
    FINALIZE_USER_TURN = "finalize_user_turn"
    OPEN_ASSISTANT_TURN = "open_assistant_turn"
    APPEND_ASSISTANT_DELTA = "append_assistant_delta"
    FINALIZE_ASSISTANT_TURN = "finalize_assistant_turn"
    DISCARD_DUPLICATE = "discard_duplicate"
    NOTICE = "notice"
    IGNORE = "ignore"


@dataclass
class Reconciliation:
    """Outcome of handling one event.

    When submit is True the caller owes the peer a user turn: text is sent as
    the authoritative utterance, or, if empty, the peer's own audio buffer is
    committed instead.
    """
    action: ReconcileAction
    entry_id: Optional[str] = None
    text: str = ""
    submit: bool = False


class TurnSource(Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass
class Turn:
    """Correlation record for one user utterance and the output it produced."""
    turn_id: int
    source: TurnSource
    user_entry_id: Optional[str] = None
    final_segments: List[str] = field(default_factory=list)
    interim_text: str = ""
    language: Optional[str] = None
    # Classification slot held for a turn waiting on the peer's transcript
    language_token: Optional[int] = None
    closed: bool = False
    echo_item_ids: Set[str] = field(default_factory=set)
    assistant_entry_ids: List[str] = field(default_factory=list)

    @property
    def recognized_text(self) -> str:
        segments = [segment.strip() for segment in self.final_segments if segment.strip()]
        if self.interim_text.strip():
            segments.append(self.interim_text.strip())
        return " ".join(segments)


class DualStreamReconciler:
    """Single dispatch point for every event that touches the transcript."""

    def __init__(self, ledger: TranscriptLedger):
        self.ledger = ledger
        self.turns: Dict[int, Turn] = {}
        self.current_turn: Optional[Turn] = None
        self.remote_session_id: Optional[str] = None
        self._turn_ids = itertools.count(1)
        self._echo_index: Dict[str, int] = {}
        self._local_entry_ids: Set[str] = set()

        self._peer_handlers = {
            PeerEventType.SESSION_CREATED: self._on_session_created,
            PeerEventType.ERROR: self._on_error,
            PeerEventType.ITEM_CREATED: self._on_item,
            PeerEventType.ITEM_UPDATED: self._on_item,
            PeerEventType.ITEM_COMPLETED: self._on_item,
            PeerEventType.TRANSCRIPTION_COMPLETED: self._on_transcription_completed,
            PeerEventType.TRANSCRIPT_DELTA: self._on_assistant_delta,
            PeerEventType.TEXT_DELTA: self._on_assistant_delta,
            PeerEventType.RESPONSE_DONE: self._on_response_done,
            PeerEventType.ITEM_TRUNCATED: self._on_item_truncated,
            PeerEventType.ITEM_ENDED: self._on_item_ended,
        }

    def handle(self, event) -> Reconciliation:
        """Apply one local or remote event to the ledger."""
        if isinstance(event, PeerEvent):
            handler = self._peer_handlers.get(event.type)
            if handler is None:
                return Reconciliation(ReconcileAction.IGNORE)
            return handler(event)
        if isinstance(event, RecognizerResult):
            return self._on_recognizer_result(event)
        if isinstance(event, LocalTurnStarted):
            return self._open_local_turn()
        if isinstance(event, LocalTurnEnded):
            return self._close_local_turn()
        if isinstance(event, LocalTextSubmitted):
            return self._submit_text(event.text)

        logger.warning(f"Unsupported event type: {type(event).__name__}")
        return Reconciliation(ReconcileAction.IGNORE)

    def turn_for_item(self, item_id: str) -> Optional[Turn]:
        turn_id = self._echo_index.get(item_id)
        return self.turns.get(turn_id) if turn_id is not None else None

    def take_language_token(self, item_id: str) -> Optional[int]:
        """Pop the classification slot held by the turn that owns item_id."""
        turn = self.turn_for_item(item_id)
        if turn is None:
            return None
        token, turn.language_token = turn.language_token, None
        return token

    def release_language_tokens(self) -> List[int]:
        """Pop every slot still waiting on a remote transcript."""
        tokens = []
        for turn in self.turns.values():
            if turn.language_token is not None:
                tokens.append(turn.language_token)
                turn.language_token = None
        return tokens

    # Local stream

    def _new_turn(self, source: TurnSource) -> Turn:
        turn = Turn(turn_id=next(self._turn_ids), source=source)
        self.turns[turn.turn_id] = turn
        self.current_turn = turn
        return turn

    def _open_local_turn(self) -> Reconciliation:
        turn = self._new_turn(TurnSource.LOCAL)
        entry_id = new_entry_id()
        self.ledger.create(entry_id, EntryRole.USER, status=EntryStatus.PENDING,
                           stream=EntryStream.USER_SPEECH)
        turn.user_entry_id = entry_id
        self._local_entry_ids.add(entry_id)
        logger.debug(f"Opened local turn #{turn.turn_id} ({entry_id})")
        return Reconciliation(ReconcileAction.OPEN_USER_TURN, entry_id)

    def _on_recognizer_result(self, result: RecognizerResult) -> Reconciliation:
        turn = self.current_turn
        if turn is None or turn.source != TurnSource.LOCAL or turn.closed:
            logger.debug(f"Late recognizer result discarded: {result.text[:40]!r}")
            return Reconciliation(ReconcileAction.DISCARD_DUPLICATE)

        if result.is_final:
            turn.final_segments.append(result.text)
            turn.interim_text = ""
        else:
            turn.interim_text = result.text
        if result.language:
            turn.language = result.language

        text = turn.recognized_text
        if text:
            self.ledger.replace(turn.user_entry_id, text)
            self.ledger.set_status(turn.user_entry_id, EntryStatus.IN_PROGRESS)
        return Reconciliation(ReconcileAction.APPEND_INTERIM, turn.user_entry_id, text)

    def _close_local_turn(self) -> Reconciliation:
        turn = self.current_turn
        if turn is None or turn.source != TurnSource.LOCAL or turn.closed:
            return Reconciliation(ReconcileAction.IGNORE)

        turn.closed = True
        entry_id = turn.user_entry_id
        text = turn.recognized_text
        if text:
            self.ledger.replace(entry_id, text)
            self.ledger.set_status(entry_id, EntryStatus.DONE)
            logger.info(f"Local turn #{turn.turn_id} finalized: {text[:60]}")
            return Reconciliation(ReconcileAction.FINALIZE_USER_TURN, entry_id, text, submit=True)

        # Nothing recognized locally: let the peer transcribe its own copy of the audio.
        self.ledger.hide(entry_id)
        self.ledger.set_status(entry_id, EntryStatus.DONE)
        turn.source = TurnSource.REMOTE
        turn.user_entry_id = None
        logger.info(f"Local turn #{turn.turn_id} produced no text, falling back to remote transcription")
        return Reconciliation(ReconcileAction.FINALIZE_USER_TURN, None, "", submit=True)

    def _submit_text(self, text: str) -> Reconciliation:
        text = text.strip()
        if not text:
            return Reconciliation(ReconcileAction.IGNORE)

        turn = self._new_turn(TurnSource.LOCAL)
        turn.closed = True
        turn.final_segments.append(text)
        entry_id = new_entry_id()
        self.ledger.create(entry_id, EntryRole.USER, content=text, status=EntryStatus.DONE,
                           stream=EntryStream.USER_SPEECH)
        turn.user_entry_id = entry_id
        self._local_entry_ids.add(entry_id)
        return Reconciliation(ReconcileAction.FINALIZE_USER_TURN, entry_id, text, submit=True)

    # Remote stream

    def _on_session_created(self, event: PeerEvent) -> Reconciliation:
        self.remote_session_id = event.session_id
        entry_id = self.ledger.add_breadcrumb(f"Session created: {event.session_id}")
        return Reconciliation(ReconcileAction.NOTICE, entry_id)

    def _on_error(self, event: PeerEvent) -> Reconciliation:
        if event.error_code == INVALID_TRUNCATE_CODE:
            logger.warning(f"Peer rejected a truncate for an unknown item: {event.error_message}")
        else:
            logger.error(f"Peer error ({event.error_code}): {event.error_message}")
        entry_id = self.ledger.add_breadcrumb(
            f"API error: {event.error_message}",
            data={"code": event.error_code},
        )
        return Reconciliation(ReconcileAction.NOTICE, entry_id)

    def _on_item(self, event: PeerEvent) -> Reconciliation:
        if not is_valid_entry_id(event.item_id):
            logger.warning(f"Ignoring {event.wire_type} with invalid item id {event.item_id!r}")
            return Reconciliation(ReconcileAction.IGNORE)
        if event.role == EntryRole.USER.value:
            return self._on_remote_user_item(event)
        if event.role == EntryRole.ASSISTANT.value:
            return self._on_remote_assistant_item(event)
        return Reconciliation(ReconcileAction.IGNORE)

    def _on_remote_user_item(self, event: PeerEvent) -> Reconciliation:
        item_id = event.item_id
        completed = event.type == PeerEventType.ITEM_COMPLETED

        if self.ledger.has(item_id) or item_id in self._echo_index:
            if completed and item_id not in self._local_entry_ids and self.ledger.has(item_id):
                self.ledger.set_status(item_id, EntryStatus.DONE)
            return Reconciliation(ReconcileAction.DISCARD_DUPLICATE, item_id)

        turn = self.current_turn
        if turn is not None and turn.source == TurnSource.LOCAL:
            turn.echo_item_ids.add(item_id)
            self._echo_index[item_id] = turn.turn_id
            logger.debug(f"Suppressed remote echo {item_id} of local turn #{turn.turn_id}")
            return Reconciliation(ReconcileAction.DISCARD_DUPLICATE, item_id)

        if turn is None:
            turn = self._new_turn(TurnSource.REMOTE)
            turn.closed = True
        turn.user_entry_id = item_id
        self._echo_index[item_id] = turn.turn_id

        status = EntryStatus.DONE if completed and event.text else EntryStatus.IN_PROGRESS
        self.ledger.create(item_id, EntryRole.USER, content=event.text, status=status,
                           stream=EntryStream.USER_SPEECH)
        if status == EntryStatus.DONE:
            return Reconciliation(ReconcileAction.FINALIZE_USER_TURN, item_id, event.text)
        return Reconciliation(ReconcileAction.OPEN_USER_TURN, item_id)

    def _on_remote_assistant_item(self, event: PeerEvent) -> Reconciliation:
        item_id = event.item_id
        completed = event.type == PeerEventType.ITEM_COMPLETED

        if not self.ledger.has(item_id):
            status = EntryStatus.DONE if completed else EntryStatus.IN_PROGRESS
            self.ledger.create(item_id, EntryRole.ASSISTANT, content=event.text, status=status,
                               stream=EntryStream.ASSISTANT_OUTPUT)
            if self.current_turn is not None:
                self.current_turn.assistant_entry_ids.append(item_id)
            if completed:
                return Reconciliation(ReconcileAction.FINALIZE_ASSISTANT_TURN, item_id, event.text)
            return Reconciliation(ReconcileAction.OPEN_ASSISTANT_TURN, item_id)

        if event.text:
            self.ledger.replace(item_id, event.text)
        if completed:
            self.ledger.set_status(item_id, EntryStatus.DONE)
            return Reconciliation(ReconcileAction.FINALIZE_ASSISTANT_TURN, item_id, event.text)
        if event.type == PeerEventType.ITEM_UPDATED:
            return Reconciliation(ReconcileAction.APPEND_ASSISTANT_DELTA, item_id, event.text)
        return Reconciliation(ReconcileAction.DISCARD_DUPLICATE, item_id)

    def _on_transcription_completed(self, event: PeerEvent) -> Reconciliation:
        item_id = event.item_id
        turn = self.turn_for_item(item_id)
        if turn is not None and item_id in turn.echo_item_ids:
            return Reconciliation(ReconcileAction.DISCARD_DUPLICATE, item_id)
        if item_id in self._local_entry_ids:
            return Reconciliation(ReconcileAction.DISCARD_DUPLICATE, item_id)

        entry = self.ledger.get(item_id)
        if entry is None:
            logger.warning(f"Transcription for unknown item {item_id}, ignoring")
            return Reconciliation(ReconcileAction.IGNORE)
        if entry.role != EntryRole.USER:
            return Reconciliation(ReconcileAction.IGNORE)

        transcript = event.text.strip()
        self.ledger.replace(item_id, transcript or INAUDIBLE)
        self.ledger.set_status(item_id, EntryStatus.DONE)
        return Reconciliation(ReconcileAction.FINALIZE_USER_TURN, item_id, transcript)

    def _on_assistant_delta(self, event: PeerEvent) -> Reconciliation:
        if self.ledger.append_delta(event.item_id, event.delta):
            return Reconciliation(ReconcileAction.APPEND_ASSISTANT_DELTA, event.item_id, event.delta)
        return Reconciliation(ReconcileAction.DISCARD_DUPLICATE, event.item_id)

    def _on_response_done(self, event: PeerEvent) -> Reconciliation:
        status = EntryStatus.ERROR if event.status == "failed" else EntryStatus.DONE
        finalized = None
        for item_id in event.output_item_ids:
            entry = self.ledger.get(item_id)
            if entry is not None and entry.role == EntryRole.ASSISTANT:
                self.ledger.set_status(item_id, status)
                finalized = item_id
        if event.status == "failed":
            self.ledger.add_breadcrumb("Response failed", data=event.raw.get("response"))
        if finalized is None:
            return Reconciliation(ReconcileAction.IGNORE)
        return Reconciliation(ReconcileAction.FINALIZE_ASSISTANT_TURN, finalized)

    def _on_item_truncated(self, event: PeerEvent) -> Reconciliation:
        if not self.ledger.has(event.item_id):
            logger.warning(f"Truncation for unknown item {event.item_id}, ignoring")
        else:
            logger.debug(f"Item {event.item_id} truncated")
        return Reconciliation(ReconcileAction.IGNORE, event.item_id)

    def _on_item_ended(self, event: PeerEvent) -> Reconciliation:
        entry = self.ledger.get(event.item_id)
        if entry is None:
            logger.warning(f"End of unknown item {event.item_id}, ignoring")
            return Reconciliation(ReconcileAction.IGNORE)

        self.ledger.set_status(event.item_id, EntryStatus.DONE)
        if entry.role == EntryRole.ASSISTANT:
            return Reconciliation(ReconcileAction.FINALIZE_ASSISTANT_TURN, event.item_id)
        return Reconciliation(ReconcileAction.FINALIZE_USER_TURN, event.item_id)
