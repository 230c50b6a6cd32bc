"""Keeps the remote session's instructions in step with the language pair."""

import logging
from datetime import datetime
from string import Template
from typing import Callable, Optional

from ..language.locales import display_name
from ..language.pair_state import LanguagePair
from ..models.agent import AgentConfig
from . import messages
from .scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


def compose_instructions(template: str, pair: LanguagePair, timestamp: Optional[datetime] = None) -> str:
    """Fill the agent template and append a marker naming the active pair.

    Args:
        template: Instructions with $main_language / $target_language placeholders
        pair: Current language pair
        timestamp: Time of the update, defaults to now

    Returns:
        Instructions text for a session.update message
    """
    timestamp = timestamp or datetime.now()
    main_name = display_name(pair.main_language)
    target_name = display_name(pair.target_language)
    body = Template(template).safe_substitute(
        main_language=main_name,
        target_language=target_name,
        main_code=pair.main_language,
        target_code=pair.target_language,
    )
    return (
        f"{body}\n\n"
        f"// Translation settings updated at {timestamp.isoformat(timespec='seconds')}\n"
        f"// From now on translate between MAIN={pair.main_language} ({main_name}) "
        f"and TARGET={pair.target_language} ({target_name})."
    )


class SessionSynchronizer:
    """Single-flight session.update sender.

    A sync takes the lock before it sends and a scheduled task releases it
    settle_delay seconds later. Calls made while the lock is held are
    dropped, not queued.
    """

    def __init__(self,
                 send: Callable[[dict], bool],
                 scheduler: Scheduler,
                 is_channel_open: Callable[[], bool],
                 settle_delay: float = 1.0):
        self.send = send
        self.scheduler = scheduler
        self.is_channel_open = is_channel_open
        self.settle_delay = settle_delay
        self._locked = False
        self._unlock_task: Optional[ScheduledTask] = None
        self.sync_count = 0

    @property
    def is_locked(self) -> bool:
        return self._locked

    def sync_session(self, pair: LanguagePair, agent: AgentConfig) -> bool:
        """Push the current pair to the remote session.

        Returns:
            True if the update was sent
        """
        if self._locked:
            logger.info(f"Session update already in flight, dropping sync for "
                        f"{pair.main_language}/{pair.target_language}")
            return False
        if not self.is_channel_open():
            logger.warning("Control channel closed, skipping session sync")
            return False

        self._locked = True
        try:
            instructions = compose_instructions(agent.instructions, pair)
            sent = self.send(messages.clear_input_buffer()) and self.send(
                messages.update_session(
                    instructions=instructions,
                    voice=agent.voice,
                    transcription_model=agent.transcription_model,
                    tools=agent.tools,
                )
            )
        finally:
            self._unlock_task = self.scheduler.call_later(self.settle_delay, self._unlock)

        if sent:
            self.sync_count += 1
            logger.info(f"🔄 Session synced: main={pair.main_language}, target={pair.target_language}")
        return sent

    def reset(self) -> None:
        """Release the lock immediately, e.g. when the connection drops."""
        if self._unlock_task:
            self._unlock_task.cancel()
            self._unlock_task = None
        self._locked = False

    def _unlock(self) -> None:
        self._unlock_task = None
        self._locked = False
        logger.debug("Session update lock released")
