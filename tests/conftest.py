"""Pytest configuration and fixtures for Bilingo tests."""

import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest
from pubsub import pub

from bilingo.errors import ChannelClosedError, CredentialError
from bilingo.language.classifier import LanguageClassifier
from bilingo.models.events import RecognizerResult
from bilingo.recognition.base import AbstractSpeechRecognizer
from bilingo.session.channel import ControlChannel
from bilingo.session.controller import TranslationSession
from bilingo.session.scheduler import ScheduledTask, Scheduler
from bilingo.session.supervisor import ConnectionSupervisor
from bilingo.transcript.ledger import TranscriptLedger
from bilingo.transport.base import AbstractPeerTransport

# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no I/O")
    config.addinivalue_line("markers", "integration: several components wired together")
    config.addinivalue_line("markers", "slow: tests that sleep on real threads")


@pytest.fixture(autouse=True)
def clean_pubsub():
    """Drop pubsub subscriptions between tests."""
    yield
    pub.unsubAll()


class ManualTask(ScheduledTask):

    def __init__(self, when: float, seq: int, callback: Callable, args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when the test calls advance()."""

    def __init__(self, start: float = 1000.0):
        self.time = start
        self.tasks: List[ManualTask] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self.time

    def call_later(self, delay, callback, *args) -> ManualTask:
        task = ManualTask(self.time + delay, next(self._seq), callback, args)
        self.tasks.append(task)
        return task

    @property
    def pending(self) -> List[ManualTask]:
        return [task for task in self.tasks if not task.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = [task for task in self.pending if task.when <= target]
            if not due:
                break
            task = min(due, key=lambda t: (t.when, t.seq))
            self.tasks.remove(task)
            self.time = max(self.time, task.when)
            task.callback(*task.args)
        self.time = target


class FakeTransport(AbstractPeerTransport):
    """In-memory peer transport that records what was sent."""

    def __init__(self, open_on_connect: bool = True, fail_connect: Optional[Exception] = None):
        super().__init__()
        self.open_on_connect = open_on_connect
        self.fail_connect = fail_connect
        self.key: Optional[str] = None
        self.sent: List[Dict[str, Any]] = []
        self.audio: List[bytes] = []
        self._open = False
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def sent_types(self) -> List[str]:
        return [message["type"] for message in self.sent]

    async def connect(self, ephemeral_key: str) -> None:
        self.key = ephemeral_key
        if self.fail_connect is not None:
            raise self.fail_connect
        if self.open_on_connect:
            self._open = True
            self.on_open()

    def send(self, message: Dict[str, Any]) -> None:
        if not self._open:
            raise ChannelClosedError("fake transport closed")
        self.sent.append(message)

    def send_audio(self, pcm: bytes) -> None:
        if not self._open:
            raise ChannelClosedError("fake transport closed")
        self.audio.append(pcm)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._open = False
        self.on_close("closed locally")

    def deliver(self, message: Dict[str, Any]) -> None:
        self.on_message(message)

    def drop(self, reason: str = "network error") -> None:
        self._open = False
        self.on_close(reason)


class FakeCredentials:

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    async def fetch(self) -> str:
        self.calls += 1
        if self.fail:
            raise CredentialError("no client_secret.value")
        return f"ek_test_{self.calls}"


class FakeRecognizer(AbstractSpeechRecognizer):
    """Recognizer that returns scripted text."""

    def __init__(self):
        super().__init__()
        self.final_text = ""
        self.final_language: Optional[str] = None
        self.fed: List[bytes] = []
        self.starts: List[tuple] = []

    def initialize(self) -> bool:
        return True

    def start(self, locale: str, reset_accumulated_state: bool = True) -> None:
        self.locale = locale
        self.is_listening = True
        self.starts.append((locale, reset_accumulated_state))
        if reset_accumulated_state:
            self.fed = []

    def feed_audio(self, pcm: bytes) -> None:
        self.fed.append(pcm)

    def emit_interim(self, text: str) -> None:
        self._emit(RecognizerResult(text=text, is_final=False))

    async def stop(self) -> None:
        if not self.is_listening:
            return
        self.is_listening = False
        self._emit(RecognizerResult(text=self.final_text, language=self.final_language, is_final=True))


class FakeDetectionClient:
    """Remote language detection with canned answers keyed by text."""

    def __init__(self, answers: Optional[Dict[str, str]] = None, error: Optional[Exception] = None):
        self.answers = answers or {}
        self.error = error
        self.calls: List[str] = []

    async def detect_language(self, text: str) -> str:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.answers.get(text, "Unknown")


class TransportFactory:
    """Creates FakeTransports and remembers them."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.created: List[FakeTransport] = []

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(**self.kwargs)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


async def settle(rounds: int = 20) -> None:
    """Let spawned tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def ledger(scheduler):
    return TranscriptLedger(clock=scheduler.now)


@pytest.fixture
def transport_factory():
    return TransportFactory()


@pytest.fixture
def credentials():
    return FakeCredentials()


@pytest.fixture
def audio_sink():
    return Mock(name="audio_sink")


@pytest.fixture
def media_track():
    return Mock(name="media_track")


@pytest.fixture
def supervisor(transport_factory, credentials, scheduler, audio_sink, media_track):
    return ConnectionSupervisor(
        transport_factory=transport_factory,
        credential_provider=credentials,
        scheduler=scheduler,
        channel=ControlChannel(),
        audio_sink=audio_sink,
        media_track=media_track,
    )


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def sample_audio_chunk():
    """1200 samples of a 440Hz sine wave at 24kHz, 16-bit."""
    sample_rate = 24000
    t = np.linspace(0, 1200 / sample_rate, 1200, False)
    wave_data = np.sin(2 * np.pi * 440 * t)
    return (wave_data * 32767).astype(np.int16).tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.read.return_value = b'\x00' * 2400
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def detection_client():
    return FakeDetectionClient()


@pytest.fixture
def session(supervisor, recognizer, scheduler, ledger, detection_client):
    return TranslationSession(
        supervisor=supervisor,
        recognizer=recognizer,
        classifier=LanguageClassifier(detection_client),
        scheduler=scheduler,
        ledger=ledger,
    )


async def open_session(session, scheduler) -> None:
    """Connect, deliver the ready notification and let the first sync settle."""
    await session.start()
    scheduler.advance(0.5)
    scheduler.advance(1.0)
