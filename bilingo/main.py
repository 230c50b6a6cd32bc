"""Main application entry point for Bilingo."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .audio.capture import MicrophoneTrack
from .config import BilingoConfig
from .language.classifier import LanguageClassifier
from .language.pair_state import LanguagePolicy
from .models.agent import AgentConfig
from .recognition.google_recognizer import GoogleSpeechRecognizer
from .services.openai_client import EphemeralKeyClient, LanguageDetectionClient
from .session.controller import TranslationSession
from .session.scheduler import AsyncioScheduler
from .session.supervisor import ConnectionSupervisor
from .transcript.ledger import TranscriptLedger
from .transcript.publisher import TranscriptPublisher
from .transport.playback import PyAudioSink
from .transport.realtime_ws import RealtimeWebSocketTransport
from .ui.keyboard_input import CANCEL_KEY, QUIT_KEY, RECONNECT_KEY, TALK_KEY, KeyboardInputHandler
from .ui.transcript_console import TranscriptConsole

logger = logging.getLogger(__name__)


class Server:
    """Builds the session from config and runs the terminal loop."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        self.config = BilingoConfig(config_path)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.should_exit: Optional[asyncio.Event] = None
        self.session: Optional[TranslationSession] = None

    def init(self) -> None:
        logger.info("Initializing services...")
        config = self.config
        api_key = config.get_openai_api_key()

        sample_rate = config.get('audio.sample_rate', 24000)
        chunk_size = config.get('audio.chunk_size', 1200)
        channels = config.get('audio.channels', 1)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        self.scheduler = AsyncioScheduler()
        self.publisher = TranscriptPublisher(config.get('pubsub.transcript_topic', 'transcript_entries'))
        self.console = TranscriptConsole(self.publisher.topic)

        self.microphone = MicrophoneTrack(
            callback=self._on_audio_frame,
            sample_rate=sample_rate,
            chunk_size=chunk_size,
            channels=channels,
        )
        supervisor = ConnectionSupervisor(
            transport_factory=lambda: RealtimeWebSocketTransport(
                url=config.get('realtime.url'),
                model=config.get('realtime.model'),
            ),
            credential_provider=EphemeralKeyClient(config.get('realtime.session_url'), api_key=api_key),
            scheduler=self.scheduler,
            audio_sink=PyAudioSink(sample_rate=sample_rate, channels=channels),
            media_track=self.microphone,
            max_attempts=config.get('connection.max_attempts', 3),
            cooldown_seconds=config.get('connection.cooldown_seconds', 5.0),
            retry_delay_seconds=config.get('connection.retry_delay_seconds', 1.0),
            channel_open_delay_seconds=config.get('connection.channel_open_delay_seconds', 0.5),
        )
        supervisor.add_status_listener(self.console.on_status)

        recognizer = GoogleSpeechRecognizer(
            credentials_path=config.get_google_credentials_path(),
            sample_rate=sample_rate,
            interim_interval_seconds=config.get('google_cloud.interim_interval_seconds', 1.0),
            request_timeout=config.get('google_cloud.request_timeout_seconds', 5.0),
            use_enhanced=config.get('google_cloud.use_enhanced', True),
            enable_automatic_punctuation=config.get('google_cloud.enable_automatic_punctuation', True),
        )
        recognizer.initialize()

        classifier = LanguageClassifier(
            detection_client=LanguageDetectionClient(
                api_key=api_key,
                model=config.get('openai.detection_model', 'gpt-4o-mini'),
                base_url=config.get('openai.base_url', 'https://api.openai.com/v1'),
                timeout_seconds=config.get('classifier.request_timeout_seconds', 5.0),
            ),
            min_remote_length=config.get('classifier.min_remote_length', 5),
            timeout_seconds=config.get('classifier.request_timeout_seconds', 5.0),
        )

        self.session = TranslationSession(
            supervisor=supervisor,
            recognizer=recognizer,
            classifier=classifier,
            scheduler=self.scheduler,
            agent=AgentConfig.from_config(config),
            policy=LanguagePolicy.from_config(config),
            ledger=TranscriptLedger(on_change=self.publisher.get_callback()),
            settle_delay=config.get('sync.settle_delay_seconds', 1.0),
        )

    def _on_audio_frame(self, event) -> None:
        if self.session is not None:
            self.session.handle_audio_frame(event)

    async def run(self, text: Optional[str] = None) -> None:
        self.should_exit = asyncio.Event()
        loop = asyncio.get_event_loop()
        keyboard = KeyboardInputHandler(loop, self._on_key)

        self.console.start()
        try:
            await self.session.start()
            if text:
                await self._send_when_connected(text)
            keyboard.start()
            await self.should_exit.wait()
        finally:
            keyboard.stop()
            await self.session.stop()
            self.console.stop()

    async def _send_when_connected(self, text: str, timeout: float = 10.0) -> None:
        waited = 0.0
        while not self.session.supervisor.is_connected and waited < timeout:
            await asyncio.sleep(0.1)
            waited += 0.1
        self.session.send_text(text)

    def _on_key(self, key: str) -> None:
        session = self.session
        if key == TALK_KEY:
            if session.is_speaking:
                session.spawn(session.stop_talking())
            else:
                session.spawn(self._start_talking())
        elif key == CANCEL_KEY:
            session.cancel_response()
        elif key == RECONNECT_KEY:
            session.spawn(session.supervisor.connect())
        elif key == QUIT_KEY:
            self.should_exit.set()

    async def _start_talking(self) -> None:
        if await self.session.start_talking():
            self.console.on_talking(True)


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'logs/bilingo.log')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - warnings only, the transcript owns the terminal
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info(f"Logging initialized: level={level}, file={log_file_path}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Bilingo - realtime push-to-talk interpreter")
    parser.add_argument("--config", "-c", default=None, help="Path to bilingo.yaml")
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Override logging.level from the config")
    parser.add_argument("--text", default=None, help="Send this typed message once connected")
    parser.add_argument("--version", action="version", version=f"bilingo {__version__}")
    args = parser.parse_args(argv)

    try:
        server = Server(args.config, args.log_level)
        server.init()
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(server.run(args.text))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
