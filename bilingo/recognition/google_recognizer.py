"""Google Speech-to-Text push-to-talk recognizer."""

import asyncio
import logging
import time
from typing import List, Optional

from google.api_core import exceptions as gax_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from ..models.events import RecognizerResult
from .base import AbstractSpeechRecognizer

logger = logging.getLogger(__name__)


class GoogleSpeechRecognizer(AbstractSpeechRecognizer):
    """Recognizes the growing push-to-talk buffer with synchronous recognize calls.

    While the talk control is held, the whole buffer is re-recognized every
    interim_interval_seconds of new audio to produce interim text. Releasing
    the control runs one last recognize and emits it as the final result.
    """

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 24000,
                 alternative_locales: Optional[List[str]] = None,
                 interim_interval_seconds: float = 1.0,
                 request_timeout: float = 5.0,
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 result_callback=None):
        """Initialize Google recognizer.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the fed PCM
            alternative_locales: Other locales the speaker may use (max 3 are sent)
            interim_interval_seconds: Audio between interim recognitions
            request_timeout: Per-request deadline in seconds
            use_enhanced: Whether to use the enhanced model
            enable_automatic_punctuation: Enable automatic punctuation
        """
        super().__init__(result_callback)
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.alternative_locales = alternative_locales or []
        self.interim_interval_seconds = interim_interval_seconds
        self.request_timeout = request_timeout
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.client = None

        self._buffer = bytearray()
        self._bytes_since_interim = 0
        self._interim_task: Optional[asyncio.Future] = None

    @property
    def interim_interval_bytes(self) -> int:
        return int(self.sample_rate * 2 * self.interim_interval_seconds)

    def initialize(self) -> bool:
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        logger.info(f"Google Speech recognizer ready (project={credentials.project_id})")
        return True

    def start(self, locale: str, reset_accumulated_state: bool = True) -> None:
        if reset_accumulated_state:
            self._buffer = bytearray()
            self._bytes_since_interim = 0
        self.locale = locale
        self.is_listening = True
        logger.debug(f"Recognizer listening ({locale})")

    def feed_audio(self, pcm: bytes) -> None:
        if not self.is_listening:
            return
        self._buffer.extend(pcm)
        self._bytes_since_interim += len(pcm)

        interim_running = self._interim_task is not None and not self._interim_task.done()
        if self._bytes_since_interim >= self.interim_interval_bytes and not interim_running:
            self._bytes_since_interim = 0
            self._interim_task = asyncio.ensure_future(self._recognize(is_final=False))

    async def stop(self) -> None:
        if not self.is_listening:
            return
        self.is_listening = False
        if self._interim_task is not None:
            self._interim_task.cancel()
            await asyncio.gather(self._interim_task, return_exceptions=True)
            self._interim_task = None
        await self._recognize(is_final=True)

    def _build_config(self) -> speech.RecognitionConfig:
        alternatives = [locale for locale in self.alternative_locales if locale != self.locale][:3]
        return speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            language_code=self.locale,
            alternative_language_codes=alternatives,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            model="latest_short",
        )

    def _recognize_sync(self, audio_bytes: bytes) -> speech.RecognizeResponse:
        audio = speech.RecognitionAudio(content=audio_bytes)
        return self.client.recognize(config=self._build_config(), audio=audio, timeout=self.request_timeout)

    async def _recognize(self, is_final: bool) -> None:
        audio_bytes = bytes(self._buffer)
        if not audio_bytes:
            if is_final:
                self._emit(RecognizerResult(text="", is_final=True))
            return

        start_time = time.time()
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(None, self._recognize_sync, audio_bytes)
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT {'final' if is_final else 'interim'} recognize failed: {e}")
            if is_final:
                self._emit(RecognizerResult(text="", is_final=True))
            return

        text = " ".join(
            result.alternatives[0].transcript.strip()
            for result in response.results
            if result.alternatives
        ).strip()
        language = response.results[0].language_code if response.results else None
        logger.debug(f"{'Final' if is_final else 'Interim'} recognition in "
                     f"{time.time() - start_time:.2f}s: {text!r} ({language})")
        if text or is_final:
            self._emit(RecognizerResult(text=text, language=language, is_final=is_final))
