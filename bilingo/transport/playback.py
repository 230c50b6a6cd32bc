"""PyAudio playback of the peer's audio stream."""

import logging
from threading import Event, Thread
from typing import Optional

import pyaudio

from .base import AudioSink, PlaybackStream

logger = logging.getLogger(__name__)


class PyAudioSink(AudioSink):
    """Plays a PlaybackStream on the default output device from a background thread."""

    def __init__(self,
                 sample_rate: int = 24000,
                 channels: int = 1,
                 format: int = pyaudio.paInt16):
        self.sample_rate = sample_rate
        self.channels = channels
        self.format = format
        self.stream: Optional[PlaybackStream] = None
        self.playback_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.chunks_played = 0

    @property
    def is_attached(self) -> bool:
        return self.stream is not None

    def attach(self, stream: PlaybackStream) -> None:
        if self.stream is not None:
            logger.warning("Sink already attached, detaching previous stream first")
            self.detach()

        self.stream = stream
        self.stop_event.clear()
        self.playback_thread = Thread(target=self._play_continuously, args=(stream,), daemon=True)
        self.playback_thread.name = "AudioPlaybackThread"
        self.playback_thread.start()
        logger.info("Playback sink attached")

    def detach(self) -> None:
        if self.stream is None:
            return

        self.stop_event.set()
        if self.playback_thread and self.playback_thread.is_alive():
            self.playback_thread.join(timeout=2.0)
            if self.playback_thread.is_alive():
                logger.warning("Playback thread did not stop cleanly")
        self.stream = None
        self.playback_thread = None
        logger.info(f"Playback sink detached after {self.chunks_played} chunks")

    def _play_continuously(self, stream: PlaybackStream) -> None:
        pyaudio_instance = pyaudio.PyAudio()
        output = None
        try:
            output = pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                output=True,
            )
            while not self.stop_event.is_set() and not stream.closed:
                chunk = stream.read(timeout=0.1)
                if chunk:
                    output.write(chunk)
                    self.chunks_played += 1
        except OSError as e:
            logger.error(f"Audio playback failed: {e}")
        finally:
            if output is not None:
                output.stop_stream()
                output.close()
            pyaudio_instance.terminate()
