"""Microphone capture used as the outbound media track."""

import logging
import time
from datetime import datetime
from threading import Event, Thread
from typing import Callable, Optional

import numpy as np
import pyaudio

from ..models.audio import AudioStats
from ..models.events import AudioEvent
from ..transport.base import MediaTrack

logger = logging.getLogger(__name__)


class MicrophoneTrack(MediaTrack):
    """Continuous microphone capture that hands every chunk to a callback.

    The callback runs on the capture thread; consumers on an event loop must
    hop threads themselves.
    """

    def __init__(
        self,
        callback: Callable[[AudioEvent], None],
        sample_rate: int = 24000,
        chunk_size: int = 1200,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize microphone track.

        Args:
            callback: Receives each captured AudioEvent
            sample_rate: Sample rate in Hz (24kHz matches the realtime pcm16 format)
            chunk_size: Samples per chunk
            channels: Number of channels (1 for mono)
            format: PyAudio sample format
        """
        self.audio_event_callback = callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.peak_level = 0.0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None

    def start(self) -> None:
        """Start capturing in a background thread."""
        if self.is_recording:
            logger.warning("Microphone already capturing")
            return

        logger.info("Starting microphone capture")
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.peak_level = 0.0

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "MicrophoneCaptureThread"
        self.recording_thread.start()
        self.is_recording = True

    def stop(self) -> None:
        """Stop capturing and release the device."""
        if not self.is_recording:
            logger.debug("Microphone not capturing")
            return

        logger.info("Stopping microphone capture")
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Capture thread did not stop cleanly")

        self.is_recording = False
        logger.info(f"Microphone stopped. Total chunks: {self.total_chunks}")

    def _open_stream(self):
        self.pyaudio_instance = pyaudio.PyAudio()
        stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.chunk_size,
            stream_callback=None
        )
        logger.info(f"Input stream opened: {self.sample_rate}Hz, {self.chunk_size} samples/chunk")
        return stream

    def _read_chunk(self, stream) -> bytes:
        audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
        self.total_chunks += 1

        samples = np.frombuffer(audio_chunk, dtype=np.int16)
        if samples.size:
            level = float(np.abs(samples.astype(np.int32)).max()) / 32768.0
            self.peak_level = max(self.peak_level, level)
        return audio_chunk

    def _publish(self, audio_chunk: bytes) -> None:
        self.audio_event_callback(AudioEvent(
            chunk_id=f"chunk_{self.total_chunks}",
            audio_data=audio_chunk,
            timestamp=time.time(),
            sequence_number=self.total_chunks,
            sample_rate=self.sample_rate,
            channels=self.channels,
            final=self.stop_event.is_set(),
        ))

    def _record_continuously(self) -> None:
        stream = None
        try:
            stream = self._open_stream()
            while not self.stop_event.is_set():
                self._publish(self._read_chunk(stream))
        except OSError as e:
            logger.error(f"Microphone capture failed: {e}")
        finally:
            if stream:
                stream.stop_stream()
                stream.close()
            if self.pyaudio_instance:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None

    def get_recording_stats(self) -> AudioStats:
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )

    def __del__(self):
        if self.is_recording:
            self.stop()
