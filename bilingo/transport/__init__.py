"""Peer transports and audio endpoints."""

from .base import AbstractPeerTransport, AudioSink, MediaTrack, PlaybackStream

__all__ = ["AbstractPeerTransport", "AudioSink", "MediaTrack", "PlaybackStream"]
