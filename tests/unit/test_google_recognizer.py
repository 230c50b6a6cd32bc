"""Unit tests for GoogleSpeechRecognizer with a mocked SpeechClient."""

import asyncio
from unittest.mock import MagicMock, Mock, patch

import pytest
from google.api_core import exceptions as gax_exceptions

from bilingo.recognition.google_recognizer import GoogleSpeechRecognizer


def recognize_response(*segments, language="en-us"):
    results = [Mock(alternatives=[Mock(transcript=text)], language_code=language) for text in segments]
    return Mock(results=results)


@pytest.fixture
def results():
    return []


@pytest.fixture
def recognizer(results):
    recognizer = GoogleSpeechRecognizer(credentials_path="/tmp/creds.json", result_callback=results.append)
    recognizer.client = MagicMock()
    return recognizer


@pytest.mark.unit
class TestGoogleSpeechRecognizer:

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            GoogleSpeechRecognizer(credentials_path=None)

    def test_initialize(self):
        recognizer = GoogleSpeechRecognizer(credentials_path="/tmp/creds.json")

        with patch("bilingo.recognition.google_recognizer.service_account.Credentials.from_service_account_file") \
                as load, patch("bilingo.recognition.google_recognizer.speech.SpeechClient") as client_class:
            assert recognizer.initialize() is True

        load.assert_called_once_with("/tmp/creds.json")
        client_class.assert_called_once_with(credentials=load.return_value)
        assert recognizer.client is client_class.return_value

    def test_final_result_on_stop(self, recognizer, results, sample_audio_chunk):
        recognizer.client.recognize.return_value = recognize_response(" hello ", "world ")

        async def scenario():
            recognizer.start("en-US")
            recognizer.feed_audio(sample_audio_chunk)
            await recognizer.stop()

        asyncio.run(scenario())

        assert len(results) == 1
        assert results[0].text == "hello world"
        assert results[0].language == "en-us"
        assert results[0].is_final is True
        assert recognizer.is_listening is False
        audio = recognizer.client.recognize.call_args[1]["audio"]
        assert audio.content == sample_audio_chunk

    def test_empty_buffer_skips_request(self, recognizer, results):
        async def scenario():
            recognizer.start("en-US")
            await recognizer.stop()

        asyncio.run(scenario())

        recognizer.client.recognize.assert_not_called()
        assert [(r.text, r.is_final) for r in results] == [("", True)]

    def test_api_error_yields_empty_final(self, recognizer, results, sample_audio_chunk):
        recognizer.client.recognize.side_effect = gax_exceptions.ServiceUnavailable("down")

        async def scenario():
            recognizer.start("zh-CN")
            recognizer.feed_audio(sample_audio_chunk)
            await recognizer.stop()

        asyncio.run(scenario())

        assert [(r.text, r.is_final) for r in results] == [("", True)]

    def test_interim_recognition(self, recognizer, results):
        recognizer.client.recognize.return_value = recognize_response("你好", language="cmn-hans-cn")
        one_second = b"\x00" * recognizer.interim_interval_bytes

        async def scenario():
            recognizer.start("zh-CN")
            recognizer.feed_audio(one_second)
            await recognizer._interim_task
            recognizer.client.recognize.return_value = recognize_response("你好吗")
            await recognizer.stop()

        asyncio.run(scenario())

        assert [(r.text, r.is_final) for r in results] == [("你好", False), ("你好吗", True)]

    def test_audio_ignored_when_not_listening(self, recognizer, sample_audio_chunk):
        recognizer.feed_audio(sample_audio_chunk)

        assert recognizer._buffer == bytearray()

    def test_restart_without_reset_keeps_audio(self, recognizer, sample_audio_chunk):
        recognizer.start("en-US")
        recognizer.feed_audio(sample_audio_chunk)
        recognizer.is_listening = False

        recognizer.start("fr-FR", reset_accumulated_state=False)

        assert bytes(recognizer._buffer) == sample_audio_chunk
        recognizer.start("fr-FR")
        assert recognizer._buffer == bytearray()

    def test_recognition_config(self, recognizer):
        recognizer.locale = "en-US"
        recognizer.alternative_locales = ["en-US", "zh-CN", "fr-FR", "de-DE", "es-ES"]

        config = recognizer._build_config()

        assert config.language_code == "en-US"
        assert list(config.alternative_language_codes) == ["zh-CN", "fr-FR", "de-DE"]
        assert config.sample_rate_hertz == 24000
