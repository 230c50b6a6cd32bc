"""Unit tests for peer event parsing and control message builders."""

import pytest

from bilingo.models.events import AudioEvent, PeerEventType, parse_peer_event
from bilingo.session import messages


@pytest.mark.unit
class TestParsePeerEvent:

    def test_item_created(self):
        event = parse_peer_event({
            "type": "conversation.item.created",
            "item": {
                "id": "item_abc123def4",
                "role": "assistant",
                "status": "in_progress",
                "content": [{"type": "text", "text": "Bon"}, {"type": "text", "text": "jour"}],
            },
        })

        assert event.type is PeerEventType.ITEM_CREATED
        assert event.item_id == "item_abc123def4"
        assert event.role == "assistant"
        assert event.status == "in_progress"
        assert event.text == "Bonjour"

    def test_audio_transcript_part(self):
        event = parse_peer_event({
            "type": "response.output_item.done",
            "item": {"id": "item_abc123def4", "role": "assistant",
                     "content": [{"type": "audio", "transcript": "hello"}]},
        })

        assert event.type is PeerEventType.ITEM_COMPLETED
        assert event.text == "hello"

    def test_transcription_completed(self):
        event = parse_peer_event({
            "type": "conversation.item.input_audio_transcription.completed",
            "item_id": "item_abc123def4",
            "transcript": "你好",
        })

        assert event.item_id == "item_abc123def4"
        assert event.role == "user"
        assert event.text == "你好"

    def test_delta(self):
        event = parse_peer_event({"type": "response.text.delta", "item_id": "item_abc123def4", "delta": "Hi"})

        assert event.type is PeerEventType.TEXT_DELTA
        assert event.delta == "Hi"

    def test_error(self):
        event = parse_peer_event({"type": "error", "error": {"message": "bad", "code": "invalid_value"}})

        assert event.error_message == "bad"
        assert event.error_code == "invalid_value"

    def test_error_without_body(self):
        assert parse_peer_event({"type": "error"}).error_message == "unknown error"

    def test_response_done(self):
        event = parse_peer_event({
            "type": "response.done",
            "response": {"status": "completed", "output": [{"id": "item_a"}, {"type": "x"}, "junk"]},
        })

        assert event.status == "completed"
        assert event.output_item_ids == ["item_a"]

    def test_session_created(self):
        event = parse_peer_event({"type": "session.created", "session": {"id": "sess_1"}})

        assert event.session_id == "sess_1"

    def test_unknown_type(self):
        event = parse_peer_event({"type": "rate_limits.updated"})

        assert event.type is PeerEventType.OTHER
        assert event.wire_type == "rate_limits.updated"

    def test_missing_type(self):
        assert parse_peer_event({}).type is PeerEventType.OTHER


@pytest.mark.unit
class TestMessages:

    def test_create_item(self):
        message = messages.create_item("item_abc123def4", "hello")

        assert message["type"] == "conversation.item.create"
        assert message["item"]["id"] == "item_abc123def4"
        assert message["item"]["content"] == [{"type": "input_text", "text": "hello"}]

    def test_truncate_never_negative(self):
        assert messages.truncate_item("item_abc123def4", -20)["audio_end_ms"] == 0
        assert messages.truncate_item("item_abc123def4", 1500.7)["audio_end_ms"] == 1500

    def test_update_session_disables_turn_detection(self):
        session = messages.update_session("be brief", "shimmer")["session"]

        assert session["turn_detection"] is None
        assert session["input_audio_transcription"] == {"model": "whisper-1"}
        assert session["tools"] == []


@pytest.mark.unit
class TestAudioEvent:

    def test_duration_is_derived(self):
        event = AudioEvent(chunk_id="c1", audio_data=b"\x00" * 48000, timestamp=0.0, sequence_number=0)

        assert event.chunk_duration_ms == 1000
