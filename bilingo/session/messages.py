"""Builders for control messages sent to the realtime peer."""

from typing import Any, Dict, List, Optional


def clear_input_buffer() -> Dict[str, Any]:
    return {"type": "input_audio_buffer.clear"}


def commit_input_buffer() -> Dict[str, Any]:
    return {"type": "input_audio_buffer.commit"}


def append_input_audio(audio_b64: str) -> Dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": audio_b64}


def create_item(item_id: str, text: str, role: str = "user") -> Dict[str, Any]:
    content_type = "input_text" if role == "user" else "text"
    return {
        "type": "conversation.item.create",
        "item": {
            "id": item_id,
            "type": "message",
            "role": role,
            "content": [{"type": content_type, "text": text}],
        },
    }


def create_response() -> Dict[str, Any]:
    return {"type": "response.create"}


def cancel_response() -> Dict[str, Any]:
    return {"type": "response.cancel"}


def truncate_item(item_id: str, audio_end_ms: int, content_index: int = 0) -> Dict[str, Any]:
    return {
        "type": "conversation.item.truncate",
        "item_id": item_id,
        "content_index": content_index,
        "audio_end_ms": max(0, int(audio_end_ms)),
    }


def update_session(instructions: str,
                   voice: str,
                   transcription_model: str = "whisper-1",
                   tools: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """session.update with server-side turn detection disabled; turns are push-to-talk."""
    return {
        "type": "session.update",
        "session": {
            "modalities": ["text", "audio"],
            "instructions": instructions,
            "voice": voice,
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {"model": transcription_model},
            "turn_detection": None,
            "tools": tools or [],
        },
    }
