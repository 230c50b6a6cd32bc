"""Agent (remote model persona) configuration."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

DEFAULT_INSTRUCTIONS = """You are a realtime interpreter between two people.
The main language is $main_language and the target language is $target_language.

Rules:
- When you hear $main_language, repeat it faithfully in $target_language.
- When you hear $target_language, repeat it faithfully in $main_language.
- When you hear any other language, translate it into $main_language.
- Only translate. Do not answer questions, add commentary or greet the speaker.
- Keep names, numbers and technical terms exactly as spoken.
"""


@dataclass
class AgentConfig:
    """Persona and session parameters sent to the realtime model."""
    name: str = "interpreter"
    instructions: str = DEFAULT_INSTRUCTIONS
    voice: str = "shimmer"
    transcription_model: str = "whisper-1"
    welcome_message: str = ""
    tools: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_config(cls, config) -> "AgentConfig":
        return cls(
            name=config.get("agent.name", "interpreter"),
            instructions=config.get("agent.instructions") or DEFAULT_INSTRUCTIONS,
            voice=config.get("agent.voice", "shimmer"),
            transcription_model=config.get("agent.transcription_model", "whisper-1"),
            welcome_message=config.get("agent.welcome_message", "") or "",
        )
