"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the client events this service sends
to the Realtime API. Server events are read as plain dicts.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from marta.config.constants import AUDIO_FORMAT_G711_ULAW


class RealtimeBaseMessage(BaseModel):
    """Base model for Realtime API messages."""

    type: str


class InputAudioTranscription(BaseModel):
    model: str


class TurnDetection(BaseModel):
    """Server-side voice activity detection settings."""

    model_config = ConfigDict(extra="allow")

    type: str = "server_vad"
    create_response: Optional[bool] = None


class SessionConfig(BaseModel):
    """The ``session`` object of a session.update event."""

    instructions: str
    voice: str
    modalities: List[str] = Field(default_factory=lambda: ["audio", "text"])
    input_audio_format: str = AUDIO_FORMAT_G711_ULAW
    output_audio_format: str = AUDIO_FORMAT_G711_ULAW
    input_audio_transcription: InputAudioTranscription
    turn_detection: Optional[TurnDetection] = None
    temperature: float = Field(0.7, ge=0.6, le=1.2)


class SessionUpdateEvent(RealtimeBaseMessage):
    type: Literal["session.update"] = "session.update"
    session: SessionConfig


class ResponseConfig(BaseModel):
    modalities: List[str] = Field(default_factory=lambda: ["audio", "text"])
    instructions: Optional[str] = None


class ResponseCreateEvent(RealtimeBaseMessage):
    """Asks the model to speak, optionally with ad hoc instructions."""

    type: Literal["response.create"] = "response.create"
    response: Optional[ResponseConfig] = None


class InputAudioAppendEvent(RealtimeBaseMessage):
    type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"
    audio: str


def dump_event(event: RealtimeBaseMessage) -> str:
    """Serialize a client event, leaving out unset optional fields."""
    return event.model_dump_json(exclude_none=True)
