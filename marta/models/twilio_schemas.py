"""
Pydantic models for Twilio Media Streams messages.

This module defines structured data models for the JSON events exchanged over a
bidirectional Twilio Media Stream, providing type validation and documentation.
Field names follow the wire format.

References:
- https://www.twilio.com/docs/voice/media-streams/websocket-messages
"""

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TwilioBaseMessage(BaseModel):
    """Base model for all Media Stream messages."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., description="Event type identifier")
    sequenceNumber: Optional[str] = Field(None, description="Per-stream message counter")
    streamSid: Optional[str] = Field(None, description="Stream identifier")


class ConnectedMessage(TwilioBaseMessage):
    """First message after the socket opens; carries no call data."""

    event: Literal["connected"]
    protocol: Optional[str] = None
    version: Optional[str] = None


class StartMetadata(BaseModel):
    """The ``start`` object of a start message."""

    model_config = ConfigDict(extra="ignore")

    streamSid: str = Field(..., description="Stream identifier used to address outbound media")
    callSid: str = Field("", description="Call identifier")
    accountSid: Optional[str] = None
    customParameters: Dict[str, str] = Field(default_factory=dict)
    # Not always present; kept for callers that set them instead of a Parameter
    from_: Optional[str] = Field(None, alias="from")
    caller: Optional[str] = None

    @field_validator("streamSid")
    def validate_stream_sid(cls, v):
        """A start without a stream identifier cannot be answered."""
        if not v or not v.strip():
            raise ValueError("streamSid cannot be empty")
        return v

    @property
    def caller_number(self) -> str:
        return self.customParameters.get("From") or self.from_ or self.caller or ""


class StartMessage(TwilioBaseMessage):
    """Model for the start message: the stream is established."""

    event: Literal["start"]
    start: StartMetadata


class MediaPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    payload: str = Field(..., description="Base64-encoded 8kHz mu-law audio")
    track: Optional[str] = None
    chunk: Optional[str] = None
    timestamp: Optional[str] = None

    @field_validator("payload")
    def validate_payload(cls, v):
        """Audio is passed through untouched, but an empty frame is useless."""
        if not v:
            raise ValueError("Media payload cannot be empty")
        return v


class MediaMessage(TwilioBaseMessage):
    """Model for media messages, in both directions."""

    event: Literal["media"]
    media: MediaPayload


class MarkMessage(TwilioBaseMessage):
    event: Literal["mark"]
    mark: Dict[str, str] = Field(default_factory=dict)


class StopMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    callSid: Optional[str] = None
    accountSid: Optional[str] = None


class StopMessage(TwilioBaseMessage):
    """Model for the stop message: the call ended or the stream was stopped."""

    event: Literal["stop"]
    stop: StopMetadata = Field(default_factory=StopMetadata)


def outbound_media(stream_sid: str, payload: str) -> Dict[str, object]:
    """Build the media message that plays ``payload`` to the caller."""
    return {"event": "media", "streamSid": stream_sid, "media": {"payload": payload}}
