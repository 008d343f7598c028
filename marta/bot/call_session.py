"""
Per-call relay between a Twilio Media Stream and the OpenAI Realtime API.

One CallSession exists per media-stream connection. It:
- opens the Realtime connection and configures the Marta persona
- sends the opening line exactly once, when both the model and the stream are ready
- relays caller audio to the model and model audio to the caller
- accumulates the transcript from speech-recognition events
- on stop, extracts a ticket, notifies the dispatcher and closes the model connection

States: CONNECTING -> AWAITING_READINESS -> GREETING -> CONVERSING -> FINALIZING -> CLOSED
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from marta.bot.prompts import build_instructions, greeting_instructions
from marta.bot.readiness import ReadinessGate
from marta.bot.realtime_api import RealtimeClient
from marta.bot.turn_taking import TurnStrategy, strategy_for
from marta.config.constants import (
    LOGGER_NAME,
    READINESS_FALLBACK_SECONDS,
    REALTIME_AUDIO_DELTA,
    REALTIME_AUDIO_TRANSCRIPT_DONE,
    REALTIME_ERROR,
    REALTIME_RESPONSE_CREATED,
    REALTIME_RESPONSE_DONE,
    REALTIME_SESSION_CREATED,
    REALTIME_SESSION_UPDATED,
    REALTIME_TRANSCRIPTION_COMPLETED,
    RECONNECT_DELAY_SECONDS,
    TWILIO_EVENT_CONNECTED,
    TWILIO_EVENT_MARK,
    TWILIO_EVENT_MEDIA,
    TWILIO_EVENT_START,
    TWILIO_EVENT_STOP,
)
from marta.config.settings import Settings
from marta.errors import ExtractionError, RealtimeConnectionError
from marta.models.realtime_schemas import (
    InputAudioAppendEvent,
    InputAudioTranscription,
    ResponseConfig,
    ResponseCreateEvent,
    SessionConfig,
    SessionUpdateEvent,
)
from marta.models.ticket import Ticket
from marta.models.transcript import Transcript
from marta.models.twilio_schemas import StartMessage, outbound_media
from marta.services.clock import CallContext, resolve_call_context
from marta.services.notifier import (
    EXTRACTION_FAILED_NOTE,
    SmsNotifier,
    format_fallback_message,
    format_ticket_message,
)
from marta.services.ticket_extractor import TicketExtractor

logger = logging.getLogger(LOGGER_NAME)

SMS_FAILED_NOTE = "Error enviando parte."

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class SessionState(str, Enum):
    CONNECTING = "connecting"
    AWAITING_READINESS = "awaiting_readiness"
    GREETING = "greeting"
    CONVERSING = "conversing"
    FINALIZING = "finalizing"
    CLOSED = "closed"


_ENDED = (SessionState.FINALIZING, SessionState.CLOSED)


async def close_websocket(websocket: WebSocket) -> None:
    """Close the Twilio socket unless either side already closed it."""
    disconnected = WebSocketState.DISCONNECTED
    if getattr(websocket, "application_state", None) == disconnected:
        return
    if getattr(websocket, "client_state", None) == disconnected:
        return
    try:
        await websocket.close()
    except (RuntimeError, OSError) as e:
        logger.debug(f"Twilio WebSocket already closed: {e}")


class CallSession:
    """
    State and protocol for one inbound call.

    The session is owned by the task handling its media-stream connection; no
    state is shared with other sessions apart from the read-only settings.
    """

    def __init__(
        self,
        websocket: WebSocket,
        settings: Settings,
        realtime_client: Optional[RealtimeClient] = None,
        extractor: Optional[TicketExtractor] = None,
        notifier: Optional[SmsNotifier] = None,
        turn_strategy: Optional[TurnStrategy] = None,
        context: Optional[CallContext] = None,
        readiness_timeout: float = READINESS_FALLBACK_SECONDS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
    ):
        self.websocket = websocket
        self.settings = settings
        self.client = realtime_client or RealtimeClient(settings.openai_api_key, settings.realtime_model)
        self.extractor = extractor or TicketExtractor(settings.openai_api_key, settings.extract_model)
        self.notifier = notifier or SmsNotifier(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_sms_from,
            settings.alert_to_number,
        )
        self.turns = turn_strategy or strategy_for(settings.turn_mode)
        self.context = context or resolve_call_context(timezone=settings.timezone)
        self.readiness_timeout = readiness_timeout
        self.reconnect_delay = reconnect_delay

        self.state = SessionState.CONNECTING
        self.stream_sid: Optional[str] = None
        self.call_sid = ""
        self.caller_number = ""
        self.transcript = Transcript()
        self.gate = ReadinessGate()
        self.greeted = False
        self.response_in_flight = False
        self.dropped_audio_deltas = 0
        self._reconnect_attempted = False
        self._listener_task: Optional[asyncio.Task] = None
        self._fallback_task: Optional[asyncio.Task] = None

        self._twilio_handlers: Dict[str, EventHandler] = {
            TWILIO_EVENT_CONNECTED: self._on_connected,
            TWILIO_EVENT_START: self._on_start,
            TWILIO_EVENT_MEDIA: self._on_media,
            TWILIO_EVENT_MARK: self._on_mark,
            TWILIO_EVENT_STOP: self._on_stop,
        }
        self._realtime_handlers: Dict[str, EventHandler] = {
            REALTIME_SESSION_CREATED: self._on_model_ready,
            REALTIME_SESSION_UPDATED: self._on_model_ready,
            REALTIME_RESPONSE_CREATED: self._on_response_created,
            REALTIME_RESPONSE_DONE: self._on_response_done,
            REALTIME_AUDIO_DELTA: self._on_audio_delta,
            REALTIME_TRANSCRIPTION_COMPLETED: self._on_client_transcription,
            REALTIME_AUDIO_TRANSCRIPT_DONE: self._on_agent_transcript,
            REALTIME_ERROR: self._on_model_error,
        }

    @property
    def is_night(self) -> bool:
        return self.context.is_night

    @property
    def day_part(self) -> str:
        return self.context.day_part

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    # ------------------------------------------------------------------ lifecycle

    async def start(self) -> bool:
        """
        Open and configure the Realtime connection.

        Returns:
            bool: False if the model could not be reached; the session is then closed
        """
        try:
            await self.client.connect()
        except RealtimeConnectionError as e:
            logger.error(f"Could not open Realtime connection: {e}")
            self.state = SessionState.CLOSED
            return False

        await self._configure_model()
        self.state = SessionState.AWAITING_READINESS
        self._listener_task = asyncio.create_task(self._listen())
        self._fallback_task = asyncio.create_task(self._readiness_fallback())
        logger.info(
            f"Call session started (night={self.is_night}, day_part={self.day_part}, turns={self.turns.mode})"
        )
        return True

    async def close(self) -> None:
        """
        Tear the session down when the media-stream connection ends.

        A connection that ends without a stop event still produces the
        dispatcher notification.
        """
        if self.state not in _ENDED and self.state != SessionState.CONNECTING:
            logger.warning(f"Media stream closed without stop for call {self.call_sid or '?'}")
            await self.finalize()
        await self._shutdown_model()
        self.state = SessionState.CLOSED

    async def finalize(self) -> None:
        """Extract the ticket, notify the dispatcher and close the model connection."""
        if self.state in _ENDED:
            return
        self.state = SessionState.FINALIZING
        logger.info(f"Finalizing call {self.call_sid or '?'}:\n{self.transcript.render()}")
        try:
            await self._notify_dispatcher()
        finally:
            await self._shutdown_model()
            self.state = SessionState.CLOSED
            logger.info(f"Call session closed: {self.call_sid or '?'}")

    # ------------------------------------------------------------------ Twilio side

    async def handle_twilio_event(self, message: Dict[str, Any]) -> None:
        """Dispatch one decoded Media Stream message."""
        event_type = message.get("event")
        if not isinstance(event_type, str):
            logger.warning(f"Dropping Twilio message with invalid event: {str(event_type)[:100]}")
            return
        handler = self._twilio_handlers.get(event_type)
        if handler is None:
            logger.debug(f"Ignoring Twilio event: {event_type}")
            return
        await handler(message)

    async def _on_connected(self, message: Dict[str, Any]) -> None:
        logger.info("Twilio media stream connected")

    async def _on_start(self, message: Dict[str, Any]) -> None:
        try:
            start = StartMessage.model_validate(message).start
        except ValidationError as e:
            logger.warning(f"Dropping malformed start message: {e}")
            return

        self.stream_sid = start.streamSid
        self.call_sid = start.callSid
        self.caller_number = start.caller_number
        logger.info(f"Twilio start: callSid={self.call_sid}, streamSid={self.stream_sid}, from={self.caller_number or '-'}")

        if self.gate.mark_stream_ready():
            await self._send_greeting()

    async def _on_media(self, message: Dict[str, Any]) -> None:
        # The inbound frame is not validated as a MediaMessage, the payload is opaque
        media = message.get("media")
        payload = media.get("payload") if isinstance(media, dict) else None
        if not payload:
            logger.debug("Dropping media message without payload")
            return
        if self.state in _ENDED:
            return
        await self.client.send_event(InputAudioAppendEvent(audio=payload))

    async def _on_mark(self, message: Dict[str, Any]) -> None:
        logger.debug(f"Twilio mark: {message.get('mark')}")

    async def _on_stop(self, message: Dict[str, Any]) -> None:
        logger.info(f"Twilio stop: callSid={self.call_sid}, streamSid={self.stream_sid}")
        await self.finalize()

    # ------------------------------------------------------------------ Realtime side

    async def handle_realtime_event(self, event: Dict[str, Any]) -> None:
        """Dispatch one decoded Realtime server event."""
        handler = self._realtime_handlers.get(event.get("type"))
        if handler is not None:
            await handler(event)

    async def _configure_model(self) -> None:
        update = SessionUpdateEvent(
            session=SessionConfig(
                instructions=build_instructions(self.is_night, self.day_part),
                voice=self.settings.realtime_voice,
                input_audio_transcription=InputAudioTranscription(model=self.settings.transcribe_model),
                turn_detection=self.turns.turn_detection(),
            )
        )
        await self.client.send_event(update)

    async def _on_model_ready(self, event: Dict[str, Any]) -> None:
        logger.info(f"Realtime session ready ({event.get('type')})")
        if self.gate.mark_model_ready():
            await self._send_greeting()

    async def _readiness_fallback(self) -> None:
        await asyncio.sleep(self.readiness_timeout)
        if not self.gate.model_ready:
            logger.warning(f"No session confirmation after {self.readiness_timeout}s, assuming model is ready")
        if self.gate.mark_model_ready():
            await self._send_greeting()

    async def _send_greeting(self) -> None:
        if self.greeted or self.state in _ENDED:
            return
        self.greeted = True
        self.state = SessionState.GREETING
        logger.info("Sending opening line")
        await self.client.send_event(
            ResponseCreateEvent(response=ResponseConfig(instructions=greeting_instructions()))
        )
        if self.state == SessionState.GREETING:
            self.state = SessionState.CONVERSING

    async def _on_response_created(self, event: Dict[str, Any]) -> None:
        self.response_in_flight = True

    async def _on_response_done(self, event: Dict[str, Any]) -> None:
        self.response_in_flight = False

    async def _on_audio_delta(self, event: Dict[str, Any]) -> None:
        delta = event.get("delta")
        if not delta:
            return
        if not self.stream_sid:
            self.dropped_audio_deltas += 1
            logger.debug("Dropping model audio: no streamSid yet")
            return
        await self.websocket.send_text(json.dumps(outbound_media(self.stream_sid, delta)))

    async def _on_client_transcription(self, event: Dict[str, Any]) -> None:
        text = event.get("transcript") or ""
        if not self.transcript.add_client(text):
            return
        logger.info(f"Caller said: {text.strip()}")
        if self.state not in _ENDED:
            await self.turns.after_client_utterance(self.client, self.response_in_flight)

    async def _on_agent_transcript(self, event: Dict[str, Any]) -> None:
        self.transcript.add_agent(event.get("transcript") or "")

    async def _on_model_error(self, event: Dict[str, Any]) -> None:
        logger.error(f"OpenAI Realtime error payload: {event.get('error') or event}")

    async def _listen(self) -> None:
        """Pump Realtime events until the connection is gone for good."""
        while True:
            async for event in self.client.events():
                try:
                    await self.handle_realtime_event(event)
                except Exception as e:
                    logger.error(f"Error handling Realtime event {event.get('type')}: {e}", exc_info=True)
            if not await self._recover_model_connection():
                return

    async def _recover_model_connection(self) -> bool:
        """
        Apply the dropped-connection policy.

        Returns:
            bool: True if the connection was re-established and listening should resume
        """
        if self.client.is_closing or self.state in _ENDED:
            return False

        if self.settings.model_reconnect and not self._reconnect_attempted:
            self._reconnect_attempted = True
            logger.warning(f"Realtime connection lost, reconnecting in {self.reconnect_delay}s")
            await asyncio.sleep(self.reconnect_delay)
            if self.state in _ENDED:
                return False
            try:
                await self.client.connect()
            except RealtimeConnectionError as e:
                logger.error(f"Realtime reconnection failed: {e}")
            else:
                # Responses in flight on the old connection will never complete
                self.response_in_flight = False
                await self._configure_model()
                logger.info("Realtime connection restored")
                return True

        logger.error(f"Realtime connection lost for call {self.call_sid or '?'}, hanging up")
        await close_websocket(self.websocket)
        return False

    async def _shutdown_model(self) -> None:
        current = asyncio.current_task()
        for task in (self._fallback_task, self._listener_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Session task ended with error: {e}")
        if not self.client.is_closing:
            await self.client.close()

    # ------------------------------------------------------------------ notification

    async def _notify_dispatcher(self) -> None:
        """
        Deliver the ticket SMS, falling back once to a raw-transcript SMS.

        Never raises: by now the caller is gone and nobody can act on an error.
        """
        transcript_text = self.transcript.render()
        ticket: Optional[Ticket] = None
        reason = EXTRACTION_FAILED_NOTE

        if self.transcript.is_empty():
            logger.warning(f"No transcription for call {self.call_sid or '?'}")
            ticket = Ticket.no_transcription(self.is_night)
        else:
            try:
                ticket = await self.extractor.extract(transcript_text, night=self.is_night)
            except ExtractionError as e:
                logger.error(f"Ticket extraction failed for call {self.call_sid or '?'}: {e}")
            except Exception as e:
                logger.error(f"Unexpected extraction error for call {self.call_sid or '?'}: {e}", exc_info=True)

        if ticket is not None:
            try:
                await self.notifier.send(format_ticket_message(ticket, self.call_sid, self.caller_number))
                return
            except Exception as e:
                logger.error(f"Ticket SMS failed for call {self.call_sid or '?'}: {e}")
                reason = SMS_FAILED_NOTE

        try:
            await self.notifier.send(
                format_fallback_message(
                    transcript_text,
                    call_sid=self.call_sid,
                    caller_number=self.caller_number,
                    night=self.is_night,
                    reason=reason,
                )
            )
            logger.info(f"Fallback SMS sent for call {self.call_sid or '?'}")
        except Exception as e:
            logger.error(f"Fallback SMS failed for call {self.call_sid or '?'}: {e}")
