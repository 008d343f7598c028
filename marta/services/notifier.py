"""
SMS notification to the on-call dispatcher.

Formatting is deterministic: fixed labels in a fixed order, ``-`` for empty
values. Dispatch is a single Twilio Messages call; the fallback policy is the
caller's business.
"""

import asyncio
import logging
from typing import List, Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from marta.config.constants import EMPTY_FIELD, LOGGER_NAME, MAX_SMS_LENGTH
from marta.errors import NotificationError
from marta.models.ticket import NOT_APPLICABLE, Ticket

logger = logging.getLogger(LOGGER_NAME)

HEADER = "🛠️ AVISO URGENCIA (MARTA)"
EXTRACTION_FAILED_NOTE = "Error generando parte."
TRANSCRIPT_HEADER = "TRANSCRIPCIÓN:"

# (label, Ticket attribute), in message order
TICKET_LINES = [
    ("Servicio", "service"),
    ("Nombre", "name"),
    ("Tel", "phone"),
    ("Dirección", "address"),
    ("Zona", "zone"),
    ("Urgente", "urgent"),
    ("Acepto nocturno", "night_surcharge_accepted"),
    ("Avería", "fault"),
    ("Notas", "notes"),
]


def _value(text: Optional[str]) -> str:
    return text.strip() if text and text.strip() else EMPTY_FIELD


def _trailer(call_sid: Optional[str], caller_number: Optional[str]) -> List[str]:
    lines = []
    if caller_number:
        lines.append(f"Llamante: {caller_number}")
    if call_sid:
        lines.append(f"CallSid: {call_sid}")
    return lines


def format_ticket_message(
    ticket: Ticket, call_sid: Optional[str] = None, caller_number: Optional[str] = None
) -> str:
    """Render a ticket as the dispatcher SMS body."""
    lines = [HEADER]
    lines.extend(f"{label}: {_value(getattr(ticket, attr))}" for label, attr in TICKET_LINES)
    lines.extend(_trailer(call_sid, caller_number))
    return "\n".join(lines)


def format_fallback_message(
    transcript: str,
    call_sid: Optional[str] = None,
    caller_number: Optional[str] = None,
    night: bool = False,
    reason: str = EXTRACTION_FAILED_NOTE,
    max_length: int = MAX_SMS_LENGTH,
) -> str:
    """
    Render the raw-transcript message sent when no structured ticket can be delivered.

    The transcript is appended after the ticket-shaped header. If the body would
    exceed ``max_length`` the transcript is cut and ends with an ellipsis.
    """
    lines = [HEADER]
    for label, attr in TICKET_LINES:
        if attr == "night_surcharge_accepted":
            lines.append(f"{label}: {EMPTY_FIELD if night else NOT_APPLICABLE}")
        elif attr == "notes":
            lines.append(f"{label}: {reason}")
        else:
            lines.append(f"{label}: {EMPTY_FIELD}")
    lines.extend(_trailer(call_sid, caller_number))
    head = "\n".join(lines)

    transcript = (transcript or "").strip()
    if not transcript:
        return head

    prefix = f"{head}\n\n{TRANSCRIPT_HEADER}\n"
    room = max_length - len(prefix)
    if len(transcript) > room:
        transcript = transcript[:max(room - 1, 0)] + "…"
    return prefix + transcript


class SmsNotifier:
    """Sends dispatcher SMS through Twilio from a fixed sender to a fixed recipient."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        to_number: str,
        client: Optional[Client] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.to_number = to_number
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def _create(self, body: str) -> str:
        message = self.client.messages.create(
            to=self.to_number,
            from_=self.from_number,
            body=body,
        )
        return message.sid

    async def send(self, body: str) -> str:
        """
        Send one SMS.

        Returns:
            The Twilio message SID

        Raises:
            NotificationError: if the sender/recipient is missing or Twilio rejects the request
        """
        if not self.from_number:
            raise NotificationError("Missing TWILIO_SMS_FROM")
        if not self.to_number:
            raise NotificationError("Missing ALERT_TO_NUMBER")

        try:
            # The Twilio REST client is blocking
            sid = await asyncio.to_thread(self._create, body)
        except TwilioException as e:
            raise NotificationError(f"Twilio SMS failed: {e}") from e
        logger.info(f"SMS sent to dispatcher: {sid}")
        return sid
