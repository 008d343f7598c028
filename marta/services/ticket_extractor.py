"""
Turns a call transcript into a structured service ticket.

One request to the chat completions endpoint with a JSON-output constraint.
The reply is expected to be a single JSON object; when the model wraps it in
prose, only the outermost balanced ``{...}`` block is parsed. Every failure is
raised as ``ExtractionError`` so callers can tell "no data" from "failed".
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from marta.bot.prompts import build_extraction_prompt
from marta.config.constants import (
    CHAT_COMPLETIONS_URL,
    DEFAULT_EXTRACT_MODEL,
    EXTRACTION_TIMEOUT_SECONDS,
    LOGGER_NAME,
)
from marta.errors import ExtractionError
from marta.models.ticket import Ticket

logger = logging.getLogger(LOGGER_NAME)


def find_json_object(text: str) -> Optional[str]:
    """
    Return the outermost balanced ``{...}`` substring of ``text``.

    Braces inside JSON string literals are not counted. Returns None when there
    is no opening brace or it is never closed.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def parse_ticket_json(text: str) -> Dict[str, Any]:
    """
    Parse the model reply into a JSON object.

    Raises:
        ExtractionError: if no JSON object can be read from the reply
    """
    if not text or not text.strip():
        raise ExtractionError("Empty extraction reply")

    stripped = text.strip()
    try:
        data = json.loads(stripped)
    except ValueError:
        block = find_json_object(stripped)
        if block is None:
            raise ExtractionError("No JSON object in extraction reply")
        try:
            data = json.loads(block)
        except ValueError as e:
            raise ExtractionError(f"Invalid JSON in extraction reply: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError(f"Extraction reply is a {type(data).__name__}, not an object")
    return data


class TicketExtractor:
    """Client for the extraction endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_EXTRACT_MODEL,
        url: str = CHAT_COMPLETIONS_URL,
        timeout: float = EXTRACTION_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout

    def _request_body(self, transcript: str, night: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "user", "content": build_extraction_prompt(transcript, night)},
            ],
        }

    async def extract(self, transcript: str, night: bool) -> Ticket:
        """
        Extract a ticket from the transcript.

        Args:
            transcript: Rendered transcript text
            night: Whether the call happened in the night window

        Raises:
            ExtractionError: on HTTP failure, unexpected response shape or unparsable JSON
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=self._request_body(transcript, night),
                )
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as e:
            raise ExtractionError(
                f"Extraction request failed: {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise ExtractionError(f"Extraction request failed: {e}") from e
        except ValueError as e:
            raise ExtractionError("Extraction response is not JSON") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExtractionError("Unexpected extraction response shape") from e

        ticket = Ticket.from_extraction(parse_ticket_json(content or ""), night=night)
        logger.info(f"Ticket extracted: servicio={ticket.service or '-'}, urgente={ticket.urgent or '-'}")
        return ticket
