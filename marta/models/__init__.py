"""
Models module for data structures used by the intake agent.

Key components:
- twilio_schemas: Pydantic models for Twilio Media Streams events.
- realtime_schemas: Pydantic models for OpenAI Realtime client events.
- ticket: The structured service Ticket and its business rules.
- transcript: The append-only call Transcript.

Usage examples:
```python
from marta.models.ticket import Ticket
from marta.models.twilio_schemas import StartMessage

start = StartMessage.model_validate({
    "event": "start",
    "start": {"streamSid": "MZ123", "callSid": "CA123", "customParameters": {"From": "+34600111222"}},
})
ticket = Ticket.from_extraction({"nombre": "Ana", "servicio": "fontaneria"}, night=False)
assert ticket.service == "fontanería"
assert ticket.night_surcharge_accepted == "n-a"
```
"""

from marta.models.ticket import SERVICE_CATEGORIES, Ticket
from marta.models.transcript import Transcript
from marta.models.twilio_schemas import (
    ConnectedMessage,
    MarkMessage,
    MediaMessage,
    StartMessage,
    StopMessage,
)
