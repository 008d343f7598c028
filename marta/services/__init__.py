"""
Services module for external API integrations of the intake agent.

Key components:
- clock: Resolves the local time of the business, the night flag and the day part.
- ticket_extractor: Turns the call transcript into a structured ``Ticket`` with one
  request to the OpenAI chat completions endpoint (httpx).
- notifier: Formats tickets and fallback messages and sends them to the dispatcher
  through the Twilio Messages API.

Usage examples:
```python
from marta.services.clock import resolve_call_context
from marta.services.notifier import SmsNotifier, format_ticket_message
from marta.services.ticket_extractor import TicketExtractor

context = resolve_call_context(timezone="Europe/Madrid")
ticket = await TicketExtractor(api_key).extract(transcript, night=context.is_night)
await SmsNotifier(sid, token, "+34600000000", "+34611111111").send(
    format_ticket_message(ticket, call_sid="CA123")
)
```
"""
