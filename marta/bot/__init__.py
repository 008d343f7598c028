"""
Core call-handling components.

Key components:
- call_session: CallSession, the per-call state machine relaying audio between
  Twilio and the OpenAI Realtime API and producing the dispatcher notification.
- realtime_api: RealtimeClient, a JSON-event WebSocket client for OpenAI Realtime.
- readiness: ReadinessGate, the two-signal join that releases the opening line once.
- turn_taking: Automatic (semantic VAD) and manual turn-taking strategies.
- prompts: Persona instructions, spoken scripts and the extraction prompt.
"""
