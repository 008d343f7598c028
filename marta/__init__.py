"""
Marta - automated phone intake for a home-repair dispatch business

Marta answers inbound calls for "Reparaciones Express 24h Costa del Sol",
collects the caller's details through a speech-to-speech conversation with the
OpenAI Realtime API, and sends the on-call technician an SMS service ticket
when the call ends.

Architecture Overview:
- FastAPI server exposing the Twilio voice webhook and the Media Stream WebSocket
- One CallSession per call relaying G.711 audio between Twilio and OpenAI Realtime
- Post-call ticket extraction (OpenAI chat completions) and SMS dispatch (Twilio)

Key Components:
- bot: The call session state machine, Realtime client, readiness gate,
  turn-taking strategies and prompts
- config: Constants, logging setup and environment settings
- models: Wire schemas (Twilio, Realtime), the Ticket and the Transcript
- services: Clock context, ticket extractor and SMS notifier
- websocket_manager: Receive loop for Twilio Media Stream connections

Getting Started:
1. Set up environment variables (or a .env file):
   - OPENAI_API_KEY, TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN
   - TWILIO_SMS_FROM: sender number for dispatcher SMS
   - ALERT_TO_NUMBER: dispatcher phone number
   - Optional: REALTIME_MODEL, REALTIME_VOICE, EXTRACT_MODEL, TIMEZONE,
     TURN_MODE (auto|manual), MODEL_RECONNECT, PUBLIC_HOST, LOG_LEVEL

2. Start the server:
   ```bash
   python run.py
   ```

3. Point the Twilio number's voice webhook at https://your-host/voice
"""
