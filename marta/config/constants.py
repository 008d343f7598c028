"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol event names, audio formats, business
rules and default model settings.
"""

# Logger name used throughout the application
LOGGER_NAME = "marta"

# Business identity
BUSINESS_NAME = "Reparaciones Express 24h Costa del Sol"
AGENT_NAME = "Marta"

# Default OpenAI models
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2025-06-03"
DEFAULT_REALTIME_VOICE = "alloy"
DEFAULT_TRANSCRIBE_MODEL = "gpt-4o-mini-transcribe"
DEFAULT_EXTRACT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEZONE = "Europe/Madrid"

# OpenAI endpoints
REALTIME_URL = "wss://api.openai.com/v1/realtime"
CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"

# Audio format (Twilio Media Streams carry 8kHz G.711 mu-law)
AUDIO_FORMAT_G711_ULAW = "g711_ulaw"

# Night window and day parts (local hours)
NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 8
AFTERNOON_START_HOUR = 14
DAY_PART_MORNING = "mañana"
DAY_PART_AFTERNOON = "tarde"
DAY_PART_NIGHT = "noche"

# Session timing (seconds)
READINESS_FALLBACK_SECONDS = 1.0
RECONNECT_DELAY_SECONDS = 1.0
EXTRACTION_TIMEOUT_SECONDS = 20.0

# Turn-taking modes
TURN_MODE_AUTO = "auto"
TURN_MODE_MANUAL = "manual"

# SMS
MAX_SMS_LENGTH = 1600
EMPTY_FIELD = "-"

# Twilio Media Streams event types
TWILIO_EVENT_CONNECTED = "connected"
TWILIO_EVENT_START = "start"
TWILIO_EVENT_MEDIA = "media"
TWILIO_EVENT_MARK = "mark"
TWILIO_EVENT_STOP = "stop"

# OpenAI Realtime server events
REALTIME_SESSION_CREATED = "session.created"
REALTIME_SESSION_UPDATED = "session.updated"
REALTIME_RESPONSE_CREATED = "response.created"
REALTIME_RESPONSE_DONE = "response.done"
REALTIME_AUDIO_DELTA = "response.audio.delta"
REALTIME_AUDIO_TRANSCRIPT_DONE = "response.audio_transcript.done"
REALTIME_TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
REALTIME_ERROR = "error"
