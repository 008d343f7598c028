"""
FastAPI server for the Marta phone-intake agent.

This module initializes and configures the FastAPI application that Twilio talks to:
- ``POST /voice``: the inbound-call webhook. Answers with TwiML that connects a
  bidirectional Media Stream back to this server.
- ``/twilio-media``: the Media Stream WebSocket. Each connection becomes one
  CallSession relaying audio to the OpenAI Realtime API.
- ``/`` and ``/health``: service information and liveness.

Configuration is validated when the application starts, so a missing credential
stops the server instead of failing on the first call.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, WebSocket
from twilio.twiml.voice_response import Connect, Stream, VoiceResponse

from marta.config.logging_config import configure_logging
from marta.config.settings import get_settings, load_dotenv_file, validate_settings
from marta.websocket_manager import MediaStreamManager

load_dotenv_file()

logger = configure_logging()

PORT = int(os.getenv("PORT", "10000"))
HOST = os.getenv("HOST", "0.0.0.0")

MEDIA_STREAM_PATH = "/twilio-media"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = validate_settings(get_settings())
    logger.info(
        f"Marta ready: realtime_model={settings.realtime_model}, voice={settings.realtime_voice}, "
        f"turn_mode={settings.turn_mode}, timezone={settings.timezone}"
    )
    yield


app = FastAPI(
    title="Marta Intake Agent",
    description="Twilio Media Streams to OpenAI Realtime phone intake with SMS dispatch",
    version="1.0.0",
    lifespan=lifespan,
)

media_stream_manager = MediaStreamManager()


def media_stream_url(request: Request) -> str:
    """WebSocket URL Twilio must connect to, as seen from outside."""
    host = (
        get_settings().public_host
        or request.headers.get("X-Forwarded-Host")
        or request.headers.get("host", "localhost")
    )
    return f"wss://{host}{MEDIA_STREAM_PATH}"


@app.post("/voice")
async def incoming_call(request: Request):
    """Twilio webhook for incoming calls.

    Returns TwiML that connects the call to our Media Stream WebSocket, passing
    the caller number and call id as custom parameters. No ``track`` attribute
    is set: Twilio rejects it on bidirectional ``<Connect><Stream>``.
    """
    form = await request.form()
    call_sid = form.get("CallSid") or ""
    caller = form.get("From") or ""
    logger.info(f"Incoming call: CallSid={call_sid}, From={caller or '-'}")

    stream = Stream(url=media_stream_url(request))
    stream.parameter(name="From", value=caller)
    stream.parameter(name="CallSid", value=call_sid)

    connect = Connect()
    connect.append(stream)
    response = VoiceResponse()
    response.append(connect)

    return Response(content=str(response), media_type="text/xml")


@app.websocket(MEDIA_STREAM_PATH)
async def media_stream_endpoint(websocket: WebSocket):
    """Bidirectional Twilio Media Stream for one call.

    Receives ``connected``, ``start``, ``media``, ``mark`` and ``stop`` events and
    sends ``media`` events carrying the model's audio back to the caller.
    """
    await media_stream_manager.handle_websocket(websocket, get_settings())


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status, whether the OpenAI key is configured, and live call count.
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(get_settings().openai_api_key),
        "active_calls": media_stream_manager.active_count,
    }


@app.get("/")
async def root():
    """Basic information about the service."""
    return {
        "name": "Marta Intake Agent",
        "description": "Marta 24h está viva ✅",
        "version": "1.0.0",
        "endpoints": {
            "/voice": "Twilio inbound-call webhook (TwiML)",
            MEDIA_STREAM_PATH: "Twilio Media Stream WebSocket",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{HOST}:{PORT}")
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        ws_ping_interval=5,  # Keep Twilio streams alive through proxies
        ws_ping_timeout=20,
        ws_max_size=16777216,
        http="h11",
    )
