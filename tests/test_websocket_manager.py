"""Tests for the Twilio media-stream receive loop."""

import json

import pytest

from marta.bot.call_session import CallSession, SessionState
from marta.errors import RealtimeConnectionError
from marta.models.ticket import Ticket
from marta.websocket_manager import MediaStreamManager
from tests.fakes import (
    FakeRealtimeClient,
    FakeTwilioWebSocket,
    media_event,
    start_event,
    stop_event,
)


@pytest.fixture
def sessions():
    return []


@pytest.fixture
def manager(sessions, extractor, notifier, day_context):
    """Manager whose sessions talk to fakes instead of OpenAI and Twilio."""

    def factory(websocket, settings):
        session = CallSession(
            websocket,
            settings,
            realtime_client=FakeRealtimeClient(),
            extractor=extractor,
            notifier=notifier,
            context=day_context,
            readiness_timeout=10,
        )
        sessions.append(session)
        return session

    return MediaStreamManager(session_factory=factory)


@pytest.mark.asyncio
async def test_full_call(manager, sessions, settings, extractor, notifier):
    extractor.extract.return_value = Ticket(service="electricidad")
    websocket = FakeTwilioWebSocket(
        [
            json.dumps({"event": "connected", "protocol": "Call", "version": "1.0.0"}),
            json.dumps(start_event()),
            json.dumps(media_event("AAA")),
            json.dumps(media_event("BBB")),
            json.dumps(stop_event()),
            json.dumps(media_event("AFTER")),
        ]
    )

    await manager.handle_websocket(websocket, settings)

    session = sessions[0]
    assert websocket.accepted
    assert websocket.closed
    assert session.state == SessionState.CLOSED
    appended = [e["audio"] for e in session.client.sent_of_type("input_audio_buffer.append")]
    assert appended == ["AAA", "BBB"]
    notifier.send.assert_called_once()
    assert manager.active_count == 0


@pytest.mark.asyncio
async def test_invalid_frames_are_dropped(manager, sessions, settings):
    websocket = FakeTwilioWebSocket(
        [
            "not json",
            json.dumps(["a", "list"]),
            json.dumps({"event": ["start"]}),
            json.dumps(start_event()),
            json.dumps(media_event("AAA")),
        ]
    )

    await manager.handle_websocket(websocket, settings)

    session = sessions[0]
    assert session.stream_sid == "SS1"
    assert [e["audio"] for e in session.client.sent_of_type("input_audio_buffer.append")] == ["AAA"]


@pytest.mark.asyncio
async def test_disconnect_without_stop_still_notifies(manager, sessions, settings, extractor, notifier):
    websocket = FakeTwilioWebSocket([json.dumps(start_event())])

    await manager.handle_websocket(websocket, settings)

    notifier.send.assert_called_once()
    assert sessions[0].state == SessionState.CLOSED
    assert sessions[0].client.closed


@pytest.mark.asyncio
async def test_model_unreachable_closes_stream(sessions, settings, extractor, notifier, day_context):
    def factory(websocket, settings):
        session = CallSession(
            websocket,
            settings,
            realtime_client=FakeRealtimeClient(connect_error=RealtimeConnectionError("down")),
            extractor=extractor,
            notifier=notifier,
            context=day_context,
        )
        sessions.append(session)
        return session

    manager = MediaStreamManager(session_factory=factory)
    websocket = FakeTwilioWebSocket([json.dumps(start_event())])

    await manager.handle_websocket(websocket, settings)

    assert websocket.closed
    assert websocket.frames
    notifier.send.assert_not_called()
    assert manager.active_count == 0


@pytest.mark.asyncio
async def test_sms_failure_still_closes_stream(manager, sessions, settings, notifier):
    websocket = FakeTwilioWebSocket([json.dumps(start_event()), json.dumps(stop_event())])
    notifier.send.side_effect = RuntimeError("unexpected")

    await manager.handle_websocket(websocket, settings)

    assert sessions[0].state == SessionState.CLOSED
    assert websocket.closed


def test_default_factory_is_call_session():
    assert MediaStreamManager().session_factory is CallSession
