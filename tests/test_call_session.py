"""
Tests for CallSession: readiness, audio relay, transcript, finalization
and the dropped-model policy, with both network sides faked.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from marta.bot.call_session import CallSession, SessionState
from marta.bot.turn_taking import ManualTurns
from marta.config.constants import CHAT_COMPLETIONS_URL
from marta.errors import ExtractionError, NotificationError, RealtimeConnectionError
from marta.models.ticket import Ticket
from marta.services.ticket_extractor import TicketExtractor
from tests.fakes import (
    FakeRealtimeClient,
    drain,
    media_event,
    start_event,
    stop_event,
)


def make_session(twilio_ws, settings, fake_client, extractor, notifier, context, **kwargs):
    kwargs.setdefault("readiness_timeout", 10)
    kwargs.setdefault("reconnect_delay", 0)
    return CallSession(
        twilio_ws,
        settings,
        realtime_client=fake_client,
        extractor=extractor,
        notifier=notifier,
        context=context,
        **kwargs,
    )


@pytest.fixture
def session(twilio_ws, settings, fake_client, extractor, notifier, day_context):
    return make_session(twilio_ws, settings, fake_client, extractor, notifier, day_context)


def greetings(fake_client):
    return [
        e for e in fake_client.sent_of_type("response.create")
        if "Hola, soy Marta" in e.get("response", {}).get("instructions", "")
    ]


@pytest.mark.asyncio
async def test_start_configures_model(session, fake_client):
    assert await session.start()

    assert session.state == SessionState.AWAITING_READINESS
    update = fake_client.sent[0]
    assert update["type"] == "session.update"
    assert update["session"]["input_audio_format"] == "g711_ulaw"
    assert update["session"]["output_audio_format"] == "g711_ulaw"
    assert update["session"]["turn_detection"] == {"type": "semantic_vad"}
    assert update["session"]["temperature"] == 0.7
    assert "Reparaciones Express 24h Costa del Sol" in update["session"]["instructions"]

    await session.close()


@pytest.mark.asyncio
async def test_start_fails_when_model_unreachable(twilio_ws, settings, extractor, notifier, day_context):
    client = FakeRealtimeClient(connect_error=RealtimeConnectionError("refused"))
    session = make_session(twilio_ws, settings, client, extractor, notifier, day_context)

    assert await session.start() is False
    assert session.state == SessionState.CLOSED
    assert client.sent == []

    await session.close()
    notifier.send.assert_not_called()


@pytest.mark.asyncio
async def test_happy_path_call(twilio_ws, settings, fake_client, notifier, day_context):
    extractor = TicketExtractor("sk-test")
    session = make_session(twilio_ws, settings, fake_client, extractor, notifier, day_context)
    ticket_json = {
        "nombre": "Ana",
        "telefono": "600111222",
        "direccion": "Calle Sol 3",
        "zona": "Marbella",
        "servicio": "fontanería",
        "averia": "fuga bajo el fregadero",
        "urgente": "si",
        "aceptoNocturno": "si",
        "notas": "",
    }

    with respx.mock:
        route = respx.post(CHAT_COMPLETIONS_URL).mock(
            return_value=httpx.Response(
                200, json={"choices": [{"message": {"content": json.dumps(ticket_json)}}]}
            )
        )

        await session.start()
        await session.handle_twilio_event(start_event())
        await session.handle_realtime_event({"type": "session.updated"})
        assert len(greetings(fake_client)) == 1
        assert session.state == SessionState.CONVERSING

        for payload in ("AAA", "BBB", "CCC"):
            await session.handle_twilio_event(media_event(payload))
        appended = [e["audio"] for e in fake_client.sent_of_type("input_audio_buffer.append")]
        assert appended == ["AAA", "BBB", "CCC"]

        await session.handle_realtime_event(
            {
                "type": "conversation.item.input_audio_transcription.completed",
                "transcript": "Necesito un fontanero",
            }
        )
        assert session.transcript.render() == "CLIENT: Necesito un fontanero\n"

        await session.handle_twilio_event(stop_event())

        request = json.loads(route.calls.last.request.content)
        assert "CLIENT: Necesito un fontanero" in request["messages"][0]["content"]

    body = notifier.send.call_args[0][0]
    assert "Servicio: fontanería" in body
    assert "Acepto nocturno: n-a" in body
    assert "CallSid: CA1" in body
    assert session.state == SessionState.CLOSED
    assert fake_client.closed


@pytest.mark.parametrize("stream_first", [True, False])
@pytest.mark.asyncio
async def test_greeting_sent_once_in_either_order(session, fake_client, stream_first):
    await session.start()
    if stream_first:
        await session.handle_twilio_event(start_event())
        assert greetings(fake_client) == []
        await session.handle_realtime_event({"type": "session.updated"})
    else:
        await session.handle_realtime_event({"type": "session.created"})
        assert greetings(fake_client) == []
        await session.handle_twilio_event(start_event())

    await session.handle_realtime_event({"type": "session.updated"})
    await session.handle_twilio_event(start_event())

    assert len(greetings(fake_client)) == 1
    await session.close()


@pytest.mark.asyncio
async def test_readiness_fallback_timer(twilio_ws, settings, fake_client, extractor, notifier, day_context):
    session = make_session(
        twilio_ws, settings, fake_client, extractor, notifier, day_context, readiness_timeout=0.01
    )
    await session.start()
    await session.handle_twilio_event(start_event())
    assert greetings(fake_client) == []

    await asyncio.sleep(0.05)
    assert len(greetings(fake_client)) == 1

    await session.handle_realtime_event({"type": "session.updated"})
    assert len(greetings(fake_client)) == 1
    await session.close()


@pytest.mark.asyncio
async def test_audio_delta_dropped_before_stream_sid(session, twilio_ws):
    await session.start()

    await session.handle_realtime_event({"type": "response.audio.delta", "delta": "EARLY"})
    assert twilio_ws.sent_messages == []
    assert session.dropped_audio_deltas == 1

    await session.handle_twilio_event(start_event())
    await session.handle_realtime_event({"type": "response.audio.delta", "delta": "D1"})
    await session.handle_realtime_event({"type": "response.audio.delta", "delta": "D2"})

    assert twilio_ws.sent_json() == [
        {"event": "media", "streamSid": "SS1", "media": {"payload": "D1"}},
        {"event": "media", "streamSid": "SS1", "media": {"payload": "D2"}},
    ]
    await session.close()


@pytest.mark.asyncio
async def test_model_events_flow_through_listener(session, fake_client, twilio_ws):
    await session.start()
    await session.handle_twilio_event(start_event())

    fake_client.push({"type": "session.updated"})
    fake_client.push({"type": "response.audio.delta", "delta": "X1"})
    fake_client.push({"type": "response.audio_transcript.done", "transcript": "Hola, soy Marta"})
    await drain()

    assert len(greetings(fake_client)) == 1
    assert [m["media"]["payload"] for m in twilio_ws.sent_json()] == ["X1"]
    assert session.transcript.render() == "MARTA: Hola, soy Marta\n"
    await session.close()


@pytest.mark.asyncio
async def test_media_ignored_after_stop(session, fake_client, extractor):
    extractor.extract.return_value = Ticket()
    await session.start()
    await session.handle_twilio_event(start_event())
    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "hola"}
    )
    await session.handle_twilio_event(stop_event())

    await session.handle_twilio_event(media_event("LATE"))
    assert fake_client.sent_of_type("input_audio_buffer.append") == []


@pytest.mark.asyncio
async def test_media_without_payload_dropped(session, fake_client):
    await session.start()
    await session.handle_twilio_event({"event": "media", "media": {}})
    assert fake_client.sent_of_type("input_audio_buffer.append") == []
    await session.close()


@pytest.mark.asyncio
async def test_malformed_start_is_dropped(session, fake_client):
    await session.start()
    await session.handle_realtime_event({"type": "session.updated"})
    await session.handle_twilio_event({"event": "start", "start": {"callSid": "CA1"}})

    assert session.stream_sid is None
    assert greetings(fake_client) == []
    await session.close()


@respx.mock
@pytest.mark.asyncio
async def test_extraction_http_error_sends_fallback(twilio_ws, settings, fake_client, notifier, day_context):
    respx.post(CHAT_COMPLETIONS_URL).mock(return_value=httpx.Response(500, text="upstream error"))
    session = make_session(twilio_ws, settings, fake_client, TicketExtractor("sk-test"), notifier, day_context)
    await session.start()
    await session.handle_twilio_event(start_event())
    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "Se me inunda la cocina"}
    )
    await session.handle_twilio_event(stop_event())

    notifier.send.assert_called_once()
    body = notifier.send.call_args[0][0]
    assert "CLIENT: Se me inunda la cocina" in body
    assert "CallSid: CA1" in body
    assert "Notas: Error generando parte." in body
    assert session.state == SessionState.CLOSED


@pytest.mark.asyncio
async def test_extraction_error_sends_fallback(session, extractor, notifier):
    extractor.extract.side_effect = ExtractionError("no JSON object")
    await session.start()
    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "hola"}
    )
    await session.finalize()

    notifier.send.assert_called_once()
    assert "Notas: Error generando parte." in notifier.send.call_args[0][0]


@pytest.mark.asyncio
async def test_sms_failures_still_close_session(session, fake_client, extractor, notifier):
    extractor.extract.return_value = Ticket(service="termo")
    notifier.send.side_effect = NotificationError("twilio down")
    await session.start()
    await session.handle_twilio_event(start_event())
    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "el termo no calienta"}
    )

    await session.handle_twilio_event(stop_event())

    assert notifier.send.call_count == 2
    fallback = notifier.send.call_args_list[1][0][0]
    assert "Notas: Error enviando parte." in fallback
    assert "CLIENT: el termo no calienta" in fallback
    assert session.state == SessionState.CLOSED
    assert fake_client.closed


@pytest.mark.asyncio
async def test_empty_transcript_skips_extraction(twilio_ws, settings, fake_client, extractor, notifier, night_context):
    session = make_session(twilio_ws, settings, fake_client, extractor, notifier, night_context)
    await session.start()
    await session.handle_twilio_event(start_event())
    await session.handle_twilio_event(stop_event())

    extractor.extract.assert_not_called()
    body = notifier.send.call_args[0][0]
    assert "Notas: Sin transcripción (posible fallo de audio)." in body
    assert "Acepto nocturno: no" in body


@pytest.mark.asyncio
async def test_stop_is_idempotent(session, extractor, notifier):
    await session.start()
    await session.handle_twilio_event(start_event())
    await session.handle_twilio_event(stop_event())
    await session.handle_twilio_event(stop_event())
    await session.close()

    notifier.send.assert_called_once()


@pytest.mark.asyncio
async def test_close_without_stop_finalizes(session, extractor, notifier, fake_client):
    extractor.extract.return_value = Ticket(service="cerrajería")
    await session.start()
    await session.handle_twilio_event(start_event())
    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "me he quedado fuera"}
    )

    await session.close()

    extractor.extract.assert_awaited_once_with("CLIENT: me he quedado fuera\n", night=False)
    assert "Servicio: cerrajería" in notifier.send.call_args[0][0]
    assert session.state == SessionState.CLOSED
    assert fake_client.closed


@pytest.mark.asyncio
async def test_model_drop_hangs_up(session, fake_client, twilio_ws):
    await session.start()
    await session.handle_twilio_event(start_event())

    fake_client.drop()
    await drain()

    assert twilio_ws.closed
    assert fake_client.connect_calls == 1
    await session.close()


@pytest.mark.asyncio
async def test_model_drop_reconnects_once(
    twilio_ws, settings, fake_client, extractor, notifier, day_context
):
    settings = settings.model_copy(update={"model_reconnect": True})
    session = make_session(twilio_ws, settings, fake_client, extractor, notifier, day_context)
    await session.start()
    await session.handle_twilio_event(start_event())
    await session.handle_realtime_event({"type": "session.updated"})
    assert len(greetings(fake_client)) == 1

    fake_client.drop()
    await drain()

    assert fake_client.connect_calls == 2
    assert len(fake_client.sent_of_type("session.update")) == 2
    assert len(greetings(fake_client)) == 1
    assert not twilio_ws.closed

    fake_client.drop()
    await drain()

    assert fake_client.connect_calls == 2
    assert twilio_ws.closed
    await session.close()


@pytest.mark.asyncio
async def test_reconnect_clears_response_in_flight(
    twilio_ws, settings, fake_client, extractor, notifier, day_context
):
    settings = settings.model_copy(update={"model_reconnect": True})
    session = make_session(
        twilio_ws, settings, fake_client, extractor, notifier, day_context, turn_strategy=ManualTurns()
    )
    await session.start()
    await session.handle_twilio_event(start_event())

    fake_client.push({"type": "response.created"})
    await drain()
    assert session.response_in_flight

    fake_client.drop()
    await drain()
    assert fake_client.connect_calls == 2
    assert not session.response_in_flight

    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "Sigo aquí"}
    )
    assert len(fake_client.sent_of_type("response.create")) == 1
    await session.close()


@pytest.mark.asyncio
async def test_failed_reconnect_hangs_up(twilio_ws, settings, extractor, notifier, day_context):
    settings = settings.model_copy(update={"model_reconnect": True})
    client = FakeRealtimeClient(reconnect_error=RealtimeConnectionError("gone"))
    session = make_session(twilio_ws, settings, client, extractor, notifier, day_context)
    await session.start()

    client.drop()
    await drain()

    assert client.connect_calls == 2
    assert twilio_ws.closed
    await session.close()


@pytest.mark.asyncio
async def test_manual_turns_request_responses(
    twilio_ws, settings, fake_client, extractor, notifier, day_context
):
    session = make_session(
        twilio_ws, settings, fake_client, extractor, notifier, day_context, turn_strategy=ManualTurns()
    )
    await session.start()
    assert fake_client.sent[0]["session"]["turn_detection"] == {
        "type": "server_vad",
        "create_response": False,
    }

    transcription = {
        "type": "conversation.item.input_audio_transcription.completed",
        "transcript": "Tengo un problema con la luz",
    }
    await session.handle_realtime_event(transcription)
    assert len(fake_client.sent_of_type("response.create")) == 1

    await session.handle_realtime_event({"type": "response.created"})
    await session.handle_realtime_event(transcription)
    assert len(fake_client.sent_of_type("response.create")) == 1

    await session.handle_realtime_event({"type": "response.done"})
    await session.handle_realtime_event(transcription)
    assert len(fake_client.sent_of_type("response.create")) == 2
    await session.close()


@pytest.mark.asyncio
async def test_blank_transcription_ignored(session):
    await session.start()
    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "   "}
    )
    assert session.transcript.is_empty()
    await session.close()


@pytest.mark.asyncio
async def test_unknown_events_ignored(session, fake_client):
    await session.start()
    await session.handle_twilio_event({"event": "dtmf"})
    await session.handle_realtime_event({"type": "rate_limits.updated"})
    await session.handle_realtime_event({"type": "error", "error": {"message": "bad"}})
    assert len(fake_client.sent) == 1
    await session.close()


@pytest.mark.parametrize("event", [["media"], {"name": "media"}, None, 7])
@pytest.mark.asyncio
async def test_invalid_twilio_event_field_is_dropped(session, fake_client, event):
    await session.start()
    await session.handle_twilio_event({"event": event, "media": {"payload": "AAA"}})
    await session.handle_twilio_event(media_event("BBB"))

    assert [e["audio"] for e in fake_client.sent_of_type("input_audio_buffer.append")] == ["BBB"]
    await session.close()


@pytest.mark.asyncio
async def test_unexpected_extraction_error_falls_back(session, extractor, notifier):
    extractor.extract = AsyncMock(side_effect=RuntimeError("boom"))
    await session.start()
    await session.handle_realtime_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "hola"}
    )
    await session.finalize()

    assert "Notas: Error generando parte." in notifier.send.call_args[0][0]
