"""
WebSocket connection manager for Twilio Media Streams.

This module implements the server side of a bidirectional Twilio Media Stream:
- Accept the connection and create one CallSession for it
- Decode each incoming JSON frame and hand it to the session
- Close the session (and with it the Realtime connection) when the stream ends

Sessions are isolated from each other; the manager only keeps a set of live
sessions so the health endpoint can report how many calls are in progress.
"""

import json
import logging
from typing import Callable, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from marta.bot.call_session import CallSession, close_websocket
from marta.config.constants import LOGGER_NAME
from marta.config.settings import Settings

logger = logging.getLogger(LOGGER_NAME)

SessionFactory = Callable[[WebSocket, Settings], CallSession]


class MediaStreamManager:
    """Owns the receive loop of every Twilio media-stream connection."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory: SessionFactory = session_factory or CallSession
        self.active_sessions: Set[CallSession] = set()

    @property
    def active_count(self) -> int:
        return len(self.active_sessions)

    async def handle_websocket(self, websocket: WebSocket, settings: Settings) -> None:
        """Handle a media-stream connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object
            settings (Settings): Process configuration for the new session

        The connection stays open until Twilio sends ``stop`` (the session then
        notifies the dispatcher before the loop ends), the caller disconnects,
        or the session hangs up because the model connection was lost.
        """
        await websocket.accept()
        logger.info("Twilio WebSocket connected")

        session = self.session_factory(websocket, settings)
        self.active_sessions.add(session)

        try:
            if not await session.start():
                return

            while not session.is_closed:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except ValueError:
                    logger.warning(f"Dropping non-JSON frame from Twilio: {data[:100]}")
                    continue
                if not isinstance(message, dict):
                    logger.warning("Dropping non-object frame from Twilio")
                    continue

                await session.handle_twilio_event(message)

        except WebSocketDisconnect as e:
            logger.info(f"Twilio WebSocket disconnected (code {e.code})")
        except Exception as e:
            logger.error(f"Error in media stream connection: {e}", exc_info=True)
        finally:
            await session.close()
            self.active_sessions.discard(session)
            await close_websocket(websocket)
            logger.info("Twilio WebSocket closed")
