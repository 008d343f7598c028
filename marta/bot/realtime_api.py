import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from marta.config.constants import LOGGER_NAME, REALTIME_URL
from marta.errors import RealtimeConnectionError
from marta.models.realtime_schemas import RealtimeBaseMessage, dump_event

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 10  # seconds
SEND_TIMEOUT = 5.0  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio deltas
WS_PING_INTERVAL = 5  # seconds between pings
WS_PING_TIMEOUT = 10


class RealtimeClient:
    """
    Client for one OpenAI Realtime API conversation over WebSocket.

    The client only moves JSON events: ``send_event`` writes one client event and
    ``events`` yields server events until the connection closes. It never
    reconnects on its own; the call session decides what a lost connection means.
    """

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self.ws = None
        self._connection_active = False
        self._is_closing = False
        self._last_activity = 0.0

    @property
    def url(self) -> str:
        return f"{REALTIME_URL}?model={self.model}"

    @property
    def is_open(self) -> bool:
        return self.ws is not None and self._connection_active

    @property
    def is_closing(self) -> bool:
        """True once close() was called, so a later closure is expected."""
        return self._is_closing

    async def connect(self) -> None:
        """
        Connect to the OpenAI Realtime WebSocket endpoint.

        Raises:
            RealtimeConnectionError: if the connection cannot be opened in time
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        self._is_closing = False

        try:
            logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
            connection_start = time.time()
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    self.url,
                    max_size=WS_MAX_SIZE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=WS_PING_TIMEOUT,
                    compression=None,  # Disable compression for lower latency
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
            logger.debug(f"Realtime connection established in {time.time() - connection_start:.2f} seconds")
        except asyncio.TimeoutError as e:
            self._connection_active = False
            raise RealtimeConnectionError(
                f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)"
            ) from e
        except (OSError, websockets.exceptions.WebSocketException) as e:
            self._connection_active = False
            raise RealtimeConnectionError(f"Failed to connect to OpenAI Realtime API: {e}") from e

        self._connection_active = True
        self._last_activity = time.time()
        logger.info("Successfully connected to OpenAI Realtime API")

    async def send_event(self, event: Union[RealtimeBaseMessage, Dict[str, Any]]) -> bool:
        """
        Send one client event.

        Args:
            event: A Realtime client event model or an already-shaped dict

        Returns:
            bool: True if the event was written, False if the connection is gone
        """
        if not self.is_open:
            logger.debug("Cannot send event - Realtime connection not active")
            return False

        payload = dump_event(event) if isinstance(event, RealtimeBaseMessage) else json.dumps(event)
        try:
            await asyncio.wait_for(self.ws.send(payload), timeout=SEND_TIMEOUT)
            self._last_activity = time.time()
            return True
        except asyncio.TimeoutError:
            logger.warning("Timeout while sending event to OpenAI Realtime API")
            return False
        except ConnectionClosed as e:
            logger.warning(f"Realtime connection closed while sending: {e}")
            self._connection_active = False
            return False

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield decoded server events until the connection closes.

        Frames that are not JSON objects are dropped. A normal or abnormal
        closure both end the iteration; neither raises.
        """
        if self.ws is None:
            logger.error("WebSocket not initialized for receive loop")
            return

        try:
            async for message in self.ws:
                self._last_activity = time.time()
                try:
                    data = json.loads(message)
                except (TypeError, ValueError):
                    logger.warning(f"Received invalid JSON from Realtime API: {str(message)[:100]}...")
                    continue
                if not isinstance(data, dict) or "type" not in data:
                    logger.debug("Dropping Realtime frame without a type")
                    continue
                yield data
        except ConnectionClosedError as e:
            logger.warning(f"Realtime connection closed unexpectedly: {e}")
        finally:
            self._connection_active = False
            logger.info("Realtime receive loop exited, connection marked as inactive")

    async def close(self) -> None:
        """Close the WebSocket connection."""
        self._is_closing = True
        self._connection_active = False
        if self.ws is not None:
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"Error closing Realtime WebSocket: {e}")
        logger.info("OpenAI Realtime client closed")
