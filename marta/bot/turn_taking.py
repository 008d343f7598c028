"""
Turn-taking strategies for the Realtime conversation.

``AutoTurns`` lets the model's semantic voice activity detection decide when
the caller has finished and answer on its own. ``ManualTurns`` keeps server VAD
for segmenting and transcribing the caller but stops the model from answering
on its own; the session asks for the next response only after each caller
utterance has been transcribed, so the model cannot talk over the caller or
loop on silence.
"""

import logging

from marta.bot.realtime_api import RealtimeClient
from marta.config.constants import LOGGER_NAME, TURN_MODE_AUTO, TURN_MODE_MANUAL
from marta.models.realtime_schemas import ResponseCreateEvent, TurnDetection

logger = logging.getLogger(LOGGER_NAME)


class TurnStrategy:
    """Base strategy: how turns are configured and what happens after the caller speaks."""

    mode = ""

    def turn_detection(self) -> TurnDetection:
        raise NotImplementedError

    async def after_client_utterance(self, client: RealtimeClient, response_in_flight: bool) -> bool:
        """
        Called once per completed caller transcription.

        Returns:
            True if a model response was requested
        """
        return False


class AutoTurns(TurnStrategy):
    mode = TURN_MODE_AUTO

    def turn_detection(self) -> TurnDetection:
        return TurnDetection(type="semantic_vad")


class ManualTurns(TurnStrategy):
    mode = TURN_MODE_MANUAL

    def turn_detection(self) -> TurnDetection:
        return TurnDetection(type="server_vad", create_response=False)

    async def after_client_utterance(self, client: RealtimeClient, response_in_flight: bool) -> bool:
        if response_in_flight:
            logger.debug("Response already in flight, not requesting another turn")
            return False
        return await client.send_event(ResponseCreateEvent())


def strategy_for(mode: str) -> TurnStrategy:
    """Strategy for a TURN_MODE value."""
    if mode == TURN_MODE_MANUAL:
        return ManualTurns()
    if mode == TURN_MODE_AUTO:
        return AutoTurns()
    raise ValueError(f"Unknown turn mode: {mode}")
