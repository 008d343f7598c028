"""
Transcript accumulated during a call.

The transcript is an append-only sequence of labeled utterances built from the
Realtime API's speech-recognition events. It is rendered as plain text, one
``LABEL: text`` line per utterance, for the ticket extractor and the fallback SMS.
"""

from typing import List, Tuple

CLIENT_LABEL = "CLIENT"
AGENT_LABEL = "MARTA"


class Transcript:
    """Append-only list of (label, text) utterances."""

    def __init__(self):
        self._utterances: List[Tuple[str, str]] = []

    def append(self, label: str, text: str) -> bool:
        """
        Append an utterance.

        Args:
            label: Speaker label, e.g. CLIENT_LABEL
            text: Recognized text; blank text is ignored

        Returns:
            True if the utterance was recorded
        """
        text = (text or "").strip()
        if not text:
            return False
        self._utterances.append((label, text))
        return True

    def add_client(self, text: str) -> bool:
        return self.append(CLIENT_LABEL, text)

    def add_agent(self, text: str) -> bool:
        return self.append(AGENT_LABEL, text)

    @property
    def utterances(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(self._utterances)

    def is_empty(self) -> bool:
        return not self._utterances

    def render(self) -> str:
        return "".join(f"{label}: {text}\n" for label, text in self._utterances)

    def __len__(self) -> int:
        return len(self._utterances)

    def __str__(self) -> str:
        return self.render()
