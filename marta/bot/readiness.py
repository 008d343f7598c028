"""
Two-condition readiness gate for the opening greeting.

The greeting may only be spoken once the model has its session instructions
and Twilio has given us a streamSid to play audio on. The two signals arrive
in either order; whichever completes the pair opens the gate, exactly once.
"""


class ReadinessGate:
    """Join of the model-configured and stream-started signals."""

    def __init__(self):
        self.model_ready = False
        self.stream_ready = False
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def mark_model_ready(self) -> bool:
        """Record that the model accepted its configuration.

        Returns True only for the call that opens the gate.
        """
        self.model_ready = True
        return self._try_fire()

    def mark_stream_ready(self) -> bool:
        """Record that Twilio started the stream. Returns True if this opened the gate."""
        self.stream_ready = True
        return self._try_fire()

    def _try_fire(self) -> bool:
        # No await between the check and the set, so this is atomic on the event loop
        if self._fired or not (self.model_ready and self.stream_ready):
            return False
        self._fired = True
        return True
