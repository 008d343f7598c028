"""Exception hierarchy for the intake agent."""


class MartaError(Exception):
    """Base class for all application errors."""


class ConfigError(MartaError):
    """Required configuration is missing or invalid."""


class RealtimeConnectionError(MartaError):
    """The OpenAI Realtime connection could not be opened or was lost."""


class ExtractionError(MartaError):
    """The transcript could not be turned into a ticket."""


class NotificationError(MartaError):
    """The SMS dispatch failed."""
