"""
Configuration module for the Marta intake agent.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants: Twilio and OpenAI Realtime event names,
  the telephony audio codec, business-hour boundaries and default model names.
- logging_config: A consistent logging setup with console and rotating-file output.
- settings: The immutable ``Settings`` model read from the environment and its
  startup validation.

Usage examples:
```python
from marta.config.constants import LOGGER_NAME, READINESS_FALLBACK_SECONDS
from marta.config.logging_config import configure_logging
from marta.config.settings import get_settings, validate_settings

logger = configure_logging()
settings = validate_settings(get_settings())
logger.info(f"Realtime model: {settings.realtime_model}")
```
"""
