import logging
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from marta.config.settings import Settings
from marta.services.clock import CallContext
from tests.fakes import FakeRealtimeClient, FakeTwilioWebSocket


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def settings():
    """Fully configured settings without touching the environment."""
    return Settings(
        openai_api_key="sk-test",
        twilio_account_sid="ACtest",
        twilio_auth_token="token",
        twilio_sms_from="+34900000000",
        alert_to_number="+34600000000",
    )


@pytest.fixture
def day_context():
    return CallContext(now=datetime(2024, 5, 6, 16, 30), is_night=False, day_part="tarde")


@pytest.fixture
def night_context():
    return CallContext(now=datetime(2024, 5, 6, 23, 15), is_night=True, day_part="noche")


@pytest.fixture
def fake_client():
    return FakeRealtimeClient()


@pytest.fixture
def twilio_ws():
    return FakeTwilioWebSocket()


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send.return_value = "SM123"
    return mock


@pytest.fixture
def extractor():
    return AsyncMock()
