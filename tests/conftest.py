"""
Pytest configuration and fixtures.
"""

import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest


BASE_ENV = {
    "APP_URL": "https://test.example.com",
    "PORT": "7860",
    "LOG_LEVEL": "DEBUG",
    "VOICE_MODE": "elevenlabs",
    "OPENAI_API_KEY": "test_openai_key",
    "ELEVENLABS_API_KEY": "test_elevenlabs_key",
    "ELEVENLABS_VOICE_ID": "voice123",
    "S3_ENDPOINT": "storage.example.com",
    "S3_ACCESS_KEY": "test_access",
    "S3_SECRET_KEY": "test_secret",
    "S3_BUCKET": "audio",
}


@pytest.fixture(autouse=True)
def mock_env_vars():
    """Mock environment variables for tests."""
    with patch.dict(os.environ, BASE_ENV):
        # Clear config cache
        from src.autocaller.config import get_config
        get_config.cache_clear()
        yield
        get_config.cache_clear()


@pytest.fixture
def config():
    from src.autocaller.config import get_config
    return get_config()


@pytest.fixture
def openai_client():
    """AsyncOpenAI double answering chat completions with a short reply."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Vad roligt! Ska vi boka ett möte?"))],
        usage=SimpleNamespace(completion_tokens=12),
    ))
    client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text="Jag vill veta mer"))
    return client


@pytest.fixture
def twilio_speech_form():
    """Form fields Twilio posts after a <Gather input="speech">."""
    return {
        "CallSid": "CA1234567890",
        "From": "+46701234567",
        "To": "+46812345678",
        "CallStatus": "in-progress",
        "Direction": "outbound-api",
        "SpeechResult": "Jag är intresserad",
        "Confidence": "0.92",
    }
