"""
Configuration management for the Autocaller turn handler.

Loads environment variables and provides a strongly-typed configuration object.
The configuration gate (`missing_settings`) is checked on every turn so a
half-configured deployment still answers Twilio with a polite hangup.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
import structlog

from src.autocaller.errors import ConfigurationError

load_dotenv()

logger = structlog.get_logger(__name__)

VOICE_MODE_ELEVENLABS = "elevenlabs"
VOICE_MODE_NATIVE = "native"
VOICE_MODES = (VOICE_MODE_ELEVENLABS, VOICE_MODE_NATIVE)


@dataclass(frozen=True)
class Config:
    """Strongly-typed configuration object."""

    # Server
    app_url: str = ""
    webhook_path: str = "/twilio-webhook"
    port: int = 7860
    log_level: str = "INFO"

    # Voice mode
    # - "elevenlabs": ElevenLabs audio published to object storage, Twilio voice as fallback
    # - "native": Twilio's built-in voice only (no TTS or storage credentials needed)
    voice_mode: str = VOICE_MODE_ELEVENLABS
    twilio_voice: str = "alice"

    # Twilio (optional: only needed when recordings require HTTP auth)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""

    # OpenAI (LLM + Whisper)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 150
    llm_temperature: float = 0.7
    whisper_model: str = "whisper-1"
    transcription_language: str = "sv"

    # ElevenLabs (TTS)
    elevenlabs_api_key: str = ""
    elevenlabs_voice_id: str = ""
    elevenlabs_model: str = "eleven_multilingual_v2"

    # Object storage (S3 / MinIO)
    s3_endpoint: str = ""
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_bucket: str = "audio"
    s3_region: str = ""
    s3_secure: bool = True
    audio_url_ttl_seconds: int = 3600

    # Per external hop deadline
    http_timeout_seconds: float = 8.0

    # Agent settings
    agent_name: str = "Emma"
    company_name: str = "Autocaller"
    system_prompt: str = ""
    system_prompt_file: str = ""

    @property
    def webhook_url(self) -> str:
        """Absolute URL Twilio posts the next turn to."""
        path = self.webhook_path if self.webhook_path.startswith("/") else f"/{self.webhook_path}"
        return f"{self.app_url.rstrip('/')}{path}"

    @property
    def uses_elevenlabs(self) -> bool:
        return self.voice_mode == VOICE_MODE_ELEVENLABS

    def missing_settings(self) -> List[str]:
        """
        Return the environment variables the active voice mode still needs.

        An empty list means the handler is ready to run full turns.
        """
        missing = []

        if self.voice_mode not in VOICE_MODES:
            missing.append("VOICE_MODE")
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.app_url:
            missing.append("APP_URL")

        if self.uses_elevenlabs:
            if not self.elevenlabs_api_key:
                missing.append("ELEVENLABS_API_KEY")
            if not self.elevenlabs_voice_id:
                missing.append("ELEVENLABS_VOICE_ID")
            if not self.s3_endpoint:
                missing.append("S3_ENDPOINT")
            if not self.s3_access_key:
                missing.append("S3_ACCESS_KEY")
            if not self.s3_secret_key:
                missing.append("S3_SECRET_KEY")
            if not self.s3_bucket:
                missing.append("S3_BUCKET")

        return missing

    @property
    def is_ready(self) -> bool:
        return not self.missing_settings()

    def validate(self) -> None:
        """Validate that all required configuration is present."""
        if self.voice_mode not in VOICE_MODES:
            raise ConfigurationError(
                f"Invalid VOICE_MODE '{self.voice_mode}'. Expected 'elevenlabs' or 'native'."
            )

        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}\n"
                "Please check your .env file."
            )

    def log_config(self) -> None:
        """Log configuration (without secrets)."""
        logger.info(
            "Configuration loaded",
            app_url=self.app_url,
            webhook_url=self.webhook_url,
            port=self.port,
            log_level=self.log_level,
            voice_mode=self.voice_mode,
            twilio_voice=self.twilio_voice,
            openai_model=self.openai_model,
            transcription_language=self.transcription_language,
            elevenlabs_model=self.elevenlabs_model,
            s3_endpoint=self.s3_endpoint,
            s3_bucket=self.s3_bucket,
            audio_url_ttl_seconds=self.audio_url_ttl_seconds,
            http_timeout_seconds=self.http_timeout_seconds,
            agent_name=self.agent_name,
            openai_key_set=bool(self.openai_api_key),
            elevenlabs_key_set=bool(self.elevenlabs_api_key),
            elevenlabs_voice_set=bool(self.elevenlabs_voice_id),
            s3_keys_set=bool(self.s3_access_key and self.s3_secret_key),
            twilio_sid_prefix=self.twilio_account_sid[:6] + "..." if self.twilio_account_sid else "NOT SET",
        )


def _get_bool(key: str, default: bool = False) -> bool:
    """Get a boolean from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _get_int(key: str, default: int) -> int:
    """Get an integer from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    """Get a float from environment variable."""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the application configuration.

    Uses lru_cache to ensure we only load config once.
    """
    config = Config(
        # Server
        app_url=os.getenv("APP_URL", ""),
        webhook_path=os.getenv("WEBHOOK_PATH", "/twilio-webhook"),
        port=_get_int("PORT", 7860),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),

        # Voice mode
        voice_mode=os.getenv("VOICE_MODE", VOICE_MODE_ELEVENLABS).strip().lower(),
        twilio_voice=os.getenv("TWILIO_VOICE", "alice"),

        # Twilio
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID", ""),
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN", ""),

        # OpenAI
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        llm_max_tokens=_get_int("LLM_MAX_TOKENS", 150),
        llm_temperature=_get_float("LLM_TEMPERATURE", 0.7),
        whisper_model=os.getenv("WHISPER_MODEL", "whisper-1"),
        transcription_language=os.getenv("TRANSCRIPTION_LANGUAGE", "sv"),

        # ElevenLabs
        elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY", ""),
        elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID", ""),
        elevenlabs_model=os.getenv("ELEVENLABS_MODEL", "eleven_multilingual_v2"),

        # Object storage
        s3_endpoint=os.getenv("S3_ENDPOINT", ""),
        s3_access_key=os.getenv("S3_ACCESS_KEY", ""),
        s3_secret_key=os.getenv("S3_SECRET_KEY", ""),
        s3_bucket=os.getenv("S3_BUCKET", "audio"),
        s3_region=os.getenv("S3_REGION", ""),
        s3_secure=_get_bool("S3_SECURE", True),
        audio_url_ttl_seconds=_get_int("AUDIO_URL_TTL_SECONDS", 3600),

        http_timeout_seconds=_get_float("HTTP_TIMEOUT_SECONDS", 8.0),

        # Agent settings
        agent_name=os.getenv("AGENT_NAME", "Emma"),
        company_name=os.getenv("COMPANY_NAME", "Autocaller"),
        system_prompt=os.getenv("SYSTEM_PROMPT", ""),
        system_prompt_file=os.getenv("SYSTEM_PROMPT_FILE", ""),
    )

    return config


def init_config() -> Config:
    """
    Load and check configuration at startup.

    Unlike a hard fail-fast, a missing setting is only logged: the webhook
    must keep answering Twilio (with an apology) until it is fixed.
    """
    config = get_config()
    try:
        config.validate()
    except ConfigurationError as e:
        logger.error("Configuration incomplete", error=str(e))
    config.log_config()
    return config
