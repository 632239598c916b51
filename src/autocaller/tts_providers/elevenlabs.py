from __future__ import annotations

import time
from typing import Any, Optional

import httpx
import structlog

from src.autocaller.config import get_config
from src.autocaller.errors import SynthesisError
from src.autocaller.tts_providers.base import SpeechSynthesizer

logger = structlog.get_logger(__name__)

ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"

# Held constant so every turn of every call sounds like the same agent.
VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.0,
    "use_speaker_boost": True,
}


class ElevenLabsTTS(SpeechSynthesizer):
    """
    ElevenLabs text-to-speech over the REST API (non-streaming).

    Returns the whole MP3 for one reply. Any failure raises SynthesisError;
    there is no retry, the caller falls back to Twilio's own voice.
    """

    def __init__(self, config: Optional[Any] = None, *, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config or get_config()
        self._http_client = http_client

    def _request_args(self, text: str) -> tuple[str, dict[str, Any], dict[str, str]]:
        url = ELEVENLABS_TTS_URL.format(voice_id=self.config.elevenlabs_voice_id)
        payload = {
            "text": text,
            "model_id": self.config.elevenlabs_model,
            "voice_settings": dict(VOICE_SETTINGS),
        }
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.config.elevenlabs_api_key,
        }
        return url, payload, headers

    async def synthesize(self, text: str) -> bytes:
        if not text or not text.strip():
            raise SynthesisError("Nothing to synthesize")

        url, payload, headers = self._request_args(text)
        timeout = httpx.Timeout(self.config.http_timeout_seconds)

        started = time.time()
        try:
            if self._http_client is not None:
                resp = await self._http_client.post(url, json=payload, headers=headers, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    resp = await client.post(url, json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SynthesisError(f"ElevenLabs request failed: {e}") from e

        elapsed_ms = round((time.time() - started) * 1000, 2)

        if resp.status_code != 200:
            logger.warning(
                "ElevenLabs TTS error",
                status_code=resp.status_code,
                response=resp.text[:200],
                elapsed_ms=elapsed_ms,
            )
            raise SynthesisError(f"ElevenLabs API returned status {resp.status_code}")

        audio = resp.content
        if not audio:
            raise SynthesisError("ElevenLabs returned empty audio")

        logger.info("ElevenLabs audio synthesized", bytes=len(audio), elapsed_ms=elapsed_ms)
        return audio
