"""
Caller transcript acquisition.

Twilio usually hands us recognized text (`SpeechResult`) straight from the
<Gather>. When a turn carries a recording instead, the audio is downloaded
and transcribed with OpenAI Whisper. Acquisition is an ordered chain of
sources; the first one that yields text wins:

    InlineSpeechSource -> RecordingTranscriptSource -> PlaceholderSource

A failing source is logged and skipped, so transcription never aborts a turn.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx
import structlog
from openai import AsyncOpenAI

from src.autocaller import prompts
from src.autocaller.call_event import CallEvent
from src.autocaller.config import get_config
from src.autocaller.errors import DownloadError, TranscriptionError

logger = structlog.get_logger(__name__)


class Transcriber(ABC):
    """Turns a recording URL into text."""

    @abstractmethod
    async def transcribe(self, recording_url: str) -> str:
        raise NotImplementedError


class WhisperTranscriber(Transcriber):
    """
    Download a Twilio recording and transcribe it with OpenAI Whisper.

    Raises:
        DownloadError: the recording could not be fetched
        TranscriptionError: Whisper rejected the request
    """

    def __init__(
        self,
        config: Optional[Any] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or get_config()
        self._client = client
        self._http_client = http_client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.openai_api_key,
                timeout=self.config.http_timeout_seconds,
            )
        return self._client

    def _auth(self) -> Optional[tuple[str, str]]:
        if self.config.twilio_account_sid and self.config.twilio_auth_token:
            return (self.config.twilio_account_sid, self.config.twilio_auth_token)
        return None

    async def download(self, recording_url: str) -> bytes:
        timeout = httpx.Timeout(self.config.http_timeout_seconds)
        try:
            if self._http_client is not None:
                resp = await self._http_client.get(recording_url, auth=self._auth(), timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                    resp = await client.get(recording_url, auth=self._auth())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DownloadError(f"Failed to download audio: {e}") from e

        if resp.status_code != 200:
            raise DownloadError(f"Failed to download audio: {resp.status_code}")

        return resp.content

    async def transcribe(self, recording_url: str) -> str:
        audio = await self.download(recording_url)

        try:
            result = await self.client.audio.transcriptions.create(
                model=self.config.whisper_model,
                file=("audio.wav", audio, "audio/wav"),
                language=self.config.transcription_language,
            )
        except Exception as e:
            raise TranscriptionError(f"Whisper API error: {e}") from e

        text = (getattr(result, "text", "") or "").strip()
        logger.info("Whisper transcription", chars=len(text))
        return text


class TranscriptSource(ABC):
    """One link of the transcript chain. Returns None to defer to the next link."""

    name = "source"

    @abstractmethod
    async def acquire(self, event: CallEvent) -> Optional[str]:
        raise NotImplementedError


class InlineSpeechSource(TranscriptSource):
    name = "inline"

    async def acquire(self, event: CallEvent) -> Optional[str]:
        return event.speech_text or None


class RecordingTranscriptSource(TranscriptSource):
    name = "recording"

    def __init__(self, transcriber: Transcriber):
        self.transcriber = transcriber

    async def acquire(self, event: CallEvent) -> Optional[str]:
        if not event.recording_url:
            return None
        text = await self.transcriber.transcribe(event.recording_url)
        return text or None


class PlaceholderSource(TranscriptSource):
    name = "placeholder"

    def __init__(self, text: str = prompts.NOT_UNDERSTOOD_TRANSCRIPT):
        self.text = text

    async def acquire(self, event: CallEvent) -> Optional[str]:
        return self.text


class TranscriptChain:
    """Try each source in order; the first non-empty transcript wins."""

    def __init__(self, sources: Sequence[TranscriptSource]):
        self.sources = list(sources)

    async def resolve(self, event: CallEvent) -> str:
        for source in self.sources:
            try:
                text = await source.acquire(event)
            except (DownloadError, TranscriptionError) as e:
                logger.warning(
                    "Transcript source failed",
                    source=source.name,
                    call_id=event.call_id,
                    error=str(e),
                )
                continue
            except Exception as e:
                logger.exception(
                    "Transcript source crashed",
                    source=source.name,
                    call_id=event.call_id,
                    error_type=type(e).__name__,
                )
                continue

            if text:
                logger.debug("Transcript acquired", source=source.name, call_id=event.call_id)
                return text

        return prompts.NOT_UNDERSTOOD_TRANSCRIPT


def default_transcript_chain(transcriber: Transcriber) -> TranscriptChain:
    return TranscriptChain([
        InlineSpeechSource(),
        RecordingTranscriptSource(transcriber),
        PlaceholderSource(),
    ])
