"""
Tests for recording transcription and the transcript chain.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.autocaller import prompts
from src.autocaller.call_event import CallEvent
from src.autocaller.errors import DownloadError, TranscriptionError
from src.autocaller.stt import (
    InlineSpeechSource,
    PlaceholderSource,
    TranscriptChain,
    WhisperTranscriber,
    default_transcript_chain,
)

RECORDING_URL = "https://api.twilio.com/2010-04-01/Accounts/AC1/Recordings/RE1"


def _recording_client(status_code: int = 200, content: bytes = b"RIFF....WAVE") -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == RECORDING_URL
        return httpx.Response(status_code, content=content)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _event(**kwargs) -> CallEvent:
    payload = {"CallSid": "CA1", "CallStatus": "in-progress"}
    payload.update(kwargs)
    return CallEvent.from_payload(payload)


class TestWhisperTranscriber:

    @pytest.mark.asyncio
    async def test_transcribes_downloaded_audio(self, config, openai_client):
        transcriber = WhisperTranscriber(config, client=openai_client, http_client=_recording_client())

        text = await transcriber.transcribe(RECORDING_URL)

        assert text == "Jag vill veta mer"
        kwargs = openai_client.audio.transcriptions.create.await_args.kwargs
        assert kwargs["model"] == "whisper-1"
        assert kwargs["language"] == "sv"
        assert kwargs["file"] == ("audio.wav", b"RIFF....WAVE", "audio/wav")

    @pytest.mark.asyncio
    async def test_download_failure_raises(self, config, openai_client):
        transcriber = WhisperTranscriber(config, client=openai_client, http_client=_recording_client(404))

        with pytest.raises(DownloadError, match="404"):
            await transcriber.transcribe(RECORDING_URL)
        openai_client.audio.transcriptions.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_network_error_raises_download_error(self, config, openai_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transcriber = WhisperTranscriber(config, client=openai_client, http_client=client)

        with pytest.raises(DownloadError):
            await transcriber.transcribe(RECORDING_URL)

    @pytest.mark.asyncio
    async def test_invalid_url_raises_download_error(self, config, openai_client):
        handler = MagicMock()
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transcriber = WhisperTranscriber(config, client=openai_client, http_client=client)

        with pytest.raises(DownloadError):
            await transcriber.transcribe("http://\x00/rec")
        handler.assert_not_called()
        openai_client.audio.transcriptions.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_api_failure_raises_transcription_error(self, config, openai_client):
        openai_client.audio.transcriptions.create = AsyncMock(side_effect=RuntimeError("503"))
        transcriber = WhisperTranscriber(config, client=openai_client, http_client=_recording_client())

        with pytest.raises(TranscriptionError):
            await transcriber.transcribe(RECORDING_URL)


class TestTranscriptChain:

    @pytest.mark.asyncio
    async def test_inline_speech_wins_without_transcribing(self):
        transcriber = AsyncMock()
        chain = default_transcript_chain(transcriber)

        text = await chain.resolve(_event(SpeechResult="Hej", RecordingUrl=RECORDING_URL))

        assert text == "Hej"
        transcriber.transcribe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recording_is_transcribed_when_no_inline_speech(self):
        transcriber = AsyncMock()
        transcriber.transcribe = AsyncMock(return_value="Berätta mer")
        chain = default_transcript_chain(transcriber)

        text = await chain.resolve(_event(RecordingUrl=RECORDING_URL))

        assert text == "Berätta mer"
        transcriber.transcribe.assert_awaited_once_with(RECORDING_URL)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [DownloadError("404"), TranscriptionError("500")])
    async def test_transcription_failure_yields_placeholder(self, failure):
        transcriber = AsyncMock()
        transcriber.transcribe = AsyncMock(side_effect=failure)
        chain = default_transcript_chain(transcriber)

        text = await chain.resolve(_event(RecordingUrl=RECORDING_URL))

        assert text == prompts.NOT_UNDERSTOOD_TRANSCRIPT

    @pytest.mark.asyncio
    async def test_empty_transcription_yields_placeholder(self):
        transcriber = AsyncMock()
        transcriber.transcribe = AsyncMock(return_value="")
        chain = default_transcript_chain(transcriber)

        text = await chain.resolve(_event(RecordingUrl=RECORDING_URL))

        assert text == prompts.NOT_UNDERSTOOD_TRANSCRIPT

    @pytest.mark.asyncio
    async def test_custom_chain_order(self):
        chain = TranscriptChain([PlaceholderSource("fallback"), InlineSpeechSource()])

        assert await chain.resolve(_event(SpeechResult="Hej")) == "fallback"

    @pytest.mark.asyncio
    async def test_invalid_recording_url_yields_placeholder(self, config, openai_client):
        client = httpx.AsyncClient(transport=httpx.MockTransport(MagicMock()))
        chain = default_transcript_chain(WhisperTranscriber(config, client=openai_client, http_client=client))

        text = await chain.resolve(_event(RecordingUrl="http://\x00/rec"))

        assert text == prompts.NOT_UNDERSTOOD_TRANSCRIPT

    @pytest.mark.asyncio
    async def test_unexpected_source_error_is_skipped(self):
        transcriber = AsyncMock()
        transcriber.transcribe = AsyncMock(side_effect=KeyError("text"))
        chain = default_transcript_chain(transcriber)

        text = await chain.resolve(_event(RecordingUrl=RECORDING_URL))

        assert text == prompts.NOT_UNDERSTOOD_TRANSCRIPT
