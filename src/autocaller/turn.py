"""
Turn orchestrator for the Twilio voice webhook.

Each callback is handled as a pure function of the incoming event plus
configuration. The conversation loop lives in Twilio, not here: every reply
ends with a <Gather> whose action is this same webhook, so Twilio posts the
next utterance back as a fresh event.

    ringing / in-progress, nothing said yet  -> greeting + capture window
    ringing / in-progress, speech/recording  -> transcript -> LLM -> voice -> reply + capture window
    completed / failed / busy / ...          -> plain "OK"
    anything else                            -> filler line + hangup

No exception leaves `handle`: Twilio drops the call on a malformed or
non-200 answer, so every failure degrades to a spoken line and a hangup.
"""

from typing import Any, Optional

import structlog

from src.autocaller import prompts
from src.autocaller.call_event import CallEvent
from src.autocaller.config import get_config
from src.autocaller.errors import DialogueGenerationError
from src.autocaller.llm import DialogueGenerator, OpenAIDialogueGenerator
from src.autocaller.metrics import TurnMetrics
from src.autocaller.storage import MinioAudioPublisher
from src.autocaller.stt import TranscriptChain, WhisperTranscriber, default_transcript_chain
from src.autocaller.tts import VoicePipeline, build_voice_pipeline
from src.autocaller.tts_providers.elevenlabs import ElevenLabsTTS
from src.autocaller.tts_types import SpokenPayload
from src.autocaller.twiml import (
    TurnResponse,
    build_acknowledgement,
    build_apology,
    build_greeting,
    build_turn_response,
)

logger = structlog.get_logger(__name__)


class TurnOrchestrator:
    """Sequences transcript, dialogue, voice and TwiML for one callback."""

    def __init__(
        self,
        config: Any,
        *,
        transcripts: TranscriptChain,
        dialogue: DialogueGenerator,
        voice: VoicePipeline,
        metrics: Optional[TurnMetrics] = None,
    ):
        self.config = config
        self.transcripts = transcripts
        self.dialogue = dialogue
        self.voice = voice
        self.metrics = metrics or TurnMetrics()

    async def handle(self, event: CallEvent) -> TurnResponse:
        log = logger.bind(**event.log_fields())

        missing = self.config.missing_settings()
        if missing:
            log.error("Turn handler not configured", missing=missing)
            return self._finish(build_apology(
                prompts.APOLOGY_NOT_CONFIGURED,
                voice=self.config.twilio_voice,
                kind="not_configured",
            ))

        try:
            response = await self._dispatch(event, log)
        except Exception as e:
            log.exception("Turn failed", error=str(e))
            self.metrics.record_error()
            response = build_apology(
                prompts.APOLOGY_UNEXPECTED,
                voice=self.config.twilio_voice,
                kind="error",
            )

        return self._finish(response)

    def _finish(self, response: TurnResponse) -> TurnResponse:
        self.metrics.record_response(response.kind)
        return response

    async def _dispatch(self, event: CallEvent, log: Any) -> TurnResponse:
        if event.status.is_active:
            if not event.has_transcript_source:
                log.info("Starting conversation")
                return build_greeting(
                    prompts.greeting_line(self.config),
                    action_url=self.config.webhook_url,
                    voice=self.config.twilio_voice,
                )
            return await self._reply(event, log)

        if event.status.is_terminal:
            log.info("Call ended")
            return build_acknowledgement()

        log.info("Unhandled call status, closing politely")
        return build_turn_response(
            SpokenPayload.native(prompts.DEFAULT_FILLER),
            action_url=self.config.webhook_url,
            continue_listening=False,
            voice=self.config.twilio_voice,
            kind="filler",
        )

    async def _reply(self, event: CallEvent, log: Any) -> TurnResponse:
        transcript = await self.transcripts.resolve(event)
        if transcript == prompts.NOT_UNDERSTOOD_TRANSCRIPT:
            self.metrics.record_fallback("transcript_placeholder")
        log.info("Processing transcript", transcript=transcript)

        try:
            reply = await self.dialogue.generate(transcript)
        except DialogueGenerationError as e:
            log.error("Dialogue generation failed", error=str(e))
            self.metrics.record_fallback("dialogue_apology")
            return build_apology(
                prompts.APOLOGY_DIALOGUE_FAILED,
                voice=self.config.twilio_voice,
                kind="dialogue_apology",
            )

        result = await self.voice.render(reply, call_id=event.call_id)
        for failure in result.failures:
            self.metrics.record_fallback(failure)

        log.info(
            "Reply ready",
            reply=reply,
            voice_strategy=result.strategy,
            fell_back=result.fell_back,
        )

        if result.payload.is_audio:
            gather_prompt, closing_line = prompts.REPLY_PROMPT, prompts.REPLY_NO_INPUT
        else:
            gather_prompt, closing_line = prompts.NATIVE_REPLY_PROMPT, prompts.NATIVE_REPLY_NO_INPUT

        return build_turn_response(
            result.payload,
            action_url=self.config.webhook_url,
            continue_listening=True,
            gather_prompt=gather_prompt,
            closing_line=closing_line,
            voice=self.config.twilio_voice,
        )


def build_orchestrator(config: Optional[Any] = None, *, metrics: Optional[TurnMetrics] = None) -> TurnOrchestrator:
    """Wire the production adapters for the configured voice mode."""
    config = config or get_config()

    synthesizer = None
    publisher = None
    if config.uses_elevenlabs:
        synthesizer = ElevenLabsTTS(config)
        publisher = MinioAudioPublisher(config)

    return TurnOrchestrator(
        config,
        transcripts=default_transcript_chain(WhisperTranscriber(config)),
        dialogue=OpenAIDialogueGenerator(config),
        voice=build_voice_pipeline(synthesizer, publisher),
        metrics=metrics,
    )
