from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import structlog

from src.autocaller.errors import VoiceError
from src.autocaller.storage import AudioPublisher, audio_object_name
from src.autocaller.tts_providers.base import SpeechSynthesizer
from src.autocaller.tts_types import SpokenPayload

logger = structlog.get_logger(__name__)


class VoiceStrategy(ABC):
    """One way of voicing a reply. Raise VoiceError to hand over to the next strategy."""

    name = "voice"

    @abstractmethod
    async def render(self, text: str, *, call_id: str) -> SpokenPayload:
        raise NotImplementedError


class PublishedAudioStrategy(VoiceStrategy):
    """Synthesize with the primary TTS provider and publish for Twilio to <Play>."""

    name = "published_audio"

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        publisher: AudioPublisher,
        *,
        name_factory: Callable[[str, str], str] = audio_object_name,
    ):
        self.synthesizer = synthesizer
        self.publisher = publisher
        self.name_factory = name_factory

    async def render(self, text: str, *, call_id: str) -> SpokenPayload:
        audio = await self.synthesizer.synthesize(text)
        object_name = self.name_factory(call_id, self.synthesizer.file_extension)
        url = await self.publisher.publish(audio, object_name, self.synthesizer.content_type)
        return SpokenPayload.published(text, url)


class ProviderVoiceStrategy(VoiceStrategy):
    """Let Twilio speak the text with its built-in voice. Never fails."""

    name = "provider_voice"

    async def render(self, text: str, *, call_id: str) -> SpokenPayload:
        return SpokenPayload.native(text)


@dataclass
class VoiceResult:
    payload: SpokenPayload
    strategy: str
    failures: list[str] = field(default_factory=list)

    @property
    def fell_back(self) -> bool:
        return bool(self.failures)


class VoicePipeline:
    """
    Ordered voice strategies; the first success short-circuits the rest.

    - elevenlabs mode: PublishedAudioStrategy -> ProviderVoiceStrategy
    - native mode: ProviderVoiceStrategy only
    """

    def __init__(self, strategies: Sequence[VoiceStrategy]):
        self.strategies = list(strategies)

    async def render(self, text: str, *, call_id: str) -> VoiceResult:
        failures: list[str] = []

        for strategy in self.strategies:
            try:
                payload = await strategy.render(text, call_id=call_id)
            except VoiceError as e:
                logger.warning(
                    "Voice strategy failed, falling back",
                    strategy=strategy.name,
                    call_id=call_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                failures.append(type(e).__name__)
                continue

            return VoiceResult(payload=payload, strategy=strategy.name, failures=failures)

        # Nothing left to try: Twilio can always read the text itself.
        return VoiceResult(
            payload=SpokenPayload.native(text),
            strategy=ProviderVoiceStrategy.name,
            failures=failures,
        )


def build_voice_pipeline(
    synthesizer: Optional[SpeechSynthesizer] = None,
    publisher: Optional[AudioPublisher] = None,
) -> VoicePipeline:
    strategies: list[VoiceStrategy] = []
    if synthesizer is not None and publisher is not None:
        strategies.append(PublishedAudioStrategy(synthesizer, publisher))
    strategies.append(ProviderVoiceStrategy())
    return VoicePipeline(strategies)
