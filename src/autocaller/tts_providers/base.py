from __future__ import annotations

from abc import ABC, abstractmethod


class SpeechSynthesizer(ABC):
    """Turns reply text into encoded audio bytes."""

    content_type = "audio/mpeg"
    file_extension = "mp3"

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        raise NotImplementedError
