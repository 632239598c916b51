from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SpokenPayload:
    """
    What the caller hears for one turn.

    When `audio_url` is set the published, time-limited recording is played
    with <Play>; otherwise `text` is spoken by Twilio's built-in voice with
    <Say>. `text` is kept in both cases so logs show what was said.
    """

    text: str
    audio_url: Optional[str] = None

    @property
    def is_audio(self) -> bool:
        return bool(self.audio_url)

    @classmethod
    def native(cls, text: str) -> "SpokenPayload":
        return cls(text=text)

    @classmethod
    def published(cls, text: str, audio_url: str) -> "SpokenPayload":
        return cls(text=text, audio_url=audio_url)
