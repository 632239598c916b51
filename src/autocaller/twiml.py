"""
TwiML call-control documents.

Every builder here is total: given any payload it returns a well-formed
document, so the orchestrator can always answer Twilio with HTTP 200.

Documents that keep the conversation going end with the same shape:

    <Say>/<Play> payload
    <Gather input="speech" timeout="5" speechTimeout="2" action=<webhook> method="POST">
        <Say>prompt</Say>
    </Gather>
    <Say>closing remark</Say>      (reached only if the gather times out)
    <Hangup/>
"""

from dataclasses import dataclass
from typing import Optional

from twilio.twiml.voice_response import Gather, VoiceResponse

from src.autocaller import prompts
from src.autocaller.tts_types import SpokenPayload

GATHER_INPUT = "speech"
GATHER_TIMEOUT_SECONDS = 5
GATHER_SPEECH_TIMEOUT_SECONDS = 2
DEFAULT_VOICE = "alice"

TWIML_MEDIA_TYPE = "text/xml"
PLAIN_MEDIA_TYPE = "text/plain"


@dataclass(frozen=True)
class TurnResponse:
    """Body returned to Twilio for one turn."""
    body: str
    media_type: str = TWIML_MEDIA_TYPE
    kind: str = "twiml"

    @property
    def is_twiml(self) -> bool:
        return self.media_type == TWIML_MEDIA_TYPE


def _speak(response: VoiceResponse, payload: SpokenPayload, voice: str) -> None:
    if payload.is_audio:
        response.play(payload.audio_url)
    else:
        response.say(payload.text, voice=voice)


def build_turn_response(
    payload: SpokenPayload,
    *,
    action_url: str,
    continue_listening: bool = True,
    gather_prompt: Optional[str] = prompts.REPLY_PROMPT,
    closing_line: str = prompts.REPLY_NO_INPUT,
    voice: str = DEFAULT_VOICE,
    kind: str = "reply",
) -> TurnResponse:
    """
    Speak/play `payload`, optionally open a capture window, then close the call.

    The capture window posts back to `action_url`, which is this handler's own
    webhook, so the next utterance starts the next turn.
    """
    response = VoiceResponse()
    _speak(response, payload, voice)

    if continue_listening:
        gather = Gather(
            input=GATHER_INPUT,
            timeout=GATHER_TIMEOUT_SECONDS,
            speech_timeout=GATHER_SPEECH_TIMEOUT_SECONDS,
            action=action_url,
            method="POST",
        )
        if gather_prompt:
            gather.say(gather_prompt, voice=voice)
        response.append(gather)
        response.say(closing_line, voice=voice)

    response.hangup()
    return TurnResponse(body=str(response), kind=kind)


def build_greeting(greeting: str, *, action_url: str, voice: str = DEFAULT_VOICE) -> TurnResponse:
    """Opening line for a freshly answered call."""
    return build_turn_response(
        SpokenPayload.native(greeting),
        action_url=action_url,
        continue_listening=True,
        gather_prompt=prompts.GREETING_PROMPT,
        closing_line=prompts.GREETING_NO_INPUT,
        voice=voice,
        kind="greeting",
    )


def build_apology(text: str, *, voice: str = DEFAULT_VOICE, kind: str = "apology") -> TurnResponse:
    """Say `text` and hang up."""
    response = VoiceResponse()
    response.say(text, voice=voice)
    response.hangup()
    return TurnResponse(body=str(response), kind=kind)


def build_acknowledgement() -> TurnResponse:
    """Plain acknowledgement for status callbacks after the call has ended."""
    return TurnResponse(body="OK", media_type=PLAIN_MEDIA_TYPE, kind="ack")
