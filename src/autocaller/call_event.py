"""
Twilio voice webhook payload parsing.

Twilio posts form-encoded fields on every callback of an active call:
- CallSid: opaque call identifier
- From: caller number
- CallStatus: initiated | ringing | in-progress | completed | failed | ...
- SpeechResult: recognized text from a <Gather input="speech">
- RecordingUrl: fetchable recording when the turn recorded audio instead

The same event can also arrive as JSON using camelCase names
(callId, fromNumber, status, recognizedSpeech, recordingUrl).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)


class CallStatus(str, Enum):
    """Twilio call states."""
    INITIATED = "initiated"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    BUSY = "busy"
    NO_ANSWER = "no-answer"
    CANCELED = "canceled"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "CallStatus":
        normalized = (value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_active(self) -> bool:
        return self in (CallStatus.RINGING, CallStatus.IN_PROGRESS)

    @property
    def is_terminal(self) -> bool:
        return self in (
            CallStatus.COMPLETED,
            CallStatus.FAILED,
            CallStatus.BUSY,
            CallStatus.NO_ANSWER,
            CallStatus.CANCELED,
        )


def _first(payload: Mapping[str, Any], *keys: str) -> Optional[str]:
    """Return the first non-blank string value among `keys`."""
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


@dataclass(frozen=True)
class CallEvent:
    """One inbound telephony callback."""
    call_id: str
    from_number: str
    status: CallStatus
    speech_text: Optional[str] = None
    recording_url: Optional[str] = None
    confidence: Optional[float] = None
    raw_status: str = ""

    @property
    def has_transcript_source(self) -> bool:
        return bool(self.speech_text or self.recording_url)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CallEvent":
        """Parse from a Twilio form body or its JSON equivalent."""
        raw_status = _first(payload, "CallStatus", "status") or ""

        confidence = None
        confidence_raw = _first(payload, "Confidence", "confidence")
        if confidence_raw is not None:
            try:
                confidence = float(confidence_raw)
            except ValueError:
                logger.debug("Ignoring non-numeric confidence", value=confidence_raw)

        return cls(
            call_id=_first(payload, "CallSid", "callId") or "",
            from_number=_first(payload, "From", "fromNumber") or "",
            status=CallStatus.parse(raw_status),
            speech_text=_first(payload, "SpeechResult", "recognizedSpeech", "speechText"),
            recording_url=_first(payload, "RecordingUrl", "recordingUrl"),
            confidence=confidence,
            raw_status=raw_status,
        )

    def log_fields(self) -> dict:
        """Fields safe to attach to log lines."""
        return {
            "call_id": self.call_id,
            "status": self.raw_status or self.status.value,
            "has_speech": bool(self.speech_text),
            "has_recording": bool(self.recording_url),
            "confidence": self.confidence,
        }
