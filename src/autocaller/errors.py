"""
Error taxonomy for a single call turn.

Every adapter raises one of these; the turn orchestrator catches them and
degrades to a still-valid TwiML response.
"""


class TurnError(Exception):
    """Base class for failures inside one call turn."""
    pass


class ConfigurationError(TurnError):
    """Raised when required configuration is missing or invalid."""
    pass


class DownloadError(TurnError):
    """Raised when a caller recording cannot be fetched."""
    pass


class TranscriptionError(TurnError):
    """Raised when the speech-to-text provider rejects a recording."""
    pass


class DialogueGenerationError(TurnError):
    """Raised when the language model call fails or times out."""
    pass


class VoiceError(TurnError):
    """Base class for the synthesize/publish/sign voice pipeline."""
    pass


class SynthesisError(VoiceError):
    pass


class PublishError(VoiceError):
    pass


class SignError(VoiceError):
    pass
