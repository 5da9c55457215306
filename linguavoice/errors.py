"""LinguaVoice exception hierarchy.

Device and network failures are translated into these types at the boundary
where they occur, so the recording state machine never sees a raw PyAudio or
aiohttp exception.
"""

from typing import Optional


class LinguaVoiceError(Exception):
    """Base exception for all LinguaVoice errors."""

    def __init__(self, detail: str = "An unexpected error occurred", code: str = "LINGUAVOICE_ERROR"):
        self.detail = detail
        self.code = code
        super().__init__(detail)


class MicrophonePermissionError(LinguaVoiceError):
    """Raised when the microphone cannot be opened (access refused or no input device)."""

    def __init__(self, detail: str = "Could not access the microphone. Check permissions."):
        super().__init__(detail=detail, code="PERMISSION_DENIED")


class ConnectionFailureError(LinguaVoiceError):
    """Raised when the live session fails to open or is interrupted after opening."""

    CONNECT_FAILED = "CONNECT_FAILED"
    INTERRUPTED = "INTERRUPTED"
    REMOTE_CLOSED = "REMOTE_CLOSED"

    _MESSAGES = {
        CONNECT_FAILED: "Could not connect to the transcription service.",
        INTERRUPTED: "Connection to the transcription service interrupted.",
        REMOTE_CLOSED: "The transcription service closed the session.",
    }

    def __init__(self, reason: str = CONNECT_FAILED, detail: Optional[str] = None):
        self.reason = reason
        super().__init__(detail=detail or self._MESSAGES[reason], code=f"CONNECTION_{reason}")


class CredentialMissingError(LinguaVoiceError):
    """Raised before any device or network access when no API key is configured."""

    def __init__(self, detail: str = "API key is missing. Set gemini.api_key or GEMINI_API_KEY."):
        super().__init__(detail=detail, code="CREDENTIAL_MISSING")


class EncodingError(LinguaVoiceError, ValueError):
    """Raised for malformed sample data. Indicates a programming error upstream."""

    def __init__(self, detail: str = "Malformed audio samples"):
        super().__init__(detail=detail, code="ENCODING_ERROR")


class TranscriptLockedError(LinguaVoiceError):
    """Raised when the transcript is edited while a session may still append to it."""

    def __init__(self, detail: str = "Transcript can only be edited once the recording is completed"):
        super().__init__(detail=detail, code="TRANSCRIPT_LOCKED")
