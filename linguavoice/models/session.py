"""Live session data models."""

from dataclasses import dataclass
from enum import Enum

from .transcription import Language


class SessionState(Enum):
    """Connection state of one live session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


TERMINAL_SESSION_STATES = frozenset({SessionState.CLOSED, SessionState.FAILED})


@dataclass(frozen=True)
class LiveSessionConfig:
    """Parameters for opening a live transcription session."""
    language: Language = Language.ENGLISH
    audio_format: str = "pcm16"
    sample_rate: int = 16000
