"""UI-related data models."""

from dataclasses import dataclass
from typing import Optional

from .recording import RecordingState
from .transcription import Language


@dataclass
class RecordingStatus:
    """Snapshot of the recording state machine for front ends."""
    state: RecordingState = RecordingState.IDLE
    language: Language = Language.ENGLISH
    elapsed_seconds: float = 0.0
    max_duration_seconds: int = 300
    transcript: str = ""
    last_error: Optional[str] = None
    recording_id: Optional[str] = None
    frames_captured: int = 0
    frames_dropped: int = 0


def format_elapsed(seconds: float) -> str:
    """Render seconds as MM:SS."""
    seconds = int(seconds)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
