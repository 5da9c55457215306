"""Data models for the LinguaVoice application."""

from .audio import AudioStats, AudioFrame
from .events import TranscriptDelta, SessionSignal, SignalKind
from .recording import RecordingState, ACTIVE_STATES
from .session import SessionState, LiveSessionConfig, TERMINAL_SESSION_STATES
from .transcription import Language, TranscriptionResult, UNINTELLIGIBLE
from .ui import RecordingStatus, format_elapsed

__all__ = [
    "AudioStats",
    "AudioFrame",
    "TranscriptDelta",
    "SessionSignal",
    "SignalKind",
    "RecordingState",
    "ACTIVE_STATES",
    "SessionState",
    "LiveSessionConfig",
    "TERMINAL_SESSION_STATES",
    "Language",
    "TranscriptionResult",
    "UNINTELLIGIBLE",
    "RecordingStatus",
    "format_elapsed",
]
