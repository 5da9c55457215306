"""Services layer for LinguaVoice recording logic."""

from .live_session import LiveSessionManager
from .recording_state import RecordingEvent, Effect, Transition, next_transition
from .state_machine import RecordingStateMachine, RecordingSession

__all__ = [
    "LiveSessionManager",
    "RecordingEvent",
    "Effect",
    "Transition",
    "next_transition",
    "RecordingStateMachine",
    "RecordingSession",
]
