"""Pure transition table for the recording lifecycle.

``next_transition(state, event)`` maps a state and an event onto the next
state plus the ordered effects the orchestrator must carry out. It touches no
device, session or clock, so the whole machine can be checked exhaustively.
"""

from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple

from ..models.recording import RecordingState


class RecordingEvent(Enum):
    """User intents and system events that drive the recording lifecycle."""
    START = "start"
    SESSION_OPENED = "session_opened"
    SESSION_FAILED = "session_failed"
    DEVICE_FAILED = "device_failed"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    TIMEOUT = "timeout"
    CANCEL = "cancel"
    RESET = "reset"


class Effect(Enum):
    """Side effects, applied in order after the state changes."""
    CLEAR_ERROR = "clear_error"
    ACQUIRE_MICROPHONE = "acquire_microphone"
    CLEAR_TRANSCRIPT = "clear_transcript"
    OPEN_SESSION = "open_session"
    START_FORWARDING = "start_forwarding"
    START_TIMER = "start_timer"
    SUSPEND_FORWARDING = "suspend_forwarding"
    FREEZE_TIMER = "freeze_timer"
    RESUME_FORWARDING = "resume_forwarding"
    RESUME_TIMER = "resume_timer"
    CLOSE_SESSION = "close_session"
    RELEASE_MICROPHONE = "release_microphone"
    SEAL_TRANSCRIPT = "seal_transcript"
    DISCARD_TRANSCRIPT = "discard_transcript"
    RECORD_ERROR = "record_error"
    FORGET_RECORDING = "forget_recording"


class Transition(NamedTuple):
    state: RecordingState
    effects: Tuple[Effect, ...]


_START = Transition(RecordingState.PROCESSING, (
    Effect.CLEAR_ERROR,
    Effect.CLEAR_TRANSCRIPT,
    Effect.ACQUIRE_MICROPHONE,
    Effect.OPEN_SESSION,
))
_COMPLETE = Transition(RecordingState.COMPLETED, (
    Effect.SUSPEND_FORWARDING,
    Effect.FREEZE_TIMER,
    Effect.CLOSE_SESSION,
    Effect.RELEASE_MICROPHONE,
    Effect.SEAL_TRANSCRIPT,
))
_CANCEL = Transition(RecordingState.IDLE, (
    Effect.CLOSE_SESSION,
    Effect.RELEASE_MICROPHONE,
    Effect.DISCARD_TRANSCRIPT,
    Effect.FORGET_RECORDING,
))
_FAIL = Transition(RecordingState.ERROR, (
    Effect.FREEZE_TIMER,
    Effect.CLOSE_SESSION,
    Effect.RELEASE_MICROPHONE,
    Effect.SEAL_TRANSCRIPT,
    Effect.RECORD_ERROR,
))
_RESET = Transition(RecordingState.IDLE, (
    Effect.CLEAR_ERROR,
    Effect.DISCARD_TRANSCRIPT,
    Effect.FORGET_RECORDING,
))

_IDLE = RecordingState.IDLE
_PROCESSING = RecordingState.PROCESSING
_RECORDING = RecordingState.RECORDING
_PAUSED = RecordingState.PAUSED
_COMPLETED = RecordingState.COMPLETED
_ERROR = RecordingState.ERROR

TRANSITIONS: Dict[Tuple[RecordingState, RecordingEvent], Transition] = {
    (_IDLE, RecordingEvent.START): _START,
    (_COMPLETED, RecordingEvent.START): _START,
    (_ERROR, RecordingEvent.START): _START,

    (_PROCESSING, RecordingEvent.SESSION_OPENED): Transition(_RECORDING, (
        Effect.START_FORWARDING,
        Effect.START_TIMER,
    )),
    (_PROCESSING, RecordingEvent.SESSION_FAILED): _FAIL,
    (_PROCESSING, RecordingEvent.DEVICE_FAILED): _FAIL,
    (_RECORDING, RecordingEvent.SESSION_FAILED): _FAIL,
    (_PAUSED, RecordingEvent.SESSION_FAILED): _FAIL,

    (_RECORDING, RecordingEvent.PAUSE): Transition(_PAUSED, (
        Effect.SUSPEND_FORWARDING,
        Effect.FREEZE_TIMER,
    )),
    (_PAUSED, RecordingEvent.RESUME): Transition(_RECORDING, (
        Effect.RESUME_FORWARDING,
        Effect.RESUME_TIMER,
    )),

    (_RECORDING, RecordingEvent.STOP): _COMPLETE,
    (_PAUSED, RecordingEvent.STOP): _COMPLETE,
    (_RECORDING, RecordingEvent.TIMEOUT): _COMPLETE,

    (_RECORDING, RecordingEvent.CANCEL): _CANCEL,
    (_PAUSED, RecordingEvent.CANCEL): _CANCEL,
    (_PROCESSING, RecordingEvent.CANCEL): _CANCEL,

    (_COMPLETED, RecordingEvent.RESET): _RESET,
    (_ERROR, RecordingEvent.RESET): _RESET,
}


def next_transition(state: RecordingState, event: RecordingEvent) -> Optional[Transition]:
    """Return the transition for ``event`` in ``state``, or None if it is ignored there."""
    return TRANSITIONS.get((state, event))


def can_handle(state: RecordingState, event: RecordingEvent) -> bool:
    return (state, event) in TRANSITIONS
