"""Recording lifecycle states."""

from enum import Enum


class RecordingState(Enum):
    """Top-level phase of one user-initiated recording."""
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    PAUSED = "PAUSED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


# The microphone and live session are held exactly while in one of these.
ACTIVE_STATES = frozenset({RecordingState.PROCESSING, RecordingState.RECORDING, RecordingState.PAUSED})
