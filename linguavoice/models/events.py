"""Event models passed between the capture, session and recording layers."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..errors import LinguaVoiceError


@dataclass(frozen=True)
class TranscriptDelta:
    """A fragment of transcribed text, tagged with the recording that produced it."""
    recording_id: str
    text: str
    sequence_number: int
    timestamp: datetime = field(default_factory=datetime.now)


class SignalKind(Enum):
    """Lifecycle signals a live session reports back to its owner."""
    OPENED = "opened"
    FAILED = "failed"
    REMOTE_CLOSED = "remote_closed"


@dataclass(frozen=True)
class SessionSignal:
    """Session lifecycle event queued for the recording state machine."""
    kind: SignalKind
    recording_id: str
    error: Optional[LinguaVoiceError] = None
    timestamp: datetime = field(default_factory=datetime.now)
