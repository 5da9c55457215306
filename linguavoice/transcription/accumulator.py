"""Transcript accumulator fed by the pub/sub delta channel.

While a recording is live the buffer is append-only and only deltas for the
active recording are accepted. Once sealed, no automated write happens again
and the text belongs to the user.
"""

import logging
import threading
from typing import List, Optional
from pubsub import pub

from ..errors import TranscriptLockedError
from ..models.events import TranscriptDelta
from .publisher import DEFAULT_DELTA_TOPIC

logger = logging.getLogger(__name__)


class TranscriptAccumulator:
    """Concatenates transcript deltas in arrival order into one editable string."""

    def __init__(self, topic: str = DEFAULT_DELTA_TOPIC):
        """Initialize transcript accumulator.

        Args:
            topic: Topic carrying TranscriptDelta messages
        """
        self.topic = topic
        self.recording_id: Optional[str] = None
        self.accepting = False

        self._deltas: List[str] = []
        self._text = ""
        self.lock = threading.RLock()

        pub.subscribe(self._on_delta, topic)
        logger.info(f"TranscriptAccumulator subscribed to {topic}")

    def _on_delta(self, delta: TranscriptDelta) -> None:
        """Append a delta verbatim if it belongs to the active recording."""
        with self.lock:
            if not self.accepting or delta.recording_id != self.recording_id:
                logger.debug(f"Dropping delta {delta.sequence_number} for {delta.recording_id} "
                             f"(active={self.recording_id}, accepting={self.accepting})")
                return
            self._deltas.append(delta.text)
            self._text += delta.text

    def begin(self, recording_id: str) -> None:
        """Clear the buffer and start accepting deltas for a new recording."""
        with self.lock:
            self._deltas.clear()
            self._text = ""
            self.recording_id = recording_id
            self.accepting = True
        logger.debug(f"Transcript cleared for recording {recording_id}")

    def seal(self) -> None:
        """Stop accepting deltas; the text becomes user-editable."""
        with self.lock:
            self.accepting = False
        logger.debug(f"Transcript sealed: {len(self._text)} chars from {len(self._deltas)} deltas")

    def discard(self) -> None:
        with self.lock:
            self._deltas.clear()
            self._text = ""
            self.recording_id = None
            self.accepting = False

    def replace(self, text: str) -> None:
        """Replace the whole transcript with user-edited text."""
        with self.lock:
            if self.accepting:
                raise TranscriptLockedError()
            self._text = text

    @property
    def text(self) -> str:
        with self.lock:
            return self._text

    @property
    def deltas(self) -> List[str]:
        with self.lock:
            return list(self._deltas)

    def close(self) -> None:
        """Unsubscribe from the delta topic."""
        if pub.isSubscribed(self._on_delta, self.topic):
            pub.unsubscribe(self._on_delta, self.topic)
