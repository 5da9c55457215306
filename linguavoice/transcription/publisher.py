"""Transcript delta publisher for the pub/sub delta channel."""

import logging
import threading
from typing import Callable
from pubsub import pub
from ..models.events import TranscriptDelta

logger = logging.getLogger(__name__)

DEFAULT_DELTA_TOPIC = "transcript.delta"


class DeltaPublisher:
    """Publishes transcript deltas using pubsub.pub, in the order they are received."""

    def __init__(self, topic: str = DEFAULT_DELTA_TOPIC):
        """Initialize delta publisher.

        Args:
            topic: Pub/sub topic name for transcript deltas
        """
        self.topic = topic
        self._sequence = 0
        self._lock = threading.Lock()
        logger.info(f"DeltaPublisher initialized with topic: {topic}")

    def publish_delta(self, recording_id: str, text: str) -> None:
        """Publish one text fragment received for a recording.

        Args:
            recording_id: Recording the fragment belongs to
            text: Fragment exactly as the service sent it
        """
        with self._lock:
            self._sequence += 1
            delta = TranscriptDelta(recording_id=recording_id, text=text, sequence_number=self._sequence)
            pub.sendMessage(self.topic, delta=delta)
        logger.debug(f"Published delta {delta.sequence_number} for {recording_id}: {len(text)} chars")

    def get_callback(self, recording_id: str) -> Callable[[str], None]:
        """Get a per-recording callback for LiveSessionManager's on_delta.

        Returns:
            Callback function that publishes deltas tagged with recording_id
        """
        def _publish(text: str) -> None:
            self.publish_delta(recording_id, text)
        return _publish
