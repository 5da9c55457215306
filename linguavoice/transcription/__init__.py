"""Transcription module for LinguaVoice."""

from .base import AbstractLiveTransport
from .gemini_live import GeminiLiveTransport
from .gemini_batch import GeminiBatchTranscriber, contract_violations
from .publisher import DeltaPublisher, DEFAULT_DELTA_TOPIC
from .accumulator import TranscriptAccumulator

__all__ = [
    "AbstractLiveTransport",
    "GeminiLiveTransport",
    "GeminiBatchTranscriber",
    "contract_violations",
    "DeltaPublisher",
    "DEFAULT_DELTA_TOPIC",
    "TranscriptAccumulator",
]
