"""Transcription-related data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


UNINTELLIGIBLE = "[Unintelligible]"


class Language(Enum):
    """Target transcription languages."""
    ENGLISH = "English"
    KHMER = "Khmer"


@dataclass
class TranscriptionResult:
    """Result of a batch (non-streaming) transcription."""
    text: str
    language: Language
    processing_time: float
    timestamp: datetime
    service: str
    mime_type: str

    @property
    def is_unintelligible(self) -> bool:
        return self.text == UNINTELLIGIBLE
