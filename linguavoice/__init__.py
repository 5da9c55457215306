"""LinguaVoice - real-time microphone transcription over Gemini Live."""

__version__ = "0.1.0"
