"""Terminal front end for LinguaVoice."""
