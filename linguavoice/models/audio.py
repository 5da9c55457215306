"""Audio-related data models."""

import time
from dataclasses import dataclass, field


@dataclass
class AudioStats:
    """Audio capture statistics."""
    is_open: bool
    is_forwarding: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_frames: int


@dataclass(frozen=True)
class AudioFrame:
    """One block of PCM16 little-endian samples, immutable once produced."""
    data: bytes
    sample_rate: int = 16000
    channels: int = 1
    sequence_number: int = 0
    timestamp: float = field(default_factory=time.time)

    @property
    def sample_count(self) -> int:
        return len(self.data) // 2 // self.channels

    @property
    def duration_ms(self) -> int:
        return int(self.sample_count * 1000 / self.sample_rate)

    @property
    def mime_type(self) -> str:
        """Media content-type tag used on the wire, e.g. ``audio/pcm;rate=16000``."""
        return f"audio/pcm;rate={self.sample_rate}"
