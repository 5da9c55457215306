"""PCM16 frame encoding for the live transcription path."""

import base64
import logging
from typing import Sequence, Union

import numpy as np

from ..errors import EncodingError
from ..models.audio import AudioFrame

logger = logging.getLogger(__name__)

PCM16_NEGATIVE_SCALE = 32768.0
PCM16_POSITIVE_SCALE = 32767.0


def encode_frame(samples: Union[Sequence[float], np.ndarray],
                 sample_rate: int = 16000,
                 sequence_number: int = 0) -> AudioFrame:
    """Convert float samples in [-1.0, 1.0] into a PCM16 little-endian frame.

    Samples are clamped first, so out-of-range input saturates instead of
    wrapping. Negative values scale by 32768 and the rest by 32767, so -1.0 and
    1.0 land exactly on the int16 limits.

    Args:
        samples: One-dimensional block of mono float samples
        sample_rate: Sample rate of the block in Hz
        sequence_number: Capture order of this block

    Returns:
        AudioFrame holding ``2 * len(samples)`` bytes
    """
    try:
        values = np.asarray(samples, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Samples are not numeric: {e}") from e

    if values.ndim != 1:
        raise EncodingError(f"Expected a 1-D block of samples, got shape {values.shape}")
    if not np.all(np.isfinite(values)):
        raise EncodingError("Samples contain NaN or infinite values")

    clipped = np.clip(values, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * PCM16_NEGATIVE_SCALE, clipped * PCM16_POSITIVE_SCALE)
    pcm = np.rint(scaled).astype('<i2')

    return AudioFrame(
        data=pcm.tobytes(),
        sample_rate=sample_rate,
        channels=1,
        sequence_number=sequence_number,
    )


def decode_frame(frame: AudioFrame) -> np.ndarray:
    """Inverse of :func:`encode_frame`, returning float samples."""
    pcm = np.frombuffer(frame.data, dtype='<i2').astype(np.float64)
    return np.where(pcm < 0, pcm / PCM16_NEGATIVE_SCALE, pcm / PCM16_POSITIVE_SCALE)


def to_transport_text(frame: AudioFrame) -> str:
    """Standard base64 encoding of the frame payload, for JSON messages."""
    return base64.b64encode(frame.data).decode('ascii')
