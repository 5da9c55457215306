"""Audio capture and encoding module."""

from .capture import AudioCapture
from .encoder import encode_frame, decode_frame, to_transport_text

__all__ = [
    'AudioCapture',
    'encode_frame',
    'decode_frame',
    'to_transport_text',
]
