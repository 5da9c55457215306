"""Microphone capture that encodes each callback block and forwards it as a frame."""

import pyaudio
import logging
from datetime import datetime
from typing import Optional, Callable

import numpy as np

from ..errors import EncodingError, MicrophonePermissionError
from ..models.audio import AudioFrame, AudioStats
from .encoder import encode_frame

logger = logging.getLogger(__name__)


class AudioCapture:
    """Owns the microphone stream and forwards encoded frames while enabled.

    Opening the stream acquires the input device; frames are only produced
    once forwarding is started. Pausing stops frame production at the source
    without closing the device, and nothing captured while paused is kept.
    Usable as a context manager: entering opens the device, exiting releases it.
    """

    def __init__(
        self,
        frame_callback: Callable[[AudioFrame], None],
        sample_rate: int = 16000,
        chunk_size: int = 4096,
        channels: int = 1,
        device_index: Optional[int] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            frame_callback: Receives every forwarded AudioFrame, in capture order
            sample_rate: Audio sample rate (16kHz for the live session)
            chunk_size: Samples per callback block
            channels: Input channels; only the first one is encoded
            device_index: PyAudio input device, None for the system default
        """
        self.frame_callback = frame_callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.device_index = device_index

        self.forwarding = False
        self.open_time: Optional[datetime] = None
        self.total_frames = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    def open(self) -> None:
        """Acquire the input device. Frames are not forwarded until start_forwarding()."""
        if self.is_open:
            logger.warning("Microphone already open")
            return

        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            self.stream = self.pyaudio_instance.open(
                format=pyaudio.paFloat32,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.chunk_size,
                stream_callback=self._on_audio,
            )
        except OSError as e:
            logger.error(f"Could not open microphone: {e}")
            self._terminate()
            raise MicrophonePermissionError() from e

        self.open_time = datetime.now()
        self.total_frames = 0
        logger.info(f"Microphone opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")

    def start_forwarding(self) -> None:
        """Begin handing frames to the frame callback."""
        if not self.is_open:
            logger.warning("Cannot forward frames, microphone is not open")
            return
        self.forwarding = True
        logger.debug("Frame forwarding started")

    def pause_forwarding(self) -> None:
        """Suspend frame production without releasing the device."""
        self.forwarding = False
        logger.debug("Frame forwarding paused")

    def resume_forwarding(self) -> None:
        self.start_forwarding()

    def close(self) -> None:
        """Stop forwarding and release the input device. Safe to call repeatedly."""
        self.forwarding = False
        if not self.is_open and self.pyaudio_instance is None:
            return

        stream, self.stream = self.stream, None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.warning(f"Error closing microphone stream: {e}")
        self._terminate()
        logger.info(f"Microphone released. Total frames: {self.total_frames}")

    def _terminate(self) -> None:
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def _on_audio(self, in_data, frame_count, time_info, status):
        """PyAudio stream callback: encode the block and forward it if enabled."""
        if status:
            logger.debug(f"Input stream status flags: {status}")

        if self.forwarding and in_data:
            samples = np.frombuffer(in_data, dtype=np.float32)
            if self.channels > 1:
                samples = samples.reshape(-1, self.channels)[:, 0]
            try:
                frame = encode_frame(samples, self.sample_rate, sequence_number=self.total_frames)
            except EncodingError as e:
                logger.error(f"Dropped unencodable input block: {e.detail}")
                return (None, pyaudio.paContinue)
            self.total_frames += 1
            try:
                self.frame_callback(frame)
            except Exception as e:
                logger.error(f"Frame callback failed for frame {frame.sequence_number}: {e}", exc_info=True)

        return (None, pyaudio.paContinue)

    def get_recording_stats(self) -> AudioStats:
        """Get current capture statistics."""
        duration = 0.0
        if self.open_time and self.is_open:
            duration = (datetime.now() - self.open_time).total_seconds()

        return AudioStats(
            is_open=self.is_open,
            is_forwarding=self.forwarding,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_frames=self.total_frames,
        )

    def __enter__(self) -> "AudioCapture":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        """Ensure the device is released on deletion."""
        if self.is_open:
            self.close()
