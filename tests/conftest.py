"""Pytest configuration and fixtures for LinguaVoice tests."""

import time
import uuid
import asyncio
import logging
import threading
from unittest.mock import Mock, patch

import numpy as np
import pytest

from linguavoice.audio.encoder import encode_frame
from linguavoice.config import LinguaVoiceConfig
from linguavoice.errors import ConnectionFailureError, MicrophonePermissionError
from linguavoice.services.state_machine import RecordingStateMachine
from linguavoice.transcription.base import AbstractLiveTransport


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without devices or network")
    config.addinivalue_line("markers", "integration: several real components wired together")
    config.addinivalue_line("markers", "slow: tests that take more than a second")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")


def _wait_until(predicate, timeout=3.0, interval=0.01):
    """Poll predicate until it is truthy or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def sine_block():
    """Generate a block of float samples (440 Hz sine at half scale)."""
    def generate(samples=1600, sample_rate=16000, amplitude=0.5):
        t = np.arange(samples) / sample_rate
        return (amplitude * np.sin(2 * np.pi * 440 * t)).astype(np.float32)
    return generate


@pytest.fixture
def test_config(monkeypatch, tmp_path):
    """Default configuration with a test API key and logs under tmp_path."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    config = LinguaVoiceConfig()
    config.set('gemini.api_key', 'test-key')
    config.set('logging.file_path', str(tmp_path / "logs" / "linguavoice.log"))
    return config


@pytest.fixture
def delta_topic():
    """A pub/sub topic private to one test."""
    return f"test.delta{uuid.uuid4().hex}"


class FakeLiveTransport(AbstractLiveTransport):
    """In-memory live transport driven from the test thread."""

    _CLOSE = object()

    def __init__(self, connect_error=None, hang_connect=False):
        self.connect_error = connect_error
        self.hang_connect = hang_connect
        self.send_error = None
        self.hold_sends = False

        self.config = None
        self.connect_count = 0
        self.close_count = 0
        self.sent = []

        self._loop = None
        self._incoming = None

    async def connect(self, config):
        self.connect_count += 1
        self._loop = asyncio.get_running_loop()
        self._incoming = asyncio.Queue()
        if self.hang_connect:
            await asyncio.sleep(3600)
        if self.connect_error is not None:
            raise self.connect_error
        self.config = config

    async def send_audio(self, data, mime_type):
        while self.hold_sends:
            await asyncio.sleep(0.01)
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((data, mime_type))

    async def receive_deltas(self):
        while True:
            item = await self._incoming.get()
            if item is self._CLOSE:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self):
        self.close_count += 1

    @property
    def closed(self):
        return self.close_count > 0

    def _push(self, item):
        self._loop.call_soon_threadsafe(self._incoming.put_nowait, item)

    def push_delta(self, text):
        self._push(text)

    def push_error(self, error=None):
        self._push(error or ConnectionFailureError(ConnectionFailureError.INTERRUPTED))

    def remote_close(self):
        self._push(self._CLOSE)


@pytest.fixture
def make_transport():
    """Factory for in-memory transports with scripted connect behaviour."""
    return FakeLiveTransport


@pytest.fixture
def fake_transport():
    return FakeLiveTransport()


class FakeCapture:
    """Microphone stand-in: frames are produced on demand with emit()."""

    def __init__(self, frame_callback, fail_open=False):
        self.frame_callback = frame_callback
        self.fail_open = fail_open
        self.is_open = False
        self.forwarding = False
        self.total_frames = 0
        self.open_count = 0
        self.close_count = 0

    def __enter__(self):
        if self.fail_open:
            raise MicrophonePermissionError()
        self.is_open = True
        self.open_count += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.forwarding = False
        if self.is_open:
            self.is_open = False
            self.close_count += 1

    def start_forwarding(self):
        self.forwarding = True

    def pause_forwarding(self):
        self.forwarding = False

    def resume_forwarding(self):
        self.forwarding = True

    def emit(self, samples):
        """Encode and forward one block if forwarding; returns the frame or None."""
        if not self.forwarding:
            return None
        frame = encode_frame(samples, sequence_number=self.total_frames)
        self.total_frames += 1
        self.frame_callback(frame)
        return frame


@pytest.fixture
def make_capture():
    return FakeCapture


class FakeSession:
    """Live session stand-in whose lifecycle the test drives by hand."""

    def __init__(self, on_open=None, on_delta=None, on_error=None, on_close=None):
        self.on_open = on_open
        self.on_delta = on_delta
        self.on_error = on_error
        self.on_close = on_close
        self.state = "idle"
        self.config = None
        self.frames = []
        self.frames_dropped = 0
        self.close_count = 0

    def connect(self, config):
        self.config = config
        self.state = "connecting"
        return True

    def send_frame(self, frame):
        if self.state != "open":
            self.frames_dropped += 1
            return False
        self.frames.append(frame)
        return True

    def open(self):
        self.state = "open"
        self.on_open()

    def delta(self, text):
        self.on_delta(text)

    def fail(self, error=None):
        self.state = "failed"
        self.on_error(error or ConnectionFailureError(ConnectionFailureError.INTERRUPTED))

    def remote_close(self):
        self.state = "closed"
        self.on_close()

    def close(self):
        self.close_count += 1
        if self.state not in ("closed", "failed"):
            self.state = "closed"


class MachineHarness:
    """A RecordingStateMachine wired to fake captures and sessions."""

    def __init__(self, config, delta_topic):
        self.captures = []
        self.sessions = []
        self.fail_open = False
        self.machine = RecordingStateMachine(
            config,
            capture_factory=self._capture,
            session_factory=self._session,
            delta_topic=delta_topic,
        )

    def _capture(self, frame_callback):
        capture = FakeCapture(frame_callback, fail_open=self.fail_open)
        self.captures.append(capture)
        return capture

    def _session(self, **callbacks):
        session = FakeSession(**callbacks)
        self.sessions.append(session)
        return session

    @property
    def capture(self):
        return self.captures[-1]

    @property
    def session(self):
        return self.sessions[-1]

    def start_recording(self):
        """Start and let the session open: ends in RECORDING."""
        self.machine.start()
        self.session.open()
        self.machine.process_events()


@pytest.fixture
def make_harness(delta_topic):
    """Build harnesses from a config; every one is shut down after the test."""
    created = []

    def make(config):
        harness = MachineHarness(config, delta_topic)
        created.append(harness)
        return harness

    yield make
    for harness in created:
        harness.machine.shutdown()


@pytest.fixture
def harness(test_config, make_harness):
    return make_harness(test_config)


@pytest.fixture
def restore_root_logging():
    """Put the root logger back the way it was after setup_logging() tests."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
