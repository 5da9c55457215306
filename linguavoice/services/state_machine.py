"""Recording orchestrator: applies the transition table to real resources."""

import uuid
import queue
import logging
import threading
from contextlib import ExitStack
from datetime import datetime
from typing import Any, Callable, Optional

from ..audio.capture import AudioCapture
from ..config import LinguaVoiceConfig, validate_max_duration
from ..errors import (
    ConnectionFailureError,
    LinguaVoiceError,
    MicrophonePermissionError,
    TranscriptLockedError,
)
from ..models.audio import AudioFrame
from ..models.events import SessionSignal, SignalKind
from ..models.recording import RecordingState
from ..models.session import LiveSessionConfig
from ..models.transcription import Language
from ..models.ui import RecordingStatus
from ..transcription.accumulator import TranscriptAccumulator
from ..transcription.gemini_live import GeminiLiveTransport
from ..transcription.publisher import DeltaPublisher, DEFAULT_DELTA_TOPIC
from .live_session import LiveSessionManager
from .recording_state import Effect, RecordingEvent, can_handle, next_transition

logger = logging.getLogger(__name__)


class RecordingSession:
    """Resources and counters of one recording attempt.

    The microphone and the live session are entered into one ExitStack, so
    release() frees both no matter which path ends the recording.
    """

    def __init__(self, language: Language, max_duration_seconds: int):
        self.recording_id = uuid.uuid4().hex[:12]
        self.language = language
        self.max_duration_seconds = max_duration_seconds
        self.created_at = datetime.now()

        self.elapsed_seconds = 0.0
        self.timer_running = False
        self.error: Optional[LinguaVoiceError] = None

        self.capture = None
        self.live_session = None
        self.resources = ExitStack()

    @property
    def holds_microphone(self) -> bool:
        return self.capture is not None and self.capture.is_open

    def forward(self, frame: AudioFrame) -> None:
        """Capture callback: hand a frame to the live session, if there is one."""
        session = self.live_session
        if session is not None:
            session.send_frame(frame)

    def release(self) -> None:
        self.resources.close()


class RecordingStateMachine:
    """Maps user intents and session events onto one recording state.

    User intents (start, pause, resume, stop, cancel, reset) run synchronously
    on the caller's thread. Session lifecycle signals arrive from the session
    thread onto a queue and are applied by process_events(), which every intent
    and tick() also run first. Transcript deltas bypass the queue and flow
    straight to the accumulator over pub/sub.
    """

    def __init__(self,
                 config: LinguaVoiceConfig,
                 capture_factory: Optional[Callable[[Callable[[AudioFrame], None]], Any]] = None,
                 session_factory: Optional[Callable[..., Any]] = None,
                 delta_topic: str = DEFAULT_DELTA_TOPIC):
        """Initialize the state machine.

        Args:
            config: Application configuration
            capture_factory: Builds a microphone capture from a frame callback
            session_factory: Builds a live session from on_open/on_delta/on_error/on_close
            delta_topic: Pub/sub topic for transcript deltas
        """
        self.config = config
        self.capture_factory = capture_factory or self._create_capture
        self.session_factory = session_factory or self._create_session

        self.publisher = DeltaPublisher(delta_topic)
        self.accumulator = TranscriptAccumulator(delta_topic)

        self.language = Language(config.get('recording.language', Language.ENGLISH.value))
        self.max_duration_seconds = validate_max_duration(config.get('recording.max_duration_seconds', 300))

        self.state = RecordingState.IDLE
        self.recording: Optional[RecordingSession] = None
        self.last_error: Optional[str] = None

        self._api_key: Optional[str] = None
        self._signals: "queue.Queue[SessionSignal]" = queue.Queue()
        self._lock = threading.RLock()

        logger.info(f"RecordingStateMachine ready (language={self.language.value}, "
                    f"max_duration={self.max_duration_seconds}s)")

    # User intents

    def start(self) -> bool:
        """Begin a new recording. Rejected while one is already active.

        Raises:
            CredentialMissingError: before any device or network access
        """
        with self._lock:
            self.process_events()
            if not can_handle(self.state, RecordingEvent.START):
                logger.warning(f"Recording already in progress ({self.state.value}), start ignored")
                return False

            self._api_key = self.config.get_api_key()
            self.recording = RecordingSession(self.language, self.max_duration_seconds)
            started = self._dispatch(RecordingEvent.START)
            self.process_events()
            return started

    def pause(self) -> bool:
        return self._intent(RecordingEvent.PAUSE)

    def resume(self) -> bool:
        return self._intent(RecordingEvent.RESUME)

    def stop(self) -> bool:
        return self._intent(RecordingEvent.STOP)

    def cancel(self) -> bool:
        """Abandon the recording; the device and session are released before returning."""
        return self._intent(RecordingEvent.CANCEL)

    def reset(self) -> bool:
        """Return to IDLE from COMPLETED or ERROR. In IDLE, dismisses a reported error."""
        with self._lock:
            if self._intent(RecordingEvent.RESET):
                return True
            if self.state == RecordingState.IDLE and self.last_error is not None:
                logger.info(f"Dismissed error: {self.last_error}")
                self.last_error = None
                return True
            return False

    def report_error(self, detail: str) -> None:
        """Show an error raised by an intent that never changed state."""
        with self._lock:
            self.last_error = detail

    def _intent(self, event: RecordingEvent) -> bool:
        with self._lock:
            self.process_events()
            handled = self._dispatch(event)
            self.process_events()
            return handled

    # System events

    def tick(self, seconds: float = 1.0) -> RecordingState:
        """Advance the elapsed-time counter; auto-stops at the max duration."""
        with self._lock:
            self.process_events()
            recording = self.recording
            if self.state == RecordingState.RECORDING and recording is not None and recording.timer_running:
                recording.elapsed_seconds += seconds
                if recording.elapsed_seconds >= recording.max_duration_seconds:
                    logger.info(f"Max duration of {recording.max_duration_seconds}s reached")
                    self._dispatch(RecordingEvent.TIMEOUT)
            return self.state

    def process_events(self) -> int:
        """Apply queued session signals. Returns how many were handled."""
        handled = 0
        with self._lock:
            while True:
                try:
                    signal = self._signals.get_nowait()
                except queue.Empty:
                    break
                self._handle_signal(signal)
                handled += 1
        return handled

    def _post(self, signal: SessionSignal) -> None:
        self._signals.put(signal)

    def _handle_signal(self, signal: SessionSignal) -> None:
        recording = self.recording
        if recording is None or signal.recording_id != recording.recording_id:
            logger.debug(f"Ignoring stale {signal.kind.value} signal for {signal.recording_id}")
            return

        if signal.kind == SignalKind.OPENED:
            self._dispatch(RecordingEvent.SESSION_OPENED)
        elif signal.kind == SignalKind.FAILED:
            self._dispatch(RecordingEvent.SESSION_FAILED, signal.error)
        elif signal.kind == SignalKind.REMOTE_CLOSED:
            self._dispatch(RecordingEvent.SESSION_FAILED,
                           ConnectionFailureError(ConnectionFailureError.REMOTE_CLOSED))

    # Transitions

    def _dispatch(self, event: RecordingEvent, error: Optional[LinguaVoiceError] = None) -> bool:
        transition = next_transition(self.state, event)
        if transition is None:
            logger.debug(f"Ignoring {event.value} in state {self.state.value}")
            return False

        previous = self.state
        self.state = transition.state
        logger.info(f"Recording {previous.value} -> {self.state.value} on {event.value}")

        try:
            for effect in transition.effects:
                self._apply(effect, error)
        except LinguaVoiceError as e:
            failure = (RecordingEvent.DEVICE_FAILED if isinstance(e, MicrophonePermissionError)
                       else RecordingEvent.SESSION_FAILED)
            logger.error(f"{effect.value} failed: {e.detail}")
            if not self._dispatch(failure, e):
                raise
        except Exception:
            logger.error(f"{effect.value} failed unexpectedly, releasing recording resources", exc_info=True)
            if self.recording is not None:
                self.recording.release()
            self.state = RecordingState.ERROR
            self.last_error = "Internal error"
            raise
        return True

    def _apply(self, effect: Effect, error: Optional[LinguaVoiceError]) -> None:
        recording = self.recording

        if effect == Effect.CLEAR_ERROR:
            self.last_error = None
        elif effect == Effect.ACQUIRE_MICROPHONE:
            capture = self.capture_factory(recording.forward)
            recording.capture = recording.resources.enter_context(capture)
        elif effect == Effect.CLEAR_TRANSCRIPT:
            self.accumulator.begin(recording.recording_id)
        elif effect == Effect.OPEN_SESSION:
            self._open_session(recording)
        elif effect == Effect.START_FORWARDING:
            recording.capture.start_forwarding()
        elif effect == Effect.RESUME_FORWARDING:
            recording.capture.resume_forwarding()
        elif effect == Effect.SUSPEND_FORWARDING:
            if recording.capture is not None:
                recording.capture.pause_forwarding()
        elif effect == Effect.START_TIMER:
            recording.elapsed_seconds = 0.0
            recording.timer_running = True
        elif effect == Effect.FREEZE_TIMER:
            recording.timer_running = False
        elif effect == Effect.RESUME_TIMER:
            recording.timer_running = True
        elif effect == Effect.CLOSE_SESSION:
            if recording.live_session is not None:
                recording.live_session.close()
        elif effect == Effect.RELEASE_MICROPHONE:
            recording.release()
        elif effect == Effect.SEAL_TRANSCRIPT:
            self.accumulator.seal()
        elif effect == Effect.DISCARD_TRANSCRIPT:
            self.accumulator.discard()
        elif effect == Effect.RECORD_ERROR:
            recording.error = error or LinguaVoiceError()
            self.last_error = recording.error.detail
        elif effect == Effect.FORGET_RECORDING:
            self.recording = None

    def _open_session(self, recording: RecordingSession) -> None:
        recording_id = recording.recording_id
        session = self.session_factory(
            on_open=lambda: self._post(SessionSignal(SignalKind.OPENED, recording_id)),
            on_delta=self.publisher.get_callback(recording_id),
            on_error=lambda e: self._post(SessionSignal(SignalKind.FAILED, recording_id, e)),
            on_close=lambda: self._post(SessionSignal(SignalKind.REMOTE_CLOSED, recording_id)),
        )
        recording.live_session = session
        recording.resources.callback(session.close)
        session.connect(LiveSessionConfig(
            language=recording.language,
            audio_format="pcm16",
            sample_rate=self.config.get('audio.sample_rate', 16000),
        ))

    # Default collaborators

    def _create_capture(self, frame_callback: Callable[[AudioFrame], None]) -> AudioCapture:
        return AudioCapture(
            frame_callback,
            sample_rate=self.config.get('audio.sample_rate', 16000),
            chunk_size=self.config.get('audio.chunk_size', 4096),
            channels=self.config.get('audio.channels', 1),
            device_index=self.config.get('audio.device_index'),
        )

    def _create_session(self, **callbacks) -> LiveSessionManager:
        transport = GeminiLiveTransport(
            api_key=self._api_key,
            model=self.config.get('gemini.live_model'),
            url=self.config.get('gemini.live_url'),
            connect_timeout=self.config.get('gemini.connect_timeout_seconds', 15.0),
        )
        return LiveSessionManager(
            transport,
            outbox_size=self.config.get('recording.outbox_size', 64),
            **callbacks,
        )

    # Settings and status

    def set_language(self, language: Language) -> None:
        """Change the language used by the next recording."""
        with self._lock:
            self.language = language

    def set_max_duration(self, seconds: int) -> None:
        """Change the max duration; the running recording keeps its own limit."""
        with self._lock:
            self.max_duration_seconds = validate_max_duration(seconds)

    def edit_transcript(self, text: str) -> None:
        """Replace the transcript with user-edited text once the recording is completed."""
        with self._lock:
            if self.state != RecordingState.COMPLETED:
                raise TranscriptLockedError()
            self.accumulator.replace(text)

    @property
    def transcript(self) -> str:
        return self.accumulator.text

    @property
    def holds_microphone(self) -> bool:
        recording = self.recording
        return recording is not None and recording.holds_microphone

    def snapshot(self) -> RecordingStatus:
        with self._lock:
            recording = self.recording
            if recording is None:
                return RecordingStatus(
                    state=self.state,
                    language=self.language,
                    max_duration_seconds=self.max_duration_seconds,
                    transcript=self.accumulator.text,
                    last_error=self.last_error,
                )
            capture = recording.capture
            session = recording.live_session
            return RecordingStatus(
                state=self.state,
                language=recording.language,
                elapsed_seconds=recording.elapsed_seconds,
                max_duration_seconds=recording.max_duration_seconds,
                transcript=self.accumulator.text,
                last_error=self.last_error,
                recording_id=recording.recording_id,
                frames_captured=capture.total_frames if capture is not None else 0,
                frames_dropped=session.frames_dropped if session is not None else 0,
            )

    def shutdown(self) -> None:
        """Cancel any active recording and detach from the delta topic."""
        self.cancel()
        self.accumulator.close()
