"""Lifecycle of one connection to the live transcription service."""

import uuid
import asyncio
import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from ..audio.encoder import to_transport_text
from ..errors import ConnectionFailureError, LinguaVoiceError
from ..models.audio import AudioFrame
from ..models.session import LiveSessionConfig, SessionState, TERMINAL_SESSION_STATES
from ..transcription.base import AbstractLiveTransport

logger = logging.getLogger(__name__)


class LiveSessionManager:
    """Owns exactly one live session: Idle -> Connecting -> Open -> Closing -> Closed.

    The connection runs on a private thread with its own asyncio event loop.
    Frames cross into it through a bounded queue, in the order send_frame() is
    called; deltas come back through on_delta in receipt order. Callbacks run
    on the session thread and must not block on the caller.

    Callbacks:
        on_open(): the service acknowledged the session
        on_delta(text): a transcript fragment, verbatim
        on_error(error): LinguaVoiceError; the session is now Failed
        on_close(): the service ended the session on its own; now Closed
    """

    def __init__(self,
                 transport: AbstractLiveTransport,
                 on_open: Optional[Callable[[], None]] = None,
                 on_delta: Optional[Callable[[str], None]] = None,
                 on_error: Optional[Callable[[LinguaVoiceError], None]] = None,
                 on_close: Optional[Callable[[], None]] = None,
                 outbox_size: int = 64,
                 session_id: Optional[str] = None):
        self.transport = transport
        self.on_open = on_open
        self.on_delta = on_delta
        self.on_error = on_error
        self.on_close = on_close
        self.outbox_size = outbox_size

        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.created_at = datetime.now()
        self.config: Optional[LiveSessionConfig] = None
        self.state = SessionState.IDLE

        # Statistics
        self.frames_sent = 0
        self.frames_dropped = 0
        self.deltas_received = 0

        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._main_task: Optional[asyncio.Task] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    def connect(self, config: LiveSessionConfig) -> bool:
        """Start connecting in the background. Returns False if already used."""
        with self._lock:
            if self.state != SessionState.IDLE:
                logger.warning(f"Session {self.session_id} cannot connect from state {self.state.value}")
                return False
            self.state = SessionState.CONNECTING
            self.config = config

            self._loop = asyncio.new_event_loop()
            self._main_task = self._loop.create_task(self._run(config))
            self._thread = threading.Thread(target=self._run_loop, daemon=True)
            self._thread.name = f"LiveSession-{self.session_id}"
            self._thread.start()

        logger.info(f"Session {self.session_id} connecting (language={config.language.value}, "
                    f"format={config.audio_format}, rate={config.sample_rate})")
        return True

    def send_frame(self, frame: AudioFrame) -> bool:
        """Queue a frame for transmission. Frames sent outside Open are dropped."""
        if self.state != SessionState.OPEN:
            return False
        try:
            self._loop.call_soon_threadsafe(self._enqueue, frame)
        except RuntimeError:
            # Loop already shut down underneath us
            return False
        return True

    def close(self, timeout: float = 5.0) -> None:
        """Release the connection and wait for the session thread. Idempotent."""
        first_close = False
        with self._lock:
            if self.state not in TERMINAL_SESSION_STATES and self.state != SessionState.CLOSING:
                self.state = SessionState.CLOSING
                first_close = True

        thread = self._thread
        if not first_close and (thread is None or not thread.is_alive()):
            return

        if self._loop is not None and not self._loop.is_closed():
            try:
                self._loop.call_soon_threadsafe(self._main_task.cancel)
            except RuntimeError:
                logger.debug(f"Session {self.session_id} loop closed before cancel")

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Session thread {thread.name} did not stop cleanly")

        with self._lock:
            if self.state == SessionState.CLOSING:
                self.state = SessionState.CLOSED
        if first_close:
            logger.info(f"Session {self.session_id} closed. Frames sent: {self.frames_sent}, "
                        f"dropped: {self.frames_dropped}, deltas: {self.deltas_received}")

    def _run_loop(self) -> None:
        """Session thread body: drive the main task on the private loop."""
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._main_task)
        except asyncio.CancelledError:
            logger.debug(f"Session {self.session_id} task cancelled")
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()
            logger.debug(f"Session thread {threading.current_thread().name} exiting")

    async def _run(self, config: LiveSessionConfig) -> None:
        self._outbox = asyncio.Queue(maxsize=self.outbox_size)
        try:
            try:
                await self.transport.connect(config)
            except LinguaVoiceError as e:
                self._fail(e)
                return
            except Exception as e:
                logger.error(f"Unexpected error opening session {self.session_id}: {e}", exc_info=True)
                self._fail(ConnectionFailureError(ConnectionFailureError.CONNECT_FAILED))
                return

            with self._lock:
                if self.state != SessionState.CONNECTING:
                    return
                self.state = SessionState.OPEN
            logger.info(f"Session {self.session_id} open")
            self._emit(self.on_open)

            await self._pump()
        finally:
            await self.transport.close()

    async def _pump(self) -> None:
        """Run sender and receiver until either ends, then report why."""
        sender = asyncio.ensure_future(self._send_loop())
        receiver = asyncio.ensure_future(self._receive_loop())
        tasks = (sender, receiver)
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if receiver in done and receiver.exception() is None:
            # A remote close wins over a send that failed on the closing socket
            self._remote_closed()
            return

        errors = [task.exception() for task in done if task.exception() is not None]
        if not errors:
            self._remote_closed()
            return

        error = errors[0]
        if not isinstance(error, LinguaVoiceError):
            logger.error(f"Transport error in session {self.session_id}: {error!r}")
            error = ConnectionFailureError(ConnectionFailureError.INTERRUPTED)
        self._fail(error)

    async def _send_loop(self) -> None:
        while True:
            frame = await self._outbox.get()
            await self.transport.send_audio(to_transport_text(frame), frame.mime_type)
            self.frames_sent += 1

    async def _receive_loop(self) -> None:
        async for text in self.transport.receive_deltas():
            self.deltas_received += 1
            self._emit(self.on_delta, text)

    def _enqueue(self, frame: AudioFrame) -> None:
        if self.state != SessionState.OPEN:
            return
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.warning(f"Frame channel full, dropped frame {frame.sequence_number}")

    def _fail(self, error: LinguaVoiceError) -> None:
        with self._lock:
            if self.state not in (SessionState.CONNECTING, SessionState.OPEN):
                logger.debug(f"Ignoring error in state {self.state.value}: {error}")
                return
            self.state = SessionState.FAILED
        logger.error(f"Session {self.session_id} failed: {error.detail}")
        self._emit(self.on_error, error)

    def _remote_closed(self) -> None:
        with self._lock:
            if self.state != SessionState.OPEN:
                return
            self.state = SessionState.CLOSED
        logger.warning(f"Session {self.session_id} closed by the remote service")
        self._emit(self.on_close)

    def _emit(self, callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Session {self.session_id} callback {callback!r} failed: {e}", exc_info=True)
