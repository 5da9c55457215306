"""Terminal recording screen: live status panel plus keyboard commands."""

import time
import logging
import threading
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import LinguaVoiceError
from ..models.recording import RecordingState
from ..models.ui import RecordingStatus, format_elapsed
from ..services.state_machine import RecordingStateMachine
from .keyboard_input import KeyboardInputHandler

logger = logging.getLogger(__name__)

HELP_TEXT = "r=record  p=pause/resume  s=stop  c=cancel  x=reset  q=quit"

STATE_STYLES = {
    RecordingState.IDLE: ("IDLE", "bold yellow"),
    RecordingState.PROCESSING: ("CONNECTING", "bold cyan"),
    RecordingState.RECORDING: ("RECORDING", "bold red"),
    RecordingState.PAUSED: ("PAUSED", "bold magenta"),
    RecordingState.COMPLETED: ("COMPLETED", "bold green"),
    RecordingState.ERROR: ("ERROR", "bold white on red"),
}


def render_status(status: RecordingStatus) -> Panel:
    """Build the status panel for one snapshot."""
    label, style = STATE_STYLES[status.state]

    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column()
    table.add_row("State", Text(label, style=style))
    table.add_row("Time", f"{format_elapsed(status.elapsed_seconds)} / "
                          f"{format_elapsed(status.max_duration_seconds)}")
    table.add_row("Language", status.language.value)
    table.add_row("Frames", f"{status.frames_captured} captured, {status.frames_dropped} dropped")
    if status.last_error:
        table.add_row("Error", Text(status.last_error, style="red"))

    transcript = Text(status.transcript or "Transcription will appear here...",
                      style="white" if status.transcript else "dim")

    return Panel(
        Group(table, Panel(transcript, title="Transcript"), Text(HELP_TEXT, style="dim")),
        title="LinguaVoice - Real-time Transcription",
        border_style="bright_blue",
    )


class RecordingScreen:
    """Drives a RecordingStateMachine from the keyboard and a one-second timer."""

    def __init__(self, machine: RecordingStateMachine, console: Console = None,
                 refresh_interval: float = 0.1):
        self.machine = machine
        self.console = console or Console()
        self.refresh_interval = refresh_interval
        self.should_exit = threading.Event()
        self.input_handler = KeyboardInputHandler(self.handle_key)

    def handle_key(self, key: str) -> bool:
        """Map a key to a user intent. Returns False to quit."""
        try:
            if key == "r":
                self.machine.start()
            elif key == "p":
                if self.machine.state == RecordingState.PAUSED:
                    self.machine.resume()
                else:
                    self.machine.pause()
            elif key == "s":
                self.machine.stop()
            elif key == "c":
                self.machine.cancel()
            elif key == "x":
                self.machine.reset()
            elif key == "q":
                self.should_exit.set()
                return False
        except LinguaVoiceError as e:
            logger.error(f"Command '{key}' failed: {e.detail}")
            self.machine.report_error(e.detail)
        return True

    def run(self) -> str:
        """Run until quit; returns the final transcript."""
        self.input_handler.start()
        next_tick = time.monotonic() + 1.0
        try:
            with Live(render_status(self.machine.snapshot()), console=self.console,
                      refresh_per_second=10) as live:
                while not self.should_exit.is_set():
                    now = time.monotonic()
                    if now >= next_tick:
                        self.machine.tick(1.0)
                        next_tick += 1.0
                    else:
                        self.machine.process_events()
                    live.update(render_status(self.machine.snapshot()))
                    self.should_exit.wait(self.refresh_interval)
        finally:
            self.input_handler.stop()
        return self.machine.transcript
