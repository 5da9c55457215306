"""Keyboard input handling for the terminal UI."""

import sys
import threading
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


class KeyboardInputHandler:
    """Read single keypresses on a background thread and hand them to a callback."""

    def __init__(self, callback: Callable[[str], bool]):
        """Initialize keyboard handler.

        Args:
            callback: Function that takes a key and returns True to continue, False to quit
        """
        self.callback = callback
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the keyboard input handler."""
        if self.running:
            return

        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.name = "KeyboardInputThread"
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        """Stop the keyboard input handler."""
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        logger.info("Keyboard input handler stopped")

    def _input_loop(self) -> None:
        while self.running:
            key = self._get_key()
            if key is None:
                continue
            if key == "":
                logger.info("Input closed, stopping keyboard handler")
                self.callback("q")
                break
            logger.debug(f"Key detected: '{key}'")
            if not self.callback(key):
                break
        self.running = False

    def _get_key(self) -> Optional[str]:
        """One lowercase key, None if nothing was pressed, "" at end of input."""
        if not sys.stdin.isatty():
            line = sys.stdin.readline()
            return line.strip().lower()[:1] or ("" if not line else None)

        import select
        import termios
        import tty

        if not select.select([sys.stdin], [], [], 0.1)[0]:
            return None
        old_settings = termios.tcgetattr(sys.stdin)
        try:
            tty.setcbreak(sys.stdin.fileno())
            return sys.stdin.read(1).lower()
        finally:
            termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)
