"""Push-to-talk keyboard controls.

Keys are read on a daemon thread and delivered to the asyncio loop, so the
handler callback always runs on the loop thread.
"""

import asyncio
import logging
import sys
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TALK_KEY = " "
CANCEL_KEY = "c"
RECONNECT_KEY = "r"
QUIT_KEY = "q"


class KeyboardInputHandler:
    """Single-key terminal input, raw mode on Unix and msvcrt on Windows."""

    def __init__(self, loop: asyncio.AbstractEventLoop, on_key: Callable[[str], None]):
        """Initialize keyboard handler.

        Args:
            loop: Event loop that receives the keys
            on_key: Called on the loop thread with each lower-cased key
        """
        self.loop = loop
        self.on_key = on_key
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        reader = self._read_raw_key if sys.stdin.isatty() else self._read_line_key
        self.thread = threading.Thread(target=self._input_loop, args=(reader,), daemon=True)
        self.thread.name = "KeyboardInputThread"
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        logger.info("Keyboard input handler stopped")

    def _input_loop(self, reader: Callable[[], Optional[str]]) -> None:
        while self.running:
            try:
                key = reader()
            except EOFError:
                logger.info("Input closed")
                key = QUIT_KEY
            if not key:
                continue
            if key == "\x03":
                key = QUIT_KEY
            logger.debug(f"Key pressed: {key!r}")
            if self.loop.is_closed():
                return
            self.loop.call_soon_threadsafe(self.on_key, key)
            if key == QUIT_KEY:
                return

    def _read_raw_key(self) -> Optional[str]:
        if sys.platform == "win32":
            import msvcrt
            if msvcrt.kbhit():
                return msvcrt.getwch().lower()
            threading.Event().wait(0.05)
            return None

        import select
        import termios
        import tty

        if not select.select([sys.stdin], [], [], 0.1)[0]:
            return None
        old_settings = termios.tcgetattr(sys.stdin)
        try:
            tty.setraw(sys.stdin.fileno())
            return sys.stdin.read(1).lower()
        finally:
            termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)

    def _read_line_key(self) -> Optional[str]:
        """Fallback for piped input: one command per line, empty line toggles talk."""
        line = sys.stdin.readline()
        if line == "":
            raise EOFError
        line = line.strip().lower()
        return line[0] if line else TALK_KEY
