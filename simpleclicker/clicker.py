"""Click engine: a cancellable repeating click loop on a background thread."""

import enum
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

STOP_JOIN_TIMEOUT_S = 0.1


class MouseButton(enum.Enum):
    LEFT = "Left"
    RIGHT = "Right"


_mouse_controller = None


def inject_click(button: MouseButton) -> None:
    """Press and release `button` at the current cursor position."""
    global _mouse_controller
    from pynput.mouse import Button, Controller as MouseController

    if _mouse_controller is None:
        _mouse_controller = MouseController()
    btn = Button.left if button is MouseButton.LEFT else Button.right
    _mouse_controller.press(btn)
    _mouse_controller.release(btn)


class ClickEngine:
    """
    Repeatedly waits `interval_ms` and then clicks `button` until stopped.

    Only one loop thread exists at a time. `stop()` wakes the pending wait
    immediately, so no click is injected after it returns.
    """

    def __init__(self, interval_ms: int = 100, button: MouseButton = MouseButton.LEFT,
                 inject: Callable[[MouseButton], None] = inject_click) -> None:
        self._inject = inject
        self._lock = threading.Lock()
        self._interval_ms = interval_ms
        self._button = button
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.clicks = 0

    def configure(self, interval_ms: Optional[int] = None, button: Optional[MouseButton] = None) -> None:
        """Change interval/button; a running loop picks them up at its next wait."""
        with self._lock:
            if interval_ms is not None:
                self._interval_ms = interval_ms
            if button is not None:
                self._button = button

    @property
    def running(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    def start(self) -> bool:
        """Start the loop. Returns False (and does nothing) if already running."""
        with self._lock:
            if self._stop_event is not None:
                return False
            stop_event = threading.Event()
            self._stop_event = stop_event
            self.clicks = 0
            self._thread = threading.Thread(target=self._click_loop, args=(stop_event,),
                                            name="click-engine", daemon=True)
            self._thread.start()
            logger.info("Clicking started (%s button every %d ms)", self._button.value, self._interval_ms)
        return True

    def stop(self) -> bool:
        """Stop the loop. Returns False (and does nothing) if not running."""
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
            if stop_event is None:
                return False
            stop_event.set()
            self._stop_event = None
            self._thread = None
        if thread is not threading.current_thread():
            thread.join(STOP_JOIN_TIMEOUT_S)
        logger.info("Clicking stopped after %d clicks", self.clicks)
        return True

    def _click_loop(self, stop_event: threading.Event) -> None:
        while True:
            with self._lock:
                interval_s = max(1, self._interval_ms) / 1000
            if stop_event.wait(interval_s):
                break
            with self._lock:
                if stop_event.is_set():
                    break
                button = self._button
                self.clicks += 1
            self._inject(button)
