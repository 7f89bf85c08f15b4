"""
Input monitor: polls global key state and turns it into hotkey events.

The monitor owns a single background thread. It receives its mode and the
active hotkey as control messages and publishes typed events on an output
queue; nothing else reads or writes its state.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Union

from .keys import (
    DEFAULT_HOTKEY,
    KEY_CODE_COUNT,
    VK_CONTROL,
    VK_MENU,
    VK_SHIFT,
    IsKeyDown,
    KeyCombo,
    is_capturable,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.01
STOP_JOIN_TIMEOUT_S = 0.1


# --- Events (monitor -> session) ---
@dataclass(frozen=True)
class Toggle:
    pass


@dataclass(frozen=True)
class Captured:
    combo: KeyCombo


@dataclass(frozen=True)
class Preview:
    text: str


@dataclass(frozen=True)
class MonitorFailed:
    error: Exception


MonitorEvent = Union[Toggle, Captured, Preview, MonitorFailed]


# --- Controls (session -> monitor) ---
@dataclass(frozen=True)
class WatchHotkey:
    combo: KeyCombo


@dataclass(frozen=True)
class BeginCapture:
    pass


@dataclass(frozen=True)
class EndCapture:
    pass


@dataclass(frozen=True)
class _Modifiers:
    ctrl: bool
    shift: bool
    alt: bool

    @property
    def any(self) -> bool:
        return self.ctrl or self.shift or self.alt


class InputMonitor:
    """
    Poll every key code once per cycle and emit Toggle / Captured / Preview.

    `poll_once()` processes exactly one sample and can be driven directly;
    `start()` runs it every POLL_INTERVAL_S on a daemon thread.
    """

    def __init__(self, is_key_down: IsKeyDown, events: Optional["queue.Queue[MonitorEvent]"] = None,
                 hotkey: KeyCombo = DEFAULT_HOTKEY, poll_interval: float = POLL_INTERVAL_S) -> None:
        self._is_key_down = is_key_down
        self.events = events if events is not None else queue.Queue()
        self.poll_interval = poll_interval
        self._controls: "queue.Queue" = queue.Queue()

        self._hotkey = hotkey
        self._capturing = False
        self._capture_done = False

        self._previous: List[bool] = [False] * KEY_CODE_COUNT
        self._previous_mods = _Modifiers(False, False, False)
        self._hotkey_was_held = False
        self._last_preview: Optional[str] = None

        self._disposed = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --- control API (any thread) ---
    def watch(self, combo: KeyCombo) -> None:
        self._controls.put(WatchHotkey(combo))

    def begin_capture(self) -> None:
        self._controls.put(BeginCapture())

    def end_capture(self) -> None:
        self._controls.put(EndCapture())

    # --- lifecycle ---
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._disposed.clear()
        self._thread = threading.Thread(target=self._run, name="input-monitor", daemon=True)
        self._thread.start()
        logger.info("Input monitor started (hotkey %s)", self._hotkey)

    def stop(self) -> None:
        """Signal the loop to exit and wait briefly for it; best effort."""
        self._disposed.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(STOP_JOIN_TIMEOUT_S)
            if self._thread.is_alive():
                logger.debug("Input monitor did not exit within %.0f ms", STOP_JOIN_TIMEOUT_S * 1000)
        logger.info("Input monitor stopped")

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _run(self) -> None:
        try:
            while not self._disposed.is_set():
                self.poll_once()
                time.sleep(self.poll_interval)
        except Exception as e:
            logger.exception("Input monitor stopped: key state could not be read")
            self.events.put(MonitorFailed(e))

    # --- sampling ---
    def _drain_controls(self) -> None:
        while True:
            try:
                msg = self._controls.get_nowait()
            except queue.Empty:
                return
            if isinstance(msg, WatchHotkey):
                self._hotkey = msg.combo
            elif isinstance(msg, BeginCapture):
                self._capturing = True
                self._capture_done = False
                self._last_preview = None
            elif isinstance(msg, EndCapture):
                self._capturing = False
                self._capture_done = False
                self._last_preview = None

    def poll_once(self) -> None:
        """Take one sample of the keyboard and emit at most one event per transition."""
        self._drain_controls()

        current = [self._is_key_down(code) for code in range(KEY_CODE_COUNT)]
        mods = _Modifiers(
            ctrl=current[VK_CONTROL],
            shift=current[VK_SHIFT],
            alt=current[VK_MENU],
        )
        hotkey_held = self._combo_held(self._hotkey, current, mods)

        if self._capturing:
            if not self._capture_done:
                self._process_capture(current, mods)
        else:
            if self._hotkey_was_held and not hotkey_held:
                self.events.put(Toggle())

        # state is tracked every cycle so mode switches never replay stale transitions
        self._previous = current
        self._previous_mods = mods
        self._hotkey_was_held = hotkey_held

    @staticmethod
    def _combo_held(combo: KeyCombo, current: List[bool], mods: _Modifiers) -> bool:
        if combo.ctrl and not mods.ctrl:
            return False
        if combo.shift and not mods.shift:
            return False
        if combo.alt and not mods.alt:
            return False
        return current[combo.key]

    def _process_capture(self, current: List[bool], mods: _Modifiers) -> None:
        held_before = self._previous_mods
        if held_before.any:
            for code in range(KEY_CODE_COUNT):
                if self._previous[code] and not current[code] and is_capturable(code):
                    combo = KeyCombo(key=code, ctrl=held_before.ctrl,
                                     shift=held_before.shift, alt=held_before.alt)
                    self._capture_done = True
                    self.events.put(Captured(combo))
                    return

        if mods.any:
            text = self._preview_text(current, mods)
            if text is not None and text != self._last_preview:
                self._last_preview = text
                self.events.put(Preview(text))

    @staticmethod
    def _preview_text(current: List[bool], mods: _Modifiers) -> Optional[str]:
        for code in range(KEY_CODE_COUNT):
            if current[code] and is_capturable(code):
                return KeyCombo(key=code, ctrl=mods.ctrl, shift=mods.shift, alt=mods.alt).display()
        return None
