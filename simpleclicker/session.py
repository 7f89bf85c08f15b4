"""
Session state and toggle coordination.

The session owns the configuration and the running / capture flags. Monitor
events and presentation commands arrive on one inbox queue and are handled
on the session's own thread, so session state is only touched there.
"""

import enum
import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .clicker import ClickEngine, MouseButton
from .keys import KeyCombo
from .monitor import Captured, InputMonitor, MonitorFailed, Preview, Toggle
from .settings import Config, ConfigSaveError, clamp_interval, write_config

logger = logging.getLogger(__name__)

CAPTURE_PROMPT = "Press a key combination..."


class HotkeyState(enum.Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PENDING_CONFIRM = "pending_confirm"


# --- Commands (presentation -> session) ---
@dataclass(frozen=True)
class SetInterval:
    interval_ms: int


@dataclass(frozen=True)
class SetButton:
    button: MouseButton


@dataclass(frozen=True)
class BeginHotkeyCapture:
    pass


@dataclass(frozen=True)
class ConfirmHotkey:
    pass


@dataclass(frozen=True)
class CancelHotkey:
    pass


@dataclass(frozen=True)
class StartClicking:
    pass


@dataclass(frozen=True)
class StopClicking:
    pass


@dataclass(frozen=True)
class Shutdown:
    pass


class SessionListener:
    """Notification sink for the presentation layer. All methods are optional."""

    def running_changed(self, running: bool) -> None:
        pass

    def hotkey_display_changed(self, text: str, capturing: bool) -> None:
        pass

    def confirm_available_changed(self, available: bool) -> None:
        pass

    def error_reported(self, error: Exception) -> None:
        pass


class Session:
    def __init__(self, config: Config, config_path: Path, monitor: InputMonitor,
                 engine: ClickEngine, listener: Optional[SessionListener] = None) -> None:
        self.config = config
        self.config_path = config_path
        self.monitor = monitor
        self.engine = engine
        self.listener = listener or SessionListener()
        self.inbox = monitor.events

        self.running = False
        self.hotkey_state = HotkeyState.IDLE
        self.pending_hotkey: Optional[KeyCombo] = None

        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self._saved_on_close = False
        self.last_save_error: Optional[ConfigSaveError] = None

        self.engine.configure(interval_ms=config.interval_ms, button=config.click_button)
        self.monitor.watch(config.hotkey)

    @property
    def hotkey_capture_mode(self) -> bool:
        return self.hotkey_state is not HotkeyState.IDLE

    # --- presentation API (any thread) ---
    def set_interval(self, interval_ms: int) -> None:
        self.inbox.put(SetInterval(interval_ms))

    def set_button(self, button: MouseButton) -> None:
        self.inbox.put(SetButton(button))

    def begin_hotkey_capture(self) -> None:
        self.inbox.put(BeginHotkeyCapture())

    def confirm_hotkey(self) -> None:
        self.inbox.put(ConfirmHotkey())

    def cancel_hotkey(self) -> None:
        self.inbox.put(CancelHotkey())

    def start_clicking(self) -> None:
        self.inbox.put(StartClicking())

    def stop_clicking(self) -> None:
        self.inbox.put(StopClicking())

    # --- lifecycle ---
    def start(self) -> None:
        """Start the consumer thread and the input monitor."""
        self._thread = threading.Thread(target=self._run, name="session", daemon=True)
        self._thread.start()
        self.monitor.start()

    def close(self, timeout: float = 1.0) -> bool:
        """
        Stop clicking, save settings, then stop the consumer and the monitor.

        Returns True when the final save succeeded; see `last_save_error` otherwise.
        """
        self.inbox.put(Shutdown())
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout)
        else:
            self.pump()
        self.monitor.stop()
        return self._saved_on_close

    def _run(self) -> None:
        while not self._closed:
            self.handle(self.inbox.get())

    def pump(self) -> int:
        """Handle everything currently queued without blocking. Returns the count."""
        handled = 0
        while not self._closed:
            try:
                msg = self.inbox.get_nowait()
            except queue.Empty:
                break
            self.handle(msg)
            handled += 1
        return handled

    # --- dispatch (session thread) ---
    def handle(self, msg) -> None:
        if isinstance(msg, Toggle):
            self._on_toggle()
        elif isinstance(msg, Captured):
            self._on_captured(msg.combo)
        elif isinstance(msg, Preview):
            if self.hotkey_state is HotkeyState.CAPTURING:
                self.listener.hotkey_display_changed(msg.text, True)
        elif isinstance(msg, MonitorFailed):
            self.listener.error_reported(RuntimeError(f"Hotkey monitoring stopped: {msg.error}"))
        elif isinstance(msg, SetInterval):
            self._on_set_interval(msg.interval_ms)
        elif isinstance(msg, SetButton):
            self._on_set_button(msg.button)
        elif isinstance(msg, BeginHotkeyCapture):
            self._on_begin_capture()
        elif isinstance(msg, ConfirmHotkey):
            self._on_confirm()
        elif isinstance(msg, CancelHotkey):
            self._on_cancel()
        elif isinstance(msg, StartClicking):
            self._start_clicking()
        elif isinstance(msg, StopClicking):
            self._stop_clicking()
        elif isinstance(msg, Shutdown):
            self._on_shutdown()
        else:
            logger.warning("Unknown session message: %r", msg)

    def _on_toggle(self) -> None:
        if self.hotkey_capture_mode:
            return
        if self.running:
            self._stop_clicking()
        else:
            self._start_clicking()

    def _start_clicking(self) -> None:
        if self.running:
            return
        self.engine.start()
        self.running = True
        self.listener.running_changed(True)

    def _stop_clicking(self) -> None:
        if not self.running:
            return
        self.engine.stop()
        self.running = False
        self.listener.running_changed(False)

    def _on_set_interval(self, interval_ms: int) -> None:
        interval_ms = clamp_interval(int(interval_ms))
        if interval_ms == self.config.interval_ms:
            return
        self.config.interval_ms = interval_ms
        self.engine.configure(interval_ms=interval_ms)
        self.save()

    def _on_set_button(self, button: MouseButton) -> None:
        if button is self.config.click_button:
            return
        self.config.click_button = button
        self.engine.configure(button=button)
        self.save()

    def _on_begin_capture(self) -> None:
        if self.hotkey_capture_mode:
            return
        self.hotkey_state = HotkeyState.CAPTURING
        self.pending_hotkey = None
        self.monitor.begin_capture()
        self.listener.hotkey_display_changed(CAPTURE_PROMPT, True)
        self.listener.confirm_available_changed(False)

    def _on_captured(self, combo: KeyCombo) -> None:
        if self.hotkey_state is not HotkeyState.CAPTURING:
            return
        self.pending_hotkey = combo
        self.hotkey_state = HotkeyState.PENDING_CONFIRM
        self.listener.hotkey_display_changed(combo.display(), True)
        self.listener.confirm_available_changed(True)

    def _on_confirm(self) -> None:
        if self.hotkey_state is not HotkeyState.PENDING_CONFIRM or self.pending_hotkey is None:
            return
        self.config.hotkey = self.pending_hotkey
        logger.info("Hotkey set to %s", self.config.hotkey)
        self._leave_capture()
        self.monitor.watch(self.config.hotkey)
        self.save()

    def _on_cancel(self) -> None:
        if not self.hotkey_capture_mode:
            return
        self._leave_capture()

    def _leave_capture(self) -> None:
        self.hotkey_state = HotkeyState.IDLE
        self.pending_hotkey = None
        self.monitor.end_capture()
        self.listener.hotkey_display_changed(self.config.hotkey.display(), False)
        self.listener.confirm_available_changed(False)

    def _on_shutdown(self) -> None:
        self._stop_clicking()
        self._saved_on_close = self.save()
        self._closed = True

    def save(self) -> bool:
        """Persist the configuration; on failure keep the in-memory copy and report."""
        try:
            write_config(self.config_path, self.config)
        except ConfigSaveError as e:
            self.last_save_error = e
            logger.error("%s", e)
            self.listener.error_reported(e)
            return False
        self.last_save_error = None
        logger.debug("Saved settings to %s", self.config_path)
        return True
