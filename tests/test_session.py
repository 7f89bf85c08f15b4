import time

import pytest

from simpleclicker.clicker import ClickEngine, MouseButton
from simpleclicker.keys import DEFAULT_HOTKEY, VK_CONTROL, VK_F6, KeyCombo
from simpleclicker.monitor import InputMonitor, MonitorFailed
from simpleclicker.session import CAPTURE_PROMPT, HotkeyState, Session, SessionListener
from simpleclicker.settings import Config, ConfigSaveError, read_config

VK_A = 0x41


class RecordingListener(SessionListener):
    def __init__(self):
        self.running = []
        self.displays = []
        self.confirm = []
        self.errors = []

    def running_changed(self, running):
        self.running.append(running)

    def hotkey_display_changed(self, text, capturing):
        self.displays.append((text, capturing))

    def confirm_available_changed(self, available):
        self.confirm.append(available)

    def error_reported(self, error):
        self.errors.append(error)


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def make_session(tmp_path, keyboard_state, listener):
    sessions = []

    def factory(config=None, config_path=None):
        engine = ClickEngine(inject=lambda button: None)
        monitor = InputMonitor(keyboard_state)
        session = Session(config or Config(), config_path or tmp_path / "config.ini",
                          monitor, engine, listener)
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.engine.stop()


def tick(session, keyboard_state, press=(), release=()):
    keyboard_state.press(*press)
    keyboard_state.release(*release)
    session.pump()
    session.monitor.poll_once()
    session.pump()


def test_toggle_starts_and_stops(make_session, keyboard_state, listener):
    session = make_session()
    tick(session, keyboard_state, press=[VK_F6])
    tick(session, keyboard_state, release=[VK_F6])
    assert session.running
    assert session.engine.running

    tick(session, keyboard_state, press=[VK_F6])
    tick(session, keyboard_state, release=[VK_F6])
    assert not session.running
    assert not session.engine.running
    assert listener.running == [True, False]


def test_start_and_stop_are_idempotent(make_session, listener):
    session = make_session()
    session.start_clicking()
    session.start_clicking()
    session.pump()
    assert listener.running == [True]

    session.stop_clicking()
    session.stop_clicking()
    session.pump()
    assert listener.running == [True, False]
    assert not session.engine.running


def test_capture_confirm_commits_and_persists(make_session, keyboard_state, listener, tmp_path):
    session = make_session()
    session.begin_hotkey_capture()
    tick(session, keyboard_state)
    assert session.hotkey_state is HotkeyState.CAPTURING
    assert listener.displays[-1] == (CAPTURE_PROMPT, True)

    tick(session, keyboard_state, press=[VK_CONTROL])
    tick(session, keyboard_state, press=[VK_A])
    tick(session, keyboard_state, release=[VK_A])
    tick(session, keyboard_state, release=[VK_CONTROL])

    combo = KeyCombo(VK_A, ctrl=True)
    assert session.hotkey_state is HotkeyState.PENDING_CONFIRM
    assert session.pending_hotkey == combo
    assert listener.displays[-1] == ("Ctrl + A", True)
    assert listener.confirm[-1] is True
    assert session.config.hotkey == DEFAULT_HOTKEY

    session.confirm_hotkey()
    session.pump()
    assert session.config.hotkey == combo
    assert session.hotkey_state is HotkeyState.IDLE
    assert listener.displays[-1] == ("Ctrl + A", False)
    assert listener.confirm[-1] is False
    assert read_config(tmp_path / "config.ini").hotkey == combo

    # new hotkey is live
    tick(session, keyboard_state, press=[VK_CONTROL, VK_A])
    tick(session, keyboard_state, release=[VK_CONTROL, VK_A])
    assert session.running


def test_cancel_keeps_hotkey_and_writes_nothing(make_session, keyboard_state, listener, tmp_path):
    session = make_session()
    session.begin_hotkey_capture()
    tick(session, keyboard_state, press=[VK_CONTROL])
    tick(session, keyboard_state, press=[VK_A])
    tick(session, keyboard_state, release=[VK_A, VK_CONTROL])
    assert session.pending_hotkey == KeyCombo(VK_A, ctrl=True)

    session.cancel_hotkey()
    session.pump()
    assert session.config.hotkey == DEFAULT_HOTKEY
    assert session.pending_hotkey is None
    assert session.hotkey_state is HotkeyState.IDLE
    assert listener.displays[-1] == ("F6", False)
    assert not (tmp_path / "config.ini").exists()


def test_cancel_while_capturing_without_candidate(make_session, keyboard_state, tmp_path):
    session = make_session()
    session.begin_hotkey_capture()
    session.cancel_hotkey()
    session.pump()
    assert session.hotkey_state is HotkeyState.IDLE
    assert not (tmp_path / "config.ini").exists()


def test_confirm_without_candidate_is_noop(make_session, keyboard_state, tmp_path):
    session = make_session()
    session.begin_hotkey_capture()
    session.confirm_hotkey()
    session.pump()
    assert session.hotkey_state is HotkeyState.CAPTURING
    assert session.config.hotkey == DEFAULT_HOTKEY
    assert not (tmp_path / "config.ini").exists()


def test_hotkey_does_not_toggle_while_capturing(make_session, keyboard_state):
    session = make_session()
    session.begin_hotkey_capture()
    tick(session, keyboard_state, press=[VK_F6])
    tick(session, keyboard_state, release=[VK_F6])
    assert not session.running


def test_settings_changes_persist(make_session, tmp_path):
    session = make_session()
    session.set_interval(250)
    session.set_button(MouseButton.RIGHT)
    session.pump()
    saved = read_config(tmp_path / "config.ini")
    assert saved.interval_ms == 250
    assert saved.click_button is MouseButton.RIGHT
    assert session.config.interval_ms == 250


def test_interval_change_is_clamped(make_session, tmp_path):
    session = make_session()
    session.set_interval(0)
    session.pump()
    assert session.config.interval_ms == 1


def test_save_failure_is_reported_and_memory_kept(make_session, listener, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file")
    session = make_session(config_path=blocker / "config.ini")
    session.set_interval(500)
    session.pump()
    assert session.config.interval_ms == 500
    assert len(listener.errors) == 1
    assert isinstance(listener.errors[0], ConfigSaveError)


def test_close_stops_clicking_and_saves(make_session, listener, tmp_path):
    session = make_session()
    session.start_clicking()
    session.pump()
    session.close()
    assert not session.engine.running
    assert listener.running == [True, False]
    assert read_config(tmp_path / "config.ini") == session.config


def wait_for(predicate, timeout=1.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_threaded_session_consumes_events(make_session, keyboard_state):
    session = make_session()
    session.monitor.poll_interval = 0.005
    session.start()
    try:
        keyboard_state.press(VK_F6)
        time.sleep(0.05)
        keyboard_state.release(VK_F6)
        assert wait_for(lambda: session.running)
    finally:
        session.close()
    assert not session.engine.running
    assert not session.monitor.running


def test_monitor_failure_reaches_listener(make_session, listener):
    session = make_session()
    session.inbox.put(MonitorFailed(OSError("no permission")))
    session.pump()
    assert len(listener.errors) == 1
    assert "Hotkey monitoring stopped" in str(listener.errors[0])
    assert "no permission" in str(listener.errors[0])


def test_close_reports_final_save_result(make_session, tmp_path):
    assert make_session().close() is True

    blocker = tmp_path / "blocker"
    blocker.write_text("file")
    session = make_session(config_path=blocker / "config.ini")
    assert session.close() is False
    assert isinstance(session.last_save_error, ConfigSaveError)
