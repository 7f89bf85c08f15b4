import argparse
import logging
import sys
import tkinter as tk
from tkinter import messagebox, ttk

from .clicker import ClickEngine, MouseButton
from .keys import system_key_state
from .monitor import InputMonitor
from .session import Session, SessionListener
from .settings import (
    MAX_INTERVAL_MS,
    MIN_INTERVAL_MS,
    ConfigLoadError,
    clamp_interval,
    get_config_path,
    load_config,
)

logger = logging.getLogger(__name__)

BUTTON_LABELS = {MouseButton.LEFT: "Left", MouseButton.RIGHT: "Right"}
CAPTURE_BG = "#fff59d"


def validate_int_input(value_if_allowed):
    """Tk validation callable for interval inputs (digits only, at most MAX_INTERVAL_MS, disallow empty)."""
    if value_if_allowed == "":
        return False
    value = str(value_if_allowed)
    return value.isdigit() and int(value) <= MAX_INTERVAL_MS


def parse_interval(text):
    """Interval typed into the spinbox, clamped to the allowed range; None if not a number."""
    try:
        return clamp_interval(int(text))
    except ValueError:
        return None


class ClickerWindow(SessionListener):
    """tkinter front end. Session notifications are re-posted to the Tk thread with root.after."""

    def __init__(self, root: tk.Tk, session: Session) -> None:
        self.root = root
        self.session = session
        config = session.config

        root.title("SimpleClicker")
        root.geometry("400x330")
        root.resizable(False, False)

        # === Always on Top (Pin) Option ===
        self.pin_var = tk.BooleanVar(value=False)
        frame_pin = ttk.Frame(root)
        frame_pin.pack(fill="x", padx=10, pady=3)
        ttk.Checkbutton(frame_pin, text="Pin window", variable=self.pin_var,
                        command=self.toggle_pin).pack(anchor="w")

        # ==== Click Options ====
        frame_options = ttk.LabelFrame(root, text="Click options")
        frame_options.pack(fill="x", padx=10, pady=5)

        vcmd = (root.register(validate_int_input), "%P")
        ttk.Label(frame_options, text="Interval (ms):").grid(row=0, column=0, padx=5, pady=5, sticky="w")
        self.interval_var = tk.StringVar(value=str(config.interval_ms))
        tk.Spinbox(frame_options, from_=MIN_INTERVAL_MS, to=MAX_INTERVAL_MS, textvariable=self.interval_var,
                   width=8, validate="key", validatecommand=vcmd).grid(row=0, column=1, padx=5, pady=5, sticky="w")
        self.interval_var.trace_add("write", self.on_interval_changed)

        ttk.Label(frame_options, text="Mouse button:").grid(row=1, column=0, padx=5, pady=5, sticky="w")
        self.button_var = tk.StringVar(value=BUTTON_LABELS[config.click_button])
        combo_button = ttk.Combobox(frame_options, textvariable=self.button_var, state="readonly", width=8,
                                    values=[BUTTON_LABELS[b] for b in MouseButton])
        combo_button.grid(row=1, column=1, padx=5, pady=5, sticky="w")
        combo_button.bind("<<ComboboxSelected>>", self.on_button_changed)

        # ==== Hotkey ====
        frame_hotkey = ttk.LabelFrame(root, text="Hotkey")
        frame_hotkey.pack(fill="x", padx=10, pady=5)

        self.hotkey_var = tk.StringVar(value=config.hotkey.display())
        self.entry_hotkey = tk.Entry(frame_hotkey, textvariable=self.hotkey_var, width=22, state="readonly")
        self.entry_hotkey.grid(row=0, column=0, padx=5, pady=5)
        self.default_entry_bg = self.entry_hotkey.cget("readonlybackground")

        self.btn_set = ttk.Button(frame_hotkey, text="Set", width=8, command=session.begin_hotkey_capture)
        self.btn_set.grid(row=0, column=1, padx=2, pady=5)
        self.btn_confirm = ttk.Button(frame_hotkey, text="Confirm", width=8, command=session.confirm_hotkey,
                                      state="disabled")
        self.btn_confirm.grid(row=0, column=2, padx=2, pady=5)
        self.btn_cancel = ttk.Button(frame_hotkey, text="Cancel", width=8, command=session.cancel_hotkey,
                                     state="disabled")
        self.btn_cancel.grid(row=0, column=3, padx=2, pady=5)

        # ==== Status / Buttons ====
        self.status_label = tk.Label(root, text="Status: Stopped", fg="red")
        self.status_label.pack(anchor="w", padx=12, pady=5)

        frame_buttons = tk.Frame(root)
        frame_buttons.pack(pady=5)
        ttk.Button(frame_buttons, text="Start", width=18, command=session.start_clicking).grid(
            row=0, column=0, padx=5, pady=5)
        ttk.Button(frame_buttons, text="Stop", width=18, command=session.stop_clicking).grid(
            row=0, column=1, padx=5, pady=5)

        tk.Label(root, fg="gray", justify="left",
                 text="Press the hotkey to start or stop clicking.\n"
                      "Change it: Set -> press a key combination -> Confirm").pack(anchor="w", padx=12, pady=5)

        root.protocol("WM_DELETE_WINDOW", self._on_close)

    # --- widget callbacks (Tk thread) ---
    def toggle_pin(self):
        self.root.attributes("-topmost", self.pin_var.get())

    def on_interval_changed(self, *args):
        text = self.interval_var.get()
        interval_ms = parse_interval(text)
        if interval_ms is None:
            return
        if str(interval_ms) != text:
            # re-enters this callback with the clamped value
            self.interval_var.set(str(interval_ms))
            return
        self.session.set_interval(interval_ms)

    def on_button_changed(self, event=None):
        label = self.button_var.get()
        for button, text in BUTTON_LABELS.items():
            if text == label:
                self.session.set_button(button)
                return

    def _on_close(self):
        logger.info("Window closed, shutting down")
        # the Tk thread blocks in close(); stop routing notifications to it
        self.session.listener = SessionListener()
        if not self.session.close():
            error = self.session.last_save_error or "Settings could not be saved before exit."
            messagebox.showerror("Error", str(error))
        self.root.destroy()

    # --- SessionListener (session thread) ---
    def running_changed(self, running: bool) -> None:
        self.root.after(0, self._apply_running, running)

    def hotkey_display_changed(self, text: str, capturing: bool) -> None:
        self.root.after(0, self._apply_hotkey_display, text, capturing)

    def confirm_available_changed(self, available: bool) -> None:
        self.root.after(0, lambda: self.btn_confirm.config(state="normal" if available else "disabled"))

    def error_reported(self, error) -> None:
        self.root.after(0, lambda: messagebox.showerror("Error", str(error)))

    def _apply_running(self, running):
        if running:
            self.status_label.config(text="Status: Running", fg="green")
        else:
            self.status_label.config(text="Status: Stopped", fg="red")

    def _apply_hotkey_display(self, text, capturing):
        self.hotkey_var.set(text)
        self.entry_hotkey.config(readonlybackground=CAPTURE_BG if capturing else self.default_entry_bg)
        self.btn_set.config(state="disabled" if capturing else "normal")
        self.btn_cancel.config(state="normal" if capturing else "disabled")


def setup_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(asctime)s - %(message)s", "%Y-%m-%d %H:%M:%S"))
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Auto clicker toggled by a global hotkey.")
    ap.add_argument("--config", help="config file path (default: %%APPDATA%%/SimpleClicker/config.ini)")
    ap.add_argument("--log-level", default="INFO", help="logging level (default: INFO)")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    ns = parse_args(argv)
    setup_logging(ns.log_level)

    config_path = get_config_path(ns.config)
    load_errors = []
    config = load_config(config_path, on_error=load_errors.append)

    monitor = InputMonitor(system_key_state(), hotkey=config.hotkey)
    engine = ClickEngine(config.interval_ms, config.click_button)
    session = Session(config, config_path, monitor, engine)

    root = tk.Tk()
    window = ClickerWindow(root, session)
    session.listener = window
    for error in load_errors:
        if isinstance(error, ConfigLoadError):
            messagebox.showwarning("Settings", f"{error}\nUsing default settings.")

    session.start()
    root.mainloop()
    return 0
