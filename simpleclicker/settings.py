"""
Configuration model and the key=value config file.

File format (one pair per line, '#' or ';' comments):

    # SimpleClicker configuration
    interval=100
    clickButton=1048576
    hotkey=117
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .clicker import MouseButton
from .keys import DEFAULT_HOTKEY, KeyCombo

logger = logging.getLogger(__name__)

MIN_INTERVAL_MS = 1
MAX_INTERVAL_MS = 99999
DEFAULT_INTERVAL_MS = 100
DEFAULT_BUTTON = MouseButton.LEFT

CONFIG_ENV_VAR = "SIMPLECLICKER_CONFIG"
CONFIG_FILENAME = "config.ini"
CONFIG_HEADER = "# SimpleClicker configuration"

BUTTON_CODES: Dict[MouseButton, int] = {
    MouseButton.LEFT: 0x100000,
    MouseButton.RIGHT: 0x200000,
}
_BUTTONS_BY_CODE = {code: button for button, code in BUTTON_CODES.items()}

PathLike = Union[str, os.PathLike]


class ConfigError(Exception):
    """Base class for configuration persistence failures."""


class ConfigLoadError(ConfigError):
    """Config file exists but could not be read or decoded."""


class ConfigSaveError(ConfigError):
    """Config file could not be written."""


def clamp_interval(value: int) -> int:
    return max(MIN_INTERVAL_MS, min(MAX_INTERVAL_MS, value))


@dataclass
class Config:
    interval_ms: int = DEFAULT_INTERVAL_MS
    click_button: MouseButton = DEFAULT_BUTTON
    hotkey: KeyCombo = field(default=DEFAULT_HOTKEY)


def get_config_path(override: Optional[PathLike] = None) -> Path:
    """Return a writable config path: explicit override, env var, then APPDATA."""
    if override:
        return Path(override)
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    appdata = os.getenv("APPDATA") or os.path.expanduser("~")
    return Path(appdata) / "SimpleClicker" / CONFIG_FILENAME


def parse_config(text: str) -> Config:
    """Parse config text; unknown keys and unusable values are ignored."""
    config = Config()
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or line.startswith(";"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        try:
            number = int(value)
        except ValueError:
            logger.debug("Ignoring non-integer value for %r: %r", key, value)
            continue

        if key == "interval":
            config.interval_ms = clamp_interval(number)
        elif key == "clickButton":
            button = _BUTTONS_BY_CODE.get(number)
            if button is not None:
                config.click_button = button
        elif key == "hotkey":
            combo = KeyCombo.from_int(number)
            if combo is not None:
                config.hotkey = combo
    return config


def format_config(config: Config) -> str:
    return "\n".join([
        CONFIG_HEADER,
        f"interval={config.interval_ms}",
        f"clickButton={BUTTON_CODES[config.click_button]}",
        f"hotkey={config.hotkey.to_int()}",
    ]) + "\n"


def read_config(path: PathLike) -> Config:
    """
    Load configuration from `path`.

    A missing file yields the defaults. Raises ConfigLoadError when the file
    exists but cannot be read or decoded.
    """
    path = Path(path)
    if not path.exists():
        return Config()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(f"Failed to load {path}: {e}") from e
    return parse_config(text)


def write_config(path: PathLike, config: Config) -> None:
    """Write configuration to `path`. Raises ConfigSaveError on failure."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(format_config(config), encoding="utf-8")
    except OSError as e:
        raise ConfigSaveError(f"Failed to save {path}: {e}") from e


def load_config(path: PathLike, on_error: Optional[Callable[[ConfigError], None]] = None) -> Config:
    """Load configuration, falling back to the defaults on any load failure."""
    try:
        config = read_config(path)
    except ConfigLoadError as e:
        logger.warning("%s; using default settings", e)
        if on_error:
            on_error(e)
        return Config()
    logger.info("Loaded settings from %s", path)
    return config
