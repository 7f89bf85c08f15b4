from .keys import KeyCombo, system_key_state
from .clicker import ClickEngine, MouseButton, inject_click
from .monitor import InputMonitor
from .settings import Config, ConfigError, ConfigLoadError, ConfigSaveError, load_config
from .session import Session, SessionListener
