from .app_config import AppConfig
from .bus_config import BusConfig
from .log_config import LogConfig

__all__ = ["AppConfig", "BusConfig", "LogConfig"]
