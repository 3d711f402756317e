#!filepath: sdunits/config/app_config.py
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .bus_config import BusConfig
from .log_config import LogConfig

# environment variable -> (section, field)
_ENV_OVERRIDES = {
    "SDUNITS_BUS": ("bus", "bus"),
    "SDUNITS_DISPATCH": ("bus", "dispatch"),
    "SDUNITS_LOG_LEVEL": ("log", "level"),
    "SDUNITS_LOG_DIR": ("log", "dir"),
}


def default_config_path() -> str:
    """sdunits/config/base.yml, independent of the working directory."""
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "base.yml")


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    bus: BusConfig = Field(default_factory=BusConfig)

    @classmethod
    def load(cls, path: str | None = None, env_file: str | None = None) -> "AppConfig":
        """
        Load YAML configuration, then apply .env / environment overrides.
        - default file: sdunits/config/base.yml
        - default .env: ./.env (missing file is fine)
        """
        load_dotenv(env_file or os.path.join(os.getcwd(), ".env"))

        if path is None:
            path = default_config_path()

        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        for env_name, (section, key) in _ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                raw.setdefault(section, {})[key] = value

        return cls(**raw)
