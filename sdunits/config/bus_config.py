#!filepath: sdunits/config/bus_config.py
from typing import Literal

from pydantic import BaseModel, Field

BusType = Literal["system", "session"]

DispatchMode = Literal["queued", "inline"]

JobMode = Literal["replace", "fail", "isolate", "ignore-dependencies", "ignore-requirements"]


class BusConfig(BaseModel):
    bus: BusType = "system"
    service_name: str = "org.freedesktop.systemd1"
    object_path: str = "/org/freedesktop/systemd1"
    # mode of lifecycle verbs called without one
    default_mode: JobMode = "replace"
    dispatch: DispatchMode = "queued"
    # seconds flush_listeners() waits for listener queues to drain
    flush_timeout: float = Field(default=5.0, gt=0)
