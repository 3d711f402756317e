#!filepath: sdunits/utils/logger.py
import sys
from functools import wraps
from time import perf_counter
from typing import Callable, Optional

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {thread.name} | {message}"


class Logging:
    """
    Thin wrapper around the loguru logger.

    - stderr sink always, file sink (rotated by date) when ``log_dir`` is set
    - ``configure`` can be called again at runtime; every module keeps the
      same ``logs`` object
    - ``catch`` decorator for calls that cross the bus
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        rotation: str = "1 day",
        retention: str = "30 days",
        log_level: str = "INFO",
    ):
        self.configure(log_dir, rotation, retention, log_level)

    def configure(
        self,
        log_dir: Optional[str] = None,
        rotation: str = "1 day",
        retention: str = "30 days",
        log_level: str = "INFO",
    ) -> None:
        self.log_dir = log_dir
        self.rotation = rotation
        self.retention = retention
        self.level = log_level

        logger.remove()
        logger.add(sys.stderr, level=self.level, format=_FORMAT)

        if self.log_dir:
            logger.add(
                sink=f"{self.log_dir}/{{time:YYYY-MM-DD}}.log",
                rotation=self.rotation,
                retention=self.retention,
                level=self.level,
                format=_FORMAT,
                enqueue=True,
                backtrace=True,
                diagnose=False,
            )

    def configure_from(self, cfg) -> None:
        """Apply a ``LogConfig``."""
        self.configure(cfg.dir, cfg.rotation, cfg.retention, cfg.level)

    # ----------- log methods -----------
    def debug(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        logger.opt(depth=1).error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        logger.opt(depth=1, exception=True).error(msg, *args, **kwargs)

    # ---------- decorator ----------
    def catch(self, msg: str = "Exception occurred", log_time: bool = False) -> Callable:
        """
        Log and re-raise any exception of the wrapped call.

        Usage:
            @logs.catch("GetAll failed", log_time=True)
            def get_all(self, path, interface): ...
        """

        def decorator(func: Callable):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start = perf_counter()

                try:
                    result = func(*args, **kwargs)
                except Exception:
                    logger.exception(f"[ERROR] {func.__qualname__}: {msg}")
                    raise

                if log_time:
                    cost = perf_counter() - start
                    logger.debug(f"[TIME] {func.__qualname__} took {cost:.4f}s")

                return result

            return wrapper

        return decorator


# module level logs, reconfigured through logs.configure_from(AppConfig.log)
logs = Logging()
