#!filepath: sdunits/dispatch/dispatcher.py
from __future__ import annotations

import queue
import threading
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from sdunits import logs
from sdunits.core.state import StateTuple, touches_lifecycle
from sdunits.core.types import PropertyValue
from sdunits.observability.metrics import MetricRecorder
from sdunits.utils.errors import ListenerFailure

# callback(unit, changes, state)
StateListener = Callable[[Any, Mapping[str, PropertyValue], StateTuple], None]

_STOP = object()


class _ListenerChannel:
    """
    One registration. In queued mode it owns a queue and a consumer thread;
    in inline mode it is only the ``closed`` flag.
    """

    def __init__(self, dispatcher: "StateChangeDispatcher", callback: StateListener, queued: bool):
        self.dispatcher = dispatcher
        self.callback = callback
        self.closed = False
        self.queue: Optional[queue.Queue] = None
        self.thread: Optional[threading.Thread] = None

        if queued:
            self.queue = queue.Queue()
            name = getattr(callback, "__name__", "listener")
            self.thread = threading.Thread(
                target=self._consume,
                name=f"sdunits-listener-{dispatcher.name}-{name}",
                daemon=True,
            )
            self.thread.start()

    def put(self, changes: Mapping[str, PropertyValue], state: StateTuple) -> None:
        if self.queue is None:
            self.invoke(changes, state)
        else:
            self.queue.put((changes, state))

    def invoke(self, changes: Mapping[str, PropertyValue], state: StateTuple) -> None:
        if self.closed:
            return
        try:
            self.callback(self.dispatcher.source, changes, state)
        except Exception as exc:
            self.dispatcher._listener_failed(ListenerFailure(self.callback, exc))

    def _consume(self) -> None:
        while True:
            item = self.queue.get()
            try:
                if item is _STOP:
                    return
                self.invoke(*item)
            finally:
                self.queue.task_done()

    def close(self) -> None:
        self.closed = True
        if self.queue is not None:
            self.queue.put(_STOP)

    def wait_idle(self, deadline: float) -> bool:
        if self.queue is None or self.thread is threading.current_thread():
            return True
        with self.queue.all_tasks_done:
            while self.queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self.queue.all_tasks_done.wait(remaining)
        return True


class StateChangeDispatcher:
    """
    Turns change-sets that touch LoadState / ActiveState / SubState into
    StateTuples and hands them to every registered listener, once per event.

    Change-sets without a lifecycle key never reach a listener.
    """

    def __init__(
        self,
        source: Any,
        mode: str = "queued",
        metrics: Optional[MetricRecorder] = None,
    ):
        if mode not in ("queued", "inline"):
            raise ValueError(f"unknown dispatch mode: {mode}")

        self.source = source
        self.name = getattr(source, "name", str(source))
        self.mode = mode
        self.metrics = metrics or MetricRecorder()

        self._lock = threading.Lock()
        self._channels: Dict[StateListener, _ListenerChannel] = {}
        self._closed = False

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._channels)

    def add_listener(self, callback: StateListener) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError(f"dispatcher of {self.name} is closed")
            if callback in self._channels:
                return
            self._channels[callback] = _ListenerChannel(self, callback, self.mode == "queued")

    def remove_listener(self, callback: StateListener) -> None:
        """Safe from inside the callback itself; never waits for a delivery."""
        with self._lock:
            channel = self._channels.pop(callback, None)
        if channel is not None:
            channel.close()

    def publish(
        self,
        changes: Mapping[str, PropertyValue],
        prior: Mapping[str, Optional[PropertyValue]],
    ) -> Optional[StateTuple]:
        """
        ``prior`` must be the lifecycle values read before ``changes`` were
        applied to the cache. Returns the dispatched StateTuple, or None when
        the change-set carries no lifecycle key.
        """
        if not touches_lifecycle(changes):
            return None

        state = StateTuple.resolve(changes, prior)
        view = MappingProxyType(dict(changes))

        with self._lock:
            channels: List[_ListenerChannel] = list(self._channels.values())

        logs.debug(f"[Dispatch] {self.name} -> {state} ({len(channels)} listeners)")
        self.metrics.incr("state.dispatched")

        for channel in channels:
            channel.put(view, state)
        return state

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until every queued event has been handled. False on timeout."""
        deadline = time.monotonic() + timeout
        with self._lock:
            channels = list(self._channels.values())
        return all(channel.wait_idle(deadline) for channel in channels)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            channel.close()

    def _listener_failed(self, failure: ListenerFailure) -> None:
        self.metrics.incr("listeners.failed")
        logs.exception(f"[Dispatch] {self.name}: {failure}")
