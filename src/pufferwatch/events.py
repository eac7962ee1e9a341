"""Foreground event loop input: periodic ticks and external input on one queue."""

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

logger = logging.getLogger(__name__)

# Seconds between ticks
DEFAULT_TICK_INTERVAL = 0.25


class EventKind(Enum):
    TICK = auto()
    INPUT = auto()


@dataclass(frozen=True)
class AppEvent:
    """An event for the foreground loop.

    Attributes:
        kind: TICK for timer ticks, INPUT for anything posted by a producer.
        payload: Whatever the producer posted; None for ticks.
    """
    kind: EventKind
    payload: Any = None


TICK = AppEvent(EventKind.TICK)


class EventController:
    """Multiplexes timer ticks and input events onto one queue.

    The foreground loop blocks in exactly one place, next_event(). A
    ticker thread keeps it waking up regularly so log sources get
    polled even when no input arrives.

    Usage:
        with EventController() as events:
            while True:
                event = events.next_event()
                ...
    """

    def __init__(self, tick_interval: float = DEFAULT_TICK_INTERVAL) -> None:
        self.tick_interval = tick_interval
        self._events: queue.Queue[AppEvent] = queue.Queue()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> "EventController":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def start(self) -> None:
        """Start the ticker thread."""
        if self._thread is not None:
            return
        self._stopped.clear()
        self._thread = threading.Thread(
            target=self._tick,
            name="pufferwatch-ticker",
            daemon=True,
        )
        self._thread.start()

    def _tick(self) -> None:
        while not self._stopped.wait(self.tick_interval):
            self._events.put(TICK)

    def post(self, payload: Any) -> None:
        """Queue an input event. Safe to call from any thread."""
        self._events.put(AppEvent(EventKind.INPUT, payload))

    def next_event(self, timeout: float | None = None) -> AppEvent:
        """Block until the next event arrives.

        Raises:
            queue.Empty: If timeout is given and no event arrived in time.
        """
        return self._events.get(timeout=timeout)

    def stop(self) -> None:
        """Stop the ticker thread and wait for it to exit."""
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
            logger.debug("event controller stopped")
