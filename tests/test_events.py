"""Tests for the foreground event controller."""

import queue
import threading

import pytest

from pufferwatch.events import AppEvent, EventController, EventKind, TICK


class TestEventController:
    """Tests for EventController class."""

    def test_ticks(self):
        """A running controller produces ticks."""
        with EventController(tick_interval=0.01) as events:
            event = events.next_event(timeout=5.0)

        assert event == TICK
        assert event.kind is EventKind.TICK

    def test_post_input(self):
        """Posted input arrives on the same queue as ticks."""
        events = EventController(tick_interval=60.0)
        events.start()
        try:
            events.post("key:q")
            event = events.next_event(timeout=5.0)
        finally:
            events.stop()

        assert event == AppEvent(EventKind.INPUT, "key:q")

    def test_post_from_other_thread(self):
        with EventController(tick_interval=60.0) as events:
            producer = threading.Thread(target=events.post, args=("resize",))
            producer.start()
            producer.join()

            assert events.next_event(timeout=5.0).payload == "resize"

    def test_timeout(self):
        """next_event raises queue.Empty when nothing arrives in time."""
        with EventController(tick_interval=60.0) as events:
            with pytest.raises(queue.Empty):
                events.next_event(timeout=0.05)

    def test_stop_joins_ticker(self):
        events = EventController(tick_interval=0.01)
        events.start()
        thread = events._thread

        events.stop()

        assert not thread.is_alive()
        assert events._thread is None

    def test_start_twice_keeps_one_thread(self):
        with EventController(tick_interval=60.0) as events:
            thread = events._thread
            events.start()
            assert events._thread is thread
