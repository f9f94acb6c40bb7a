"""Unit tests for the event bus."""

from epub_translator.core.epub.events import Event, EventBus, EventType


class TestEventBus:
    """Test EventBus functionality."""

    def test_subscribe_and_publish(self):
        """Subscribe to event and receive it when published."""
        bus = EventBus()
        received_events = []

        bus.subscribe(EventType.PARAGRAPH_TRANSLATED, received_events.append)
        bus.publish(Event(type=EventType.PARAGRAPH_TRANSLATED, data={"paragraph_id": "c1_p0001"}))

        assert len(received_events) == 1
        assert received_events[0].data["paragraph_id"] == "c1_p0001"

    def test_subscribe_multiple(self):
        """One handler can listen to several event types."""
        bus = EventBus()
        received_events = []

        bus.subscribe_multiple([
            EventType.MEMORY_HIT,
            EventType.PARAGRAPH_TRANSLATED,
            EventType.FALLBACK_USED,
        ], received_events.append)

        bus.emit(EventType.MEMORY_HIT)
        bus.emit(EventType.PARAGRAPH_TRANSLATED)
        bus.emit(EventType.FALLBACK_USED)
        bus.emit(EventType.CHAPTER_STARTED)  # Not subscribed

        assert len(received_events) == 3

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventType.CHAPTER_COMPLETED, received.append)
        bus.unsubscribe(EventType.CHAPTER_COMPLETED, received.append)
        bus.unsubscribe(EventType.CHAPTER_STARTED, received.append)  # never subscribed

        bus.emit(EventType.CHAPTER_COMPLETED)

        assert received == []

    def test_emit_builds_event(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventType.PARAGRAPH_RETRY, received.append)

        bus.emit(EventType.PARAGRAPH_RETRY, paragraph_id="p1", attempt=2)

        event = received[0]
        assert event.source == "orchestrator"
        assert event.data == {"paragraph_id": "p1", "attempt": 2}
        assert event.timestamp > 0

    def test_failing_listener_does_not_stop_others(self):
        """A listener raising an exception is logged and the rest still run."""
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(EventType.TRANSLATION_STARTED, broken)
        bus.subscribe(EventType.TRANSLATION_STARTED, received.append)

        bus.emit(EventType.TRANSLATION_STARTED)

        assert len(received) == 1

    def test_history(self):
        bus = EventBus()
        bus.emit(EventType.TRANSLATION_STARTED)
        assert bus.get_history() == []

        bus.enable_history()
        bus.emit(EventType.CHAPTER_STARTED)
        bus.emit(EventType.CHAPTER_COMPLETED)
        bus.emit(EventType.CHAPTER_STARTED)

        assert [e.type for e in bus.get_history()] == [
            EventType.CHAPTER_STARTED, EventType.CHAPTER_COMPLETED, EventType.CHAPTER_STARTED]
        assert len(bus.get_events_by_type(EventType.CHAPTER_STARTED)) == 2

        bus.disable_history()
        bus.emit(EventType.TRANSLATION_COMPLETED)
        assert len(bus.get_history()) == 3

        bus.clear_history()
        assert bus.get_history() == []
