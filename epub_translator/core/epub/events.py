"""
Event system for translation pipeline observability.

Provides decoupled event publishing and subscription for monitoring
translation progress and debugging.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List
import time

from ...utils.unified_logger import get_logger


class EventType(Enum):
    """Translation pipeline event types."""

    TRANSLATION_STARTED = "translation_started"
    TRANSLATION_COMPLETED = "translation_completed"
    TRANSLATION_CANCELLED = "translation_cancelled"

    CHAPTER_STARTED = "chapter_started"
    CHAPTER_COMPLETED = "chapter_completed"

    MEMORY_HIT = "memory_hit"
    PARAGRAPH_TRANSLATED = "paragraph_translated"
    PARAGRAPH_FAILED = "paragraph_failed"
    PARAGRAPH_RETRY = "paragraph_retry"

    FALLBACK_USED = "fallback_used"


@dataclass
class Event:
    """Translation pipeline event.

    Attributes:
        type: Event type
        data: Event-specific data dictionary
        timestamp: Unix timestamp when event occurred
        source: Optional source identifier (e.g., "orchestrator")
    """
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    source: str = "unknown"


class EventBus:
    """Central event bus for translation pipeline."""

    def __init__(self):
        self._listeners: Dict[EventType, List[Callable]] = {}
        self._history: List[Event] = []
        self._record_history = False

    def subscribe(self, event_type: EventType, callback: Callable[[Event], None]) -> None:
        """Subscribe to an event type.

        Args:
            event_type: Type of event to listen for
            callback: Function to call when event occurs (receives Event object)
        """
        self._listeners.setdefault(event_type, []).append(callback)

    def subscribe_multiple(self, event_types: List[EventType], callback: Callable[[Event], None]) -> None:
        for event_type in event_types:
            self.subscribe(event_type, callback)

    def unsubscribe(self, event_type: EventType, callback: Callable) -> None:
        if callback in self._listeners.get(event_type, []):
            self._listeners[event_type].remove(callback)

    def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        A failing listener is logged and does not stop the pipeline.
        """
        if self._record_history:
            self._history.append(event)

        for listener in list(self._listeners.get(event.type, [])):
            try:
                listener(event)
            except Exception as e:
                get_logger().error(f"Event listener for {event.type.value} failed: {e}")

    def emit(self, event_type: EventType, source: str = "orchestrator", **data: Any) -> None:
        """Build and publish an event in one call."""
        self.publish(Event(type=event_type, data=data, source=source))

    def enable_history(self) -> None:
        self._record_history = True

    def disable_history(self) -> None:
        self._record_history = False

    def get_history(self) -> List[Event]:
        """Get recorded event history in chronological order."""
        return self._history.copy()

    def clear_history(self) -> None:
        self._history.clear()

    def get_events_by_type(self, event_type: EventType) -> List[Event]:
        return [e for e in self._history if e.type == event_type]
