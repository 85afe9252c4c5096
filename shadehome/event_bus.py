# ShadeHome - event_bus.py | see version.py for version info
"""
Event bus for the events the core emits to collaborators
(weather_alert_retract, schedule_applied, calibration_completed, ...).
Supports: publish/subscribe, event history, priority handlers.
"""

import itertools
import logging
import threading
import time
from collections import defaultdict, deque
from typing import Callable, Optional, Dict, Any, List

logger = logging.getLogger("shadehome.event_bus")


class Event:
    """Typed event with metadata."""

    __slots__ = ('event_type', 'data', 'source', 'timestamp')

    def __init__(self, event_type: str, data: Any = None, source: str = "system"):
        self.event_type = event_type
        self.data = data or {}
        self.source = source
        self.timestamp = time.time()

    def __repr__(self):
        return f"Event({self.event_type}, source={self.source})"


class EventBus:
    """Central event bus for all ShadeHome components.

    - Priority-based handler ordering (higher first)
    - Event history (last N events)
    - Thread-safe subscribe/unsubscribe
    - '*' subscribes to every event
    """

    def __init__(self, history_size: int = 200):
        self._handlers: Dict[str, List[dict]] = defaultdict(list)
        self._lock = threading.Lock()
        self._history: deque = deque(maxlen=history_size)
        self._stats = defaultdict(int)
        self._ids = itertools.count(1)

    def subscribe(self, event_type: str, handler: Callable,
                  priority: int = 0, source_filter: Optional[str] = None) -> str:
        """Subscribe to an event type.

        Args:
            event_type: Event type to listen for, or '*' for all events
            handler: Callback function(event: Event)
            priority: Higher priority handlers run first (default 0)
            source_filter: Only receive events from this source

        Returns:
            Subscription ID for unsubscribe
        """
        sub_id = f"{event_type}#{next(self._ids)}"
        entry = {
            "id": sub_id,
            "handler": handler,
            "priority": priority,
            "source_filter": source_filter,
        }
        with self._lock:
            self._handlers[event_type].append(entry)
            self._handlers[event_type].sort(key=lambda x: -x["priority"])
        logger.debug("Subscribed to '%s' (priority=%s)", event_type, priority)
        return sub_id

    def unsubscribe(self, sub_id: str) -> bool:
        """Remove a subscription by ID."""
        with self._lock:
            for handlers in self._handlers.values():
                for i, h in enumerate(handlers):
                    if h["id"] == sub_id:
                        handlers.pop(i)
                        return True
        return False

    def publish(self, event_type: str, data: Any = None, source: str = "system"):
        """Publish an event to all subscribers.

        Handler exceptions are logged and do not reach the publisher.
        """
        event = Event(event_type, data, source)
        self._history.append(event)
        self._stats[event_type] += 1

        with self._lock:
            handlers_to_call = list(self._handlers.get(event_type, []))
            if event_type != "*":
                handlers_to_call.extend(self._handlers.get("*", []))
        handlers_to_call.sort(key=lambda x: -x["priority"])

        for entry in handlers_to_call:
            if entry["source_filter"] and event.source != entry["source_filter"]:
                continue
            try:
                entry["handler"](event)
            except Exception:
                logger.exception("Event handler error for '%s'", event_type)
        return event

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[dict]:
        """Get recent event history."""
        events = list(self._history)
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return [
            {"type": e.event_type, "source": e.source,
             "timestamp": e.timestamp, "data": e.data}
            for e in events[-limit:]
        ]

    def get_stats(self) -> dict:
        """Get event statistics."""
        return {
            "total_events": sum(self._stats.values()),
            "by_type": dict(self._stats),
            "active_subscriptions": sum(len(h) for h in self._handlers.values()),
            "history_size": len(self._history),
        }

    def clear(self):
        """Clear all subscriptions and history."""
        with self._lock:
            self._handlers.clear()
            self._history.clear()
            self._stats.clear()
