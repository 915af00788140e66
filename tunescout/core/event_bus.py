"""
Event Bus - Central event dispatching system
Lets collaborators observe the search pipeline without coupling to it
"""
from typing import Callable, Dict, List
import threading


class EventBus:
    """Thread-safe event bus for component communication"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.RLock()

    def subscribe(self, event_type: str, callback: Callable):
        """Subscribe to an event type"""
        with self._lock:
            if event_type not in self._subscribers:
                self._subscribers[event_type] = []
            if callback not in self._subscribers[event_type]:
                self._subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: str, callback: Callable):
        """Unsubscribe from an event type"""
        with self._lock:
            if event_type in self._subscribers:
                if callback in self._subscribers[event_type]:
                    self._subscribers[event_type].remove(callback)

    def emit(self, event_type: str, data=None):
        """Emit an event to all subscribers"""
        with self._lock:
            callbacks = list(self._subscribers.get(event_type, []))
        for callback in callbacks:
            try:
                callback(data)
            except Exception as e:
                print(f"Error in event handler for {event_type}: {e}")

    def clear(self):
        """Clear all subscriptions"""
        with self._lock:
            self._subscribers.clear()


# Event types
class Events:
    # Search events
    SEARCH_STARTED = "search_started"
    SEARCH_COMPLETED = "search_completed"
    SEARCH_DEGRADED = "search_degraded"
    SUGGEST_COMPLETED = "suggest_completed"

    # Relay events
    RELAY_SELECTED = "relay_selected"
    RELAY_FAILED = "relay_failed"

    # Settings events
    SETTINGS_CHANGED = "settings_changed"
