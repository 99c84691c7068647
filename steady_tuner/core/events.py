"""Event system for Steady Tuner components."""

from typing import Dict, List, Callable, Any
from enum import Enum, auto

from ..logger import get_logger

logger = get_logger(__name__)


class TunerEventType(Enum):
    """Event types emitted by the tuner service."""

    READING = auto()
    NOTE_LOCKED = auto()
    NOTE_CHANGED = auto()
    SIGNAL_LOST = auto()
    ERROR = auto()


class EventEmitter:
    """Event emitter for Steady Tuner components."""

    def __init__(self):
        """Initialize the event emitter."""
        self._listeners: Dict[Any, List[Callable]] = {}

    def on(self, event_type: Any, callback: Callable) -> None:
        """Register a callback for an event type.

        Args:
            event_type: Event type to listen for
            callback: Function to call when the event occurs
        """
        if event_type not in self._listeners:
            self._listeners[event_type] = []

        if callback not in self._listeners[event_type]:
            self._listeners[event_type].append(callback)
            logger.debug(f"Added listener for event {event_type}")

    def off(self, event_type: Any, callback: Callable) -> None:
        """Remove a previously registered callback."""
        listeners = self._listeners.get(event_type, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event_type: Any, *args, **kwargs) -> None:
        """Emit an event.

        A failing listener is logged and does not stop the others.

        Args:
            event_type: Event type to emit
            *args: Positional arguments to pass to listeners
            **kwargs: Keyword arguments to pass to listeners
        """
        for callback in list(self._listeners.get(event_type, [])):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_type}: {e}", exc_info=True)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners = {}
        logger.debug("Cleared all event listeners")


class TunerEvents:
    """Event emitter specifically for tuner readings."""

    def __init__(self):
        """Initialize the tuner events."""
        self._emitter = EventEmitter()

    def on_reading(self, callback: Callable) -> None:
        """Register a callback for every reading: callback(reading, timestamp)."""
        self._emitter.on(TunerEventType.READING, callback)

    def on_note_locked(self, callback: Callable) -> None:
        """Register a callback for newly locked notes: callback(note, timestamp)."""
        self._emitter.on(TunerEventType.NOTE_LOCKED, callback)

    def on_note_changed(self, callback: Callable) -> None:
        """Register a callback for locked note switches: callback(old_note, new_note, timestamp)."""
        self._emitter.on(TunerEventType.NOTE_CHANGED, callback)

    def on_signal_lost(self, callback: Callable) -> None:
        """Register a callback for signal loss: callback(timestamp)."""
        self._emitter.on(TunerEventType.SIGNAL_LOST, callback)

    def on_error(self, callback: Callable) -> None:
        """Register a callback for polling errors: callback(exception)."""
        self._emitter.on(TunerEventType.ERROR, callback)

    def emit(self, event_type: TunerEventType, *args) -> None:
        self._emitter.emit(event_type, *args)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._emitter.clear()
