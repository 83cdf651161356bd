"""
EventBus

Buffered event publication for a container.

Events published before the container has a multicaster (i.e. before
refresh has registered its listeners) are held in an early-event buffer in
publication order. Attaching the multicaster flushes the buffer; from then
on events are delivered synchronously. Every event is also forwarded to the
parent container's bus, after local delivery.
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from .events import Event, EventListener, PayloadEvent
from .exceptions import NotInitializedError
from .factory import ComponentFactory
from .lifecycle import get_order

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException], None]


class EventMulticaster:
    """Delivers each event to every listener that supports it.

    Listeners are either registered directly or by component name; named
    listeners are looked up through the factory at delivery time, so a
    prototype listener gets a fresh instance per event.

    Delivery order: listeners with an explicit order first, ascending; the
    rest in registration order.

    Args:
        factory: Used to look up listeners registered by name
        error_handler: When set, listener exceptions are passed to it and
            delivery continues. Otherwise the first exception propagates to
            the publisher.
    """

    def __init__(
        self,
        factory: Optional[ComponentFactory] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        self._factory = factory
        self.error_handler = error_handler
        self._listeners: List[EventListener] = []
        self._listener_names: List[str] = []
        self._lock = threading.RLock()

    def add_listener(self, listener: EventListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def add_listener_name(self, name: str) -> None:
        with self._lock:
            if name not in self._listener_names:
                self._listener_names.append(name)

    def remove_all_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()
            self._listener_names.clear()

    @property
    def listeners(self) -> List[EventListener]:
        with self._lock:
            return list(self._listeners)

    @property
    def listener_names(self) -> List[str]:
        with self._lock:
            return list(self._listener_names)

    def listeners_for(self, event: Event) -> List[EventListener]:
        """Listeners supporting event, in delivery order."""
        with self._lock:
            collected = list(self._listeners)
            names = list(self._listener_names)
        if self._factory is not None:
            for name in names:
                listener = self._factory.get_instance(name)
                if listener not in collected:
                    collected.append(listener)

        supported = [listener for listener in collected if listener.supports(event)]

        def sort_key(item):
            index, listener = item
            order = get_order(listener)
            return (1, 0, index) if order is None else (0, order, index)

        return [listener for _, listener in sorted(enumerate(supported), key=sort_key)]

    def multicast(self, event: Event) -> None:
        for listener in self.listeners_for(event):
            if self.error_handler is None:
                listener.on_event(event)
                continue
            try:
                listener.on_event(event)
            except Exception as e:
                self.error_handler(e)


class EventBus:
    """Publishes events for one container.

    The early-event buffer is open from construction, so events published
    against a fresh container are delivered once its refresh registers the
    listeners.

    Args:
        source: Source of PayloadEvents created for non-Event payloads
        parent: Bus of the parent container, if any

    Example::

        bus = EventBus(container)
        bus.publish("started")        # buffered
        bus.attach_multicaster(EventMulticaster())
                                      # buffered events delivered here
        bus.publish(MyEvent(self))    # delivered immediately
    """

    def __init__(self, source: Any, parent: Optional['EventBus'] = None):
        self.source = source
        self.parent = parent
        self._multicaster: Optional[EventMulticaster] = None
        self._early_events: Optional[List[Event]] = []
        self._lock = threading.RLock()

    @property
    def multicaster(self) -> Optional[EventMulticaster]:
        return self._multicaster

    @property
    def is_buffering(self) -> bool:
        return self._early_events is not None

    def open_buffer(self) -> None:
        """Start buffering, keeping any events already buffered."""
        with self._lock:
            if self._early_events is None:
                self._early_events = []

    def attach_multicaster(self, multicaster: EventMulticaster) -> None:
        """Use multicaster from now on and deliver the buffered events through it."""
        with self._lock:
            self._multicaster = multicaster
            early_events = self._early_events
            self._early_events = None
        if early_events:
            logger.debug(f"Delivering {len(early_events)} early events")
            for event in early_events:
                multicaster.multicast(event)

    def reset(self) -> None:
        """Drop the multicaster and buffer events again until one is attached."""
        with self._lock:
            self._multicaster = None
            if self._early_events is None:
                self._early_events = []

    def publish(self, event: Any) -> Event:
        """Publish an event, wrapping non-Event objects in a PayloadEvent.

        Returns:
            The published Event

        Raises:
            NotInitializedError: When neither a multicaster nor the early
                buffer is available
            Exception: Whatever a listener raises, unless the multicaster
                has an error handler
        """
        if not isinstance(event, Event):
            event = PayloadEvent(self.source, event)

        with self._lock:
            buffering = self._early_events is not None
            if buffering:
                self._early_events.append(event)
                multicaster = None
            else:
                multicaster = self._multicaster

        if buffering:
            logger.debug(f"Buffering early event {event!r}")
        elif multicaster is None:
            raise NotInitializedError(
                f"Event multicaster not initialized - call 'refresh' before "
                f"publishing events: {event!r}"
            )
        else:
            multicaster.multicast(event)

        if self.parent is not None:
            self.parent.publish(event)
        return event
