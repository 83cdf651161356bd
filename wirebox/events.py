"""
Events

Event types published by a container and the listener interface that
receives them.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, Type, TypeVar

T = TypeVar('T')


class Event:
    """Base class of everything published through a container.

    Attributes:
        source: Object the event originated from
        timestamp: Creation time, seconds since the epoch
    """

    def __init__(self, source: Any):
        self.source = source
        self.timestamp = time.time()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.source!r})"


class PayloadEvent(Event, Generic[T]):
    """Wraps an arbitrary object published as an event."""

    def __init__(self, source: Any, payload: T):
        super().__init__(source)
        self.payload = payload

    def __repr__(self) -> str:
        return f"PayloadEvent(payload={self.payload!r})"


class ContainerEvent(Event):
    """Event raised by a container about itself."""

    @property
    def container(self) -> Any:
        return self.source


class ContainerRefreshedEvent(ContainerEvent):
    """Published when refresh() has completed."""


class ContainerStartedEvent(ContainerEvent):
    """Published when start() has started every Lifecycle component."""


class ContainerStoppedEvent(ContainerEvent):
    """Published when stop() has stopped every Lifecycle component."""


class ContainerClosedEvent(ContainerEvent):
    """Published at the start of close(), while every singleton is still alive."""


class EventListener(ABC):
    """Receives events published through a container.

    Set ``event_type`` to receive only that type of event (and its
    subclasses); set ``order`` to control the invocation order among
    listeners, lower first.

    Example::

        class AuditListener(EventListener):
            event_type = ContainerRefreshedEvent

            def on_event(self, event):
                audit.record("container ready")
    """

    event_type: Type[Event] = Event

    @abstractmethod
    def on_event(self, event: Event) -> None:
        pass

    def supports(self, event: Event) -> bool:
        return isinstance(event, self.event_type)


class FunctionEventListener(EventListener):
    """Adapts a plain callable to EventListener.

    Args:
        callback: Called with each supported event
        event_type: Only events of this type are delivered
        order: Invocation order among listeners, lower first
    """

    def __init__(
        self,
        callback: Callable[[Event], None],
        event_type: Type[Event] = Event,
        order: Optional[int] = None
    ):
        self.callback = callback
        self.event_type = event_type
        if order is not None:
            self.order = order

    def on_event(self, event: Event) -> None:
        self.callback(event)

    def __eq__(self, other: object) -> bool:
        return (isinstance(other, FunctionEventListener)
                and other.callback == self.callback
                and other.event_type is self.event_type)

    def __hash__(self) -> int:
        return hash((self.callback, self.event_type))

    def __repr__(self) -> str:
        return f"FunctionEventListener({self.callback!r}, event_type={self.event_type.__name__})"
