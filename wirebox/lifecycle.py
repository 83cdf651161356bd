"""
Lifecycle

Scopes, roles and the lifecycle callback interfaces components may implement
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Optional


SINGLETON = "singleton"
PROTOTYPE = "prototype"


class Role(IntEnum):
    """Role hint of a definition, used when logging overrides.

    Higher values are more framework-internal. Overriding a definition
    with one of a higher role means a user definition is being replaced
    by framework plumbing.
    """
    USER = 0
    SUPPORT = 1
    INFRASTRUCTURE = 2


class Ordered(ABC):
    """Component with an explicit numeric order. Lower values come first."""

    @abstractmethod
    def get_order(self) -> int:
        pass


def get_order(obj: Any) -> Optional[int]:
    """Return the explicit order of an object, or None when it declares none.

    Objects implementing Ordered are asked via get_order(); any other object
    may carry a plain integer ``order`` attribute.
    """
    if isinstance(obj, Ordered):
        return obj.get_order()
    order = getattr(obj, 'order', None)
    if isinstance(order, int) and not isinstance(order, bool):
        return order
    return None


class InitializingComponent(ABC):
    """Component that wants a callback once all its properties are set."""

    @abstractmethod
    def after_properties_set(self) -> None:
        pass


class DisposableComponent(ABC):
    """Component that releases resources when its container destroys it."""

    @abstractmethod
    def destroy(self) -> None:
        pass


class Lifecycle(ABC):
    """Component with an explicit start/stop lifecycle.

    Components with ``auto_startup`` set are started after every singleton
    is ready and stopped before singletons are destroyed. Lower phases start
    first and stop last.

    Example::

        class Poller(Lifecycle):
            phase = 10

            def start(self):
                self._running = True

            def stop(self):
                self._running = False

            def is_running(self):
                return self._running
    """

    phase: int = 0
    auto_startup: bool = True

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def is_running(self) -> bool:
        pass
