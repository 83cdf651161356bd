"""
Scope

Custom scopes for components that are neither singletons nor prototypes.
A scope decides when to reuse an instance; the container only asks it for
one and tells it how to build a new one.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class Scope(ABC):
    """Storage strategy for a custom scope.

    Register an implementation with ``container.register_scope(name, scope)``
    and give definitions ``scope=name``.
    """

    @abstractmethod
    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        """Return the scoped instance for name, building it if needed."""
        pass

    @abstractmethod
    def remove(self, name: str) -> Optional[Any]:
        """Drop the instance for name and return it, if present."""
        pass

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        """Remember how to destroy the instance for name when the scope ends."""
        pass


class SimpleScope(Scope):
    """Scope backed by a plain dictionary, ended explicitly with close().

    A SimpleScope represents a single scope instance (e.g., one HTTP request
    or one batch job). Instances are cached until the scope is closed, at
    which point destruction callbacks run in reverse creation order.

    Attributes:
        scope_id: Identifier for this scope instance

    Example::

        request_scope = SimpleScope("req-123")
        container.register_scope("request", request_scope)

        ctx = container.get_instance(RequestContext)   # created and cached
        ctx2 = container.get_instance(RequestContext)  # same instance

        request_scope.close()   # destroy callbacks run, cache cleared
    """

    def __init__(self, scope_id: str = "default"):
        self.scope_id = scope_id
        self._instances: Dict[str, Any] = {}
        self._callbacks: Dict[str, Callable[[], None]] = {}
        self._closed = False
        self._lock = threading.RLock()

    def _ensure_not_closed(self) -> None:
        if self._closed:
            raise RuntimeError(
                f"Scope '{self.scope_id}' has been closed. "
                "Cannot resolve components from a closed scope."
            )

    def get(self, name: str, object_factory: Callable[[], Any]) -> Any:
        with self._lock:
            self._ensure_not_closed()
            instance = self._instances.get(name)
            if instance is None:
                instance = object_factory()
                self._instances[name] = instance
            return instance

    def remove(self, name: str) -> Optional[Any]:
        with self._lock:
            self._callbacks.pop(name, None)
            return self._instances.pop(name, None)

    def register_destruction_callback(self, name: str, callback: Callable[[], None]) -> None:
        with self._lock:
            self._callbacks[name] = callback

    @property
    def names(self) -> List[str]:
        return list(self._instances)

    def close(self) -> None:
        """Destroy all cached instances. This method is idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            callbacks = list(self._callbacks.items())
            self._callbacks.clear()
            self._instances.clear()
        for name, callback in reversed(callbacks):
            try:
                callback()
            except Exception:
                logger.warning(
                    f"Destruction of '{name}' in scope '{self.scope_id}' threw an exception",
                    exc_info=True
                )

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self) -> 'SimpleScope':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
