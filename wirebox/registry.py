"""
ContainerRegistry

Process-level bookkeeping of live containers.

A registry is an ordinary object owned by the application: there is no
module-level default instance. Containers are looked up by their id and
unregister themselves when they close.

Example::

    registry = ContainerRegistry()
    registry.register(container)

    registry.get(container.id)   # container
    registry.close_all()         # closes every registered container
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from .container import WireBoxContainer
from .exceptions import ContainerClosedError, DefinitionConflictError, NotInitializedError

logger = logging.getLogger(__name__)


class ContainerRegistry:
    """Live containers of a process, keyed by container id.

    Attributes:
        _containers: Registered containers in registration order

    Example::

        registry = ContainerRegistry()
        with WireBoxContainer(sources=[module], name="app") as container:
            registry.register(container)
            registry.get("app").get_instance(MyService)
        registry.get_or_none("app")   # None, unregistered on close
    """

    def __init__(self):
        self._containers: Dict[str, WireBoxContainer] = {}
        self._close_callbacks: Dict[str, Callable[[], None]] = {}
        self._lock = threading.RLock()

    def register(self, container: WireBoxContainer) -> None:
        """Track container until it closes.

        Raises:
            DefinitionConflictError: If another container with the same id
                is registered
            ContainerClosedError: If the container is closed already
        """
        with self._lock:
            existing = self._containers.get(container.id)
            if existing is container:
                return
            if existing is not None:
                raise DefinitionConflictError(
                    f"A container with id '{container.id}' is already registered"
                )

            if container.is_closed:
                raise ContainerClosedError(f"{container.id} has been closed already")

            def on_closed() -> None:
                self.unregister(container)

            container.add_close_callback(on_closed)
            self._containers[container.id] = container
            self._close_callbacks[container.id] = on_closed
        logger.debug(f"Registered container '{container.id}'")

    def unregister(self, container: WireBoxContainer) -> None:
        """Stop tracking container. This method is idempotent."""
        with self._lock:
            if self._containers.get(container.id) is not container:
                return
            del self._containers[container.id]
            callback = self._close_callbacks.pop(container.id, None)
        if callback is not None:
            container.remove_close_callback(callback)
        logger.debug(f"Unregistered container '{container.id}'")

    def get(self, container_id: str) -> WireBoxContainer:
        """Get a registered container by id.

        Raises:
            NotInitializedError: If no container with that id is registered
        """
        container = self.get_or_none(container_id)
        if container is None:
            raise NotInitializedError(
                f"No container with id '{container_id}' is registered"
            )
        return container

    def get_or_none(self, container_id: str) -> Optional[WireBoxContainer]:
        with self._lock:
            return self._containers.get(container_id)

    @property
    def containers(self) -> List[WireBoxContainer]:
        """Registered containers in registration order."""
        with self._lock:
            return list(self._containers.values())

    def close_all(self) -> None:
        """Close every registered container, most recently registered first.

        Children are usually registered after their parents, so they are
        closed first. Failures are logged and do not stop the others from
        closing.
        """
        for container in reversed(self.containers):
            try:
                container.close()
            except Exception:
                logger.warning(f"Closing container '{container.id}' failed", exc_info=True)
            self.unregister(container)

    def __len__(self) -> int:
        return len(self._containers)

    def __contains__(self, container_id: object) -> bool:
        return container_id in self._containers
