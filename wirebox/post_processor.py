"""
Post-processors and extension callbacks

Hook interfaces the container calls while bootstrapping and building
components:

- DefinitionPostProcessor: edits definitions before any instance exists
- InstancePostProcessor: sees (and may replace) every instance being built
- InstanceInterceptor / InterceptingPostProcessor: opaque wrapping of
  instances, e.g. for proxying
- ContainerAware / NameAware: receive the container or their own name
- SingletonsReadyCallback: runs once all eager singletons exist
"""

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from .container import WireBoxContainer
    from .definition_store import DefinitionStore


class DefinitionPostProcessor(ABC):
    """Edits the definition store during refresh, before instantiation.

    Post-processors run ordered by their ``order`` attribute (lower first,
    unordered last). A post-processor may register further
    post-processor definitions; those run in the same pass.

    Example::

        class TimeoutDefaults(DefinitionPostProcessor):
            order = 0

            def post_process_definitions(self, store):
                for name in store.names:
                    definition = store.get(name)
                    definition.properties.setdefault("timeout", 30)
                    store.register(name, definition)
    """

    @abstractmethod
    def post_process_definitions(self, store: 'DefinitionStore') -> None:
        pass


class InstancePostProcessor:
    """Callbacks around the initialization of every component.

    Every method returns the object to continue with; returning a different
    object replaces the instance. Override only what you need.
    """

    def get_early_reference(self, instance: Any, name: str) -> Any:
        """Object to expose when a cycle needs name before it is initialized."""
        return instance

    def before_init(self, instance: Any, name: str) -> Any:
        """Called after properties are set, before init hooks."""
        return instance

    def after_init(self, instance: Any, name: str) -> Any:
        """Called after init hooks."""
        return instance

    def before_destruction(self, instance: Any, name: str) -> None:
        """Called before a singleton's destroy hooks."""
        pass


class InstanceInterceptor(ABC):
    """Opaque capability that wraps or replaces an instance.

    The container does not care how the wrapper is built, only that the
    result is still compatible with the types the component is requested as.
    """

    @abstractmethod
    def intercept(self, instance: Any, name: str) -> Any:
        pass


class InterceptingPostProcessor(InstancePostProcessor):
    """Applies an InstanceInterceptor to selected components.

    Wrapping happens either when an early reference is requested or after
    initialization, never both, so every dependent sees the same wrapper.

    Args:
        interceptor: Produces the wrapper
        applies_to: Predicate ``(name, instance) -> bool`` choosing which
            components to wrap; all of them when omitted
    """

    def __init__(
        self,
        interceptor: InstanceInterceptor,
        applies_to: Optional[Callable[[str, Any], bool]] = None,
        order: Optional[int] = None
    ):
        self.interceptor = interceptor
        self.applies_to = applies_to
        if order is not None:
            self.order = order
        self._early_wrapped: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get_early_reference(self, instance: Any, name: str) -> Any:
        with self._lock:
            self._early_wrapped[name] = id(instance)
        return self._wrap_if_necessary(instance, name)

    def after_init(self, instance: Any, name: str) -> Any:
        with self._lock:
            wrapped_early = self._early_wrapped.pop(name, None)
        if wrapped_early == id(instance):
            return instance
        return self._wrap_if_necessary(instance, name)

    def _wrap_if_necessary(self, instance: Any, name: str) -> Any:
        if self.applies_to is not None and not self.applies_to(name, instance):
            return instance
        return self.interceptor.intercept(instance, name)


class ContainerAware(ABC):
    """Component that receives the container that built it."""

    @abstractmethod
    def set_container(self, container: 'WireBoxContainer') -> None:
        pass


class NameAware(ABC):
    """Component that receives its own component name."""

    @abstractmethod
    def set_component_name(self, name: str) -> None:
        pass


class SingletonsReadyCallback(ABC):
    """Singleton notified once every eager singleton has been created."""

    @abstractmethod
    def on_singletons_ready(self) -> None:
        pass
