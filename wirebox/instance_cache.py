"""
InstanceCache

Singleton storage and the early-reference protocol that breaks
property-level dependency cycles.

Each singleton name moves through three exposure tiers:

1. Completed: fully initialized instances
2. Early references: partially constructed instances, visible only while
   their construction is in progress
3. Early-reference factories: one-shot producers registered right after
   instantiation; invoked at most once to produce the early reference
   (possibly a wrapper) and then discarded

Non-singleton scopes never touch this cache.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Set

from .exceptions import (
    CircularReferenceError,
    ContainerClosedError,
    DefinitionConflictError,
)
from .resolution_context import current_context

logger = logging.getLogger(__name__)

DestroyCallback = Callable[[], None]


class InstanceCache:
    """Singleton instances, cycle-breaking early references and teardown.

    Construction is serialized by one re-entrant lock so that a name is
    built at most once even under concurrent first access. Lookups of
    completed singletons read the completed map without taking the lock.

    The cache also records which singletons depend on which, so that
    destroying a singleton first destroys everything that holds it.
    """

    def __init__(self):
        self._completed: Dict[str, Any] = {}
        self._early: Dict[str, Any] = {}
        self._factories: Dict[str, Callable[[], Any]] = {}
        self._registration_order: List[str] = []
        self._in_creation: Set[str] = set()
        self._disposables: Dict[str, DestroyCallback] = {}
        self._dependents: Dict[str, Set[str]] = {}
        self._dependencies: Dict[str, Set[str]] = {}
        self._destroying = False
        self._lock = threading.RLock()

    # -- lookup ------------------------------------------------------------

    def get_singleton(self, name: str, allow_early: bool = True) -> Optional[Any]:
        """Return the singleton for name, or None if none is available.

        A completed instance is returned directly. While name is under
        construction, an early reference is returned if one was produced,
        otherwise the registered early-reference factory is invoked once.

        Args:
            name: Canonical component name
            allow_early: Whether the early-reference factory may be invoked

        Returns:
            The instance, the early reference, or None
        """
        instance = self._completed.get(name)
        if instance is not None or name not in self._in_creation:
            return instance
        if not allow_early:
            # Type checks must not wait for a construction on another thread
            return self._early.get(name)
        with self._lock:
            instance = self._completed.get(name)
            if instance is None:
                instance = self._early.get(name)
                if instance is None:
                    factory = self._factories.pop(name, None)
                    if factory is not None:
                        instance = factory()
                        self._early[name] = instance
                        logger.debug(f"Exposed early reference to singleton '{name}'")
        return instance

    def contains(self, name: str) -> bool:
        return name in self._completed

    def is_in_creation(self, name: str) -> bool:
        return name in self._in_creation

    def early_reference(self, name: str) -> Optional[Any]:
        """The early reference handed out for name so far, if any."""
        return self._early.get(name)

    @property
    def names(self) -> List[str]:
        """Completed singleton names in completion order."""
        with self._lock:
            return list(self._registration_order)

    def __len__(self) -> int:
        return len(self._completed)

    # -- creation ----------------------------------------------------------

    def create_singleton(self, name: str, construct_fn: Callable[[], Any]) -> Any:
        """Build the singleton for name exactly once.

        construct_fn may recursively resolve other components and re-enter
        this cache. After instantiating, it should call add_early_factory()
        so that cycles through properties can be broken.

        Args:
            name: Canonical component name
            construct_fn: Builds and fully initializes the instance

        Returns:
            The completed instance

        Raises:
            CircularReferenceError: When name is already in creation and
                offered no early reference, i.e. a constructor-level cycle
            ContainerClosedError: When singletons are being destroyed
        """
        with self._lock:
            instance = self._completed.get(name)
            if instance is not None:
                return instance
            if self._destroying:
                raise ContainerClosedError(
                    f"Singleton '{name}' cannot be created while the singletons "
                    f"of this container are being destroyed"
                )
            if name in self._in_creation:
                raise CircularReferenceError(
                    f"Component '{name}' is currently in creation: "
                    f"{current_context().describe_cycle(name)}. "
                    f"Is there an unresolvable circular reference through constructor arguments?"
                )

            self._in_creation.add(name)
            logger.debug(f"Creating shared instance of singleton '{name}'")
            try:
                instance = construct_fn()
            except BaseException:
                self._in_creation.discard(name)
                self._discard_failed(name)
                raise
            self._in_creation.discard(name)
            self._add_completed(name, instance)
            return instance

    def add_early_factory(self, name: str, factory: Callable[[], Any]) -> None:
        """Register the one-shot early-reference producer for name."""
        with self._lock:
            if name not in self._completed:
                self._factories[name] = factory
                self._early.pop(name, None)

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register an externally created, fully initialized instance.

        Raises:
            DefinitionConflictError: When name already holds an instance
        """
        with self._lock:
            existing = self._completed.get(name)
            if existing is not None:
                raise DefinitionConflictError(
                    f"Could not register object [{instance!r}] under name '{name}': "
                    f"there is already object [{existing!r}] bound"
                )
            self._add_completed(name, instance)

    def _add_completed(self, name: str, instance: Any) -> None:
        self._completed[name] = instance
        self._early.pop(name, None)
        self._factories.pop(name, None)
        if name not in self._registration_order:
            self._registration_order.append(name)

    def _discard_failed(self, name: str) -> None:
        self._early.pop(name, None)
        self._factories.pop(name, None)
        # Anything completed with an early reference to the failed instance
        # must go as well
        self.destroy_singleton(name)

    # -- dependencies and teardown -----------------------------------------

    def register_dependent(self, name: str, dependent: str) -> None:
        """Record that dependent holds a reference to name."""
        if name == dependent:
            return
        with self._lock:
            self._dependents.setdefault(name, set()).add(dependent)
            self._dependencies.setdefault(dependent, set()).add(name)

    def dependents_of(self, name: str) -> Set[str]:
        return set(self._dependents.get(name, ()))

    def dependencies_of(self, name: str) -> Set[str]:
        return set(self._dependencies.get(name, ()))

    def is_dependent(self, name: str, dependent: str, _seen: Optional[Set[str]] = None) -> bool:
        """Whether dependent depends on name, directly or transitively."""
        seen = _seen if _seen is not None else set()
        if name in seen:
            return False
        seen.add(name)
        direct = self._dependents.get(name, ())
        if dependent in direct:
            return True
        return any(self.is_dependent(d, dependent, seen) for d in direct)

    def register_disposable(self, name: str, callback: DestroyCallback) -> None:
        """Register the teardown callback run when name is destroyed."""
        with self._lock:
            self._disposables[name] = callback

    def remove_singleton(self, name: str) -> None:
        with self._lock:
            self._completed.pop(name, None)
            self._early.pop(name, None)
            self._factories.pop(name, None)
            if name in self._registration_order:
                self._registration_order.remove(name)

    def destroy_singleton(self, name: str) -> None:
        """Remove name and run its teardown, destroying its dependents first.

        Failures of individual teardown callbacks are logged, never raised.
        """
        with self._lock:
            self.remove_singleton(name)
            callback = self._disposables.pop(name, None)
            dependents = self._dependents.pop(name, set())

        for dependent in sorted(dependents, key=self._destroy_sort_key, reverse=True):
            self.destroy_singleton(dependent)

        if callback is not None:
            try:
                callback()
            except Exception:
                logger.warning(f"Destruction of singleton '{name}' threw an exception", exc_info=True)

        with self._lock:
            for dependency in self._dependencies.pop(name, set()):
                dependents_of_dependency = self._dependents.get(dependency)
                if dependents_of_dependency is not None:
                    dependents_of_dependency.discard(name)

    def _destroy_sort_key(self, name: str) -> int:
        order = list(self._disposables)
        return order.index(name) if name in order else -1

    def destroy_singletons(self) -> None:
        """Destroy every singleton.

        Disposable singletons are destroyed in reverse registration order,
        each after everything that depends on it. All state is cleared
        afterwards, including singletons without teardown.
        """
        with self._lock:
            self._destroying = True
            names = list(self._disposables)
        logger.debug(f"Destroying {len(self._completed)} singletons")
        try:
            for name in reversed(names):
                self.destroy_singleton(name)
        finally:
            with self._lock:
                self._completed.clear()
                self._early.clear()
                self._factories.clear()
                self._registration_order.clear()
                self._disposables.clear()
                self._dependents.clear()
                self._dependencies.clear()
                self._destroying = False
