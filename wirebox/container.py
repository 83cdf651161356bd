"""
WireBoxContainer

This module provides the container: the bootstrap/shutdown state machine
around a ComponentFactory, plus event publication.

Each WireBoxContainer instance maintains its own definitions and
singletons, completely separate from any other container. Containers can
be stacked: a child resolves what it does not define from its parent, and
forwards its events to the parent.

Example::

    module = WireBoxModule()
    with module:
        module.single[Database]()
        module.single[UserRepository]()

    container = WireBoxContainer(sources=[module])
    container.refresh()
    repo = container.get_instance(UserRepository)
    container.close()

    # Use as context manager for automatic refresh and cleanup
    with WireBoxContainer(sources=[module]) as container:
        repo = container.get_instance(UserRepository)
    # close() is called automatically
"""

import atexit
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from .definition import ComponentDefinition, MergedDefinition
from .definition_source import DefinitionSource
from .definition_store import DefinitionStore
from .environment import Environment
from .event_bus import EventBus, EventMulticaster
from .events import (
    ContainerClosedEvent,
    ContainerRefreshedEvent,
    ContainerStartedEvent,
    ContainerStoppedEvent,
    Event,
    EventListener,
    FunctionEventListener,
)
from .exceptions import (
    AlreadyRefreshedError,
    ContainerClosedError,
    NotInitializedError,
    RefreshFailureError,
    WireBoxError,
)
from .factory import ComponentFactory
from .lifecycle import get_order
from .lifecycle_processor import DefaultLifecycleProcessor
from .module import WireBoxModule
from .post_processor import ContainerAware, DefinitionPostProcessor, InstancePostProcessor
from .scope import Scope
from .settings import ContainerSettings
from .type_introspection import TypeMatcher

T = TypeVar('T')

logger = logging.getLogger(__name__)

MULTICASTER_NAME = "event_multicaster"
LIFECYCLE_PROCESSOR_NAME = "lifecycle_processor"
ENVIRONMENT_NAME = "environment"


class ContainerState(Enum):
    """Lifecycle state of a container.

    NEW -> ACTIVE -> CLOSED. A failed refresh leaves INACTIVE, from which
    refresh may be retried.
    """
    NEW = "new"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"


def _sorted_by_order(items: Iterable[T]) -> List[T]:
    indexed = list(enumerate(items))

    def sort_key(item):
        index, obj = item
        order = get_order(obj)
        return (1, 0, index) if order is None else (0, order, index)

    return [obj for _, obj in sorted(indexed, key=sort_key)]


class _ContainerAwareProcessor(InstancePostProcessor):
    """Hands the container to ContainerAware components before init hooks."""

    def __init__(self, container: 'WireBoxContainer'):
        self._container = container

    def before_init(self, instance: Any, name: str) -> Any:
        if isinstance(instance, ContainerAware):
            instance.set_container(self._container)
        return instance


class WireBoxContainer:
    """Dependency injection container with all-or-nothing bootstrap.

    ``refresh()`` builds a fresh DefinitionStore from the container's
    definition sources and manual registrations, runs definition and
    instance post-processors, wires up event delivery and eagerly creates
    every non-lazy singleton. If any step fails, every singleton created so
    far is destroyed and the container is left inactive.

    ``close()`` publishes a ContainerClosedEvent, stops Lifecycle
    components and destroys every singleton, dependents first.

    Attributes:
        id: Identifier of this container, also used in log messages
        parent: Parent container, if any
        settings: Behavioural switches

    Example::

        container = WireBoxContainer(
            sources=[module],
            properties={"db.url": "sqlite://"},
            settings=ContainerSettings(allow_circular_references=False),
        )
        container.add_listener(lambda event: print(event))
        container.refresh()

        db = container.get_instance("database")
        repos = container.get_instances_of_type(Repository)
        container[UserService]()   # subscript syntax, same as get_instance
    """

    def __init__(
        self,
        sources: Optional[List[DefinitionSource]] = None,
        parent: Optional['WireBoxContainer'] = None,
        settings: Optional[ContainerSettings] = None,
        properties: Optional[Mapping[str, Any]] = None,
        type_matcher: Optional[TypeMatcher] = None,
        name: Optional[str] = None
    ):
        """Initialize a container. Nothing is built until refresh().

        Args:
            sources: Definition sources (e.g. WireBoxModule instances),
                loaded in order on every refresh
            parent: Container consulted for names and types not defined here
            settings: Behavioural switches; defaults apply when omitted
            properties: Configuration values for the container's Environment
            type_matcher: Custom type-compatibility oracle
            name: Identifier used in log and error messages
        """
        self.id = name or f"{type(self).__name__}@{id(self):x}"
        self.parent = parent
        self.settings = settings or ContainerSettings()
        self._sources: List[DefinitionSource] = list(sources or [])
        self._manual = WireBoxModule()
        self._manual_singletons: Dict[str, Any] = {}
        self._environment = Environment(
            properties,
            use_environment_variables=self.settings.use_environment_variables
        )
        self._type_matcher = type_matcher or TypeMatcher()
        self._state = ContainerState.NEW
        self._startup_shutdown_lock = threading.RLock()
        self._close_lock = threading.Lock()
        self._closed = False
        self._startup_date: Optional[float] = None
        self._listeners: List[EventListener] = []
        self._early_listeners: Optional[List[EventListener]] = None
        self._definition_post_processors: List[DefinitionPostProcessor] = []
        self._instance_post_processors: List[InstancePostProcessor] = []
        self._scopes: Dict[str, Scope] = {}
        self._event_bus = EventBus(self, parent._event_bus if parent is not None else None)
        self._store = self._new_store()
        self._factory: Optional[ComponentFactory] = None
        self._lifecycle_processor: Optional[DefaultLifecycleProcessor] = None
        self._shutdown_hook: Optional[Callable[[], None]] = None
        self._close_callbacks: List[Callable[[], None]] = []

    # -- state -------------------------------------------------------------

    @property
    def state(self) -> ContainerState:
        return self._state

    @property
    def is_active(self) -> bool:
        """Whether the last refresh succeeded and close() has not run yet."""
        return self._state is ContainerState.ACTIVE

    @property
    def is_closed(self) -> bool:
        """Check whether the container has been closed.

        Returns:
            True if close() has been called, False otherwise
        """
        return self._closed

    @property
    def startup_date(self) -> Optional[float]:
        """Time of the last refresh, seconds since the epoch."""
        return self._startup_date

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def component_factory(self) -> ComponentFactory:
        """The factory built by the last successful refresh.

        Raises:
            NotInitializedError / ContainerClosedError: When not active
        """
        self._ensure_active()
        return self._factory

    def _ensure_not_closed(self) -> None:
        if self._closed:
            raise ContainerClosedError(f"{self.id} has been closed already")

    def _ensure_active(self) -> None:
        self._ensure_not_closed()
        if self._state is not ContainerState.ACTIVE or self._factory is None:
            raise NotInitializedError(
                f"{self.id} has not been refreshed yet. "
                f"Call refresh() before retrieving components"
            )

    # -- refresh -----------------------------------------------------------

    def refresh(self) -> None:
        """Build every definition and eagerly create non-lazy singletons.

        Raises:
            AlreadyRefreshedError: When the container is already active
            ContainerClosedError: When the container has been closed
            WireBoxError: Any container error raised while bootstrapping,
                unchanged
            RefreshFailureError: Wrapping any other exception
        """
        with self._startup_shutdown_lock:
            self._ensure_not_closed()
            if self._state is ContainerState.ACTIVE:
                raise AlreadyRefreshedError(f"{self.id} has already been refreshed")

            started = time.perf_counter()
            logger.debug(f"Refreshing {self.id}")
            self._prepare_refresh()
            try:
                self._environment.validate_required_properties()
                store = self._obtain_fresh_store()
                factory = self._prepare_factory(store)
                self._invoke_definition_post_processors(factory)
                self._register_instance_post_processors(factory)
                multicaster = self._init_event_multicaster(factory)
                self.on_refresh()
                self._register_listeners(factory, multicaster)
                self._finish_factory_initialization(factory)
                self._finish_refresh(factory)
            except BaseException as e:
                self._cancel_refresh(e)
                if isinstance(e, WireBoxError) or not isinstance(e, Exception):
                    raise
                raise RefreshFailureError(f"Refresh of {self.id} failed: {e}") from e

            elapsed = (time.perf_counter() - started) * 1000
            logger.info(
                f"Refreshed {self.id} in {elapsed:.0f} ms "
                f"with {len(self._store)} component definitions"
            )

    def _prepare_refresh(self) -> None:
        self._startup_date = time.time()
        self._state = ContainerState.ACTIVE
        if self._early_listeners is None:
            self._early_listeners = list(self._listeners)
        else:
            self._listeners = list(self._early_listeners)
        self._event_bus.open_buffer()

    def _new_store(self) -> DefinitionStore:
        parent_store = self.parent._store if self.parent is not None else None
        return DefinitionStore(
            allow_overriding=self.settings.allow_definition_overriding,
            parent=parent_store
        )

    def _obtain_fresh_store(self) -> DefinitionStore:
        store = self._new_store()
        try:
            for source in self._sources:
                source.load_definitions(store)
            self._manual.load_definitions(store)
        except BaseException:
            store.detach()
            raise
        self._store.detach()
        self._store = store
        return store

    def _prepare_factory(self, store: DefinitionStore) -> ComponentFactory:
        parent_factory = self.parent._factory if self.parent is not None else None
        factory = ComponentFactory(
            store,
            settings=self.settings,
            environment=self._environment,
            parent=parent_factory,
            type_matcher=self._type_matcher,
        )
        self._factory = factory

        factory.register_resolvable_value(ComponentFactory, factory)
        factory.register_resolvable_value(WireBoxContainer, self)
        factory.register_resolvable_value(Environment, self._environment)
        factory.add_post_processor(_ContainerAwareProcessor(self))

        for scope_name, scope in self._scopes.items():
            factory.register_scope(scope_name, scope)
        if not store.contains(ENVIRONMENT_NAME):
            factory.register_singleton(ENVIRONMENT_NAME, self._environment)
        for name, instance in self._manual_singletons.items():
            factory.register_singleton(name, instance)
        return factory

    def _invoke_definition_post_processors(self, factory: ComponentFactory) -> None:
        store = factory.store
        for post_processor in _sorted_by_order(self._definition_post_processors):
            post_processor.post_process_definitions(store)

        # Post-processors may register further post-processor definitions
        processed = set()
        while True:
            names = [
                name for name in factory.names_for_type(DefinitionPostProcessor)
                if name not in processed
            ]
            if not names:
                break
            processed.update(names)
            instances = [factory.get_instance(name) for name in names]
            for post_processor in _sorted_by_order(instances):
                logger.debug(f"Invoking definition post-processor {post_processor!r}")
                post_processor.post_process_definitions(store)

    def _register_instance_post_processors(self, factory: ComponentFactory) -> None:
        for post_processor in self._instance_post_processors:
            factory.add_post_processor(post_processor)
        components = [
            factory.get_instance(name)
            for name in factory.names_for_type(InstancePostProcessor)
        ]
        for post_processor in _sorted_by_order(components):
            factory.add_post_processor(post_processor)

    def _init_event_multicaster(self, factory: ComponentFactory) -> EventMulticaster:
        if factory.store.contains(MULTICASTER_NAME):
            return factory.get_instance(MULTICASTER_NAME, required_type=EventMulticaster)
        multicaster = EventMulticaster(factory)
        factory.register_singleton(MULTICASTER_NAME, multicaster)
        return multicaster

    def on_refresh(self) -> None:
        """Template method for subclasses, called before singletons are created.

        This implementation does nothing.
        """
        pass

    def _register_listeners(self, factory: ComponentFactory, multicaster: EventMulticaster) -> None:
        for listener in self._listeners:
            multicaster.add_listener(listener)
        for name in factory.names_for_type(EventListener):
            multicaster.add_listener_name(name)
        self._event_bus.attach_multicaster(multicaster)

    def _finish_factory_initialization(self, factory: ComponentFactory) -> None:
        factory.store.freeze()
        factory.pre_instantiate_singletons()

    def _finish_refresh(self, factory: ComponentFactory) -> None:
        if factory.store.contains(LIFECYCLE_PROCESSOR_NAME):
            processor = factory.get_instance(LIFECYCLE_PROCESSOR_NAME)
        else:
            processor = DefaultLifecycleProcessor(factory)
            factory.register_singleton(LIFECYCLE_PROCESSOR_NAME, processor)
        self._lifecycle_processor = processor
        processor.on_refresh()
        self._event_bus.publish(ContainerRefreshedEvent(self))

    def _cancel_refresh(self, error: BaseException) -> None:
        logger.warning(f"Exception encountered during refresh of {self.id} - cancelling refresh attempt: {error}")
        factory = self._factory
        if factory is not None:
            try:
                factory.destroy_singletons()
            except Exception:
                logger.warning(f"Destroying singletons of {self.id} after a failed refresh failed", exc_info=True)
        self._factory = None
        self._lifecycle_processor = None
        self._state = ContainerState.INACTIVE
        self._store.clear_metadata_cache()
        self._event_bus.reset()

    # -- close -------------------------------------------------------------

    def close(self) -> None:
        """Close the container and destroy its singletons.

        This method is idempotent - calling it multiple times, from several
        threads, or again from the shutdown hook has no effect.

        Lifecycle and listener failures during close are logged, never
        raised.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        with self._startup_shutdown_lock:
            self._do_close()
            if self._shutdown_hook is not None:
                atexit.unregister(self._shutdown_hook)
                self._shutdown_hook = None

    def _do_close(self) -> None:
        was_active = self._state is ContainerState.ACTIVE
        if was_active:
            logger.debug(f"Closing {self.id}")
            try:
                self._event_bus.publish(ContainerClosedEvent(self))
            except Exception:
                logger.warning(f"Exception thrown from listener while publishing close event of {self.id}", exc_info=True)

            if self._lifecycle_processor is not None:
                try:
                    self._lifecycle_processor.on_close()
                except Exception:
                    logger.warning(f"Exception thrown from lifecycle processor on close of {self.id}", exc_info=True)

        if self._factory is not None:
            self._factory.destroy_singletons()
        self._factory = None
        self._lifecycle_processor = None
        self._store.clear_metadata_cache()
        self._store.detach()

        try:
            self.on_close()
        except Exception:
            logger.warning(f"Exception thrown from on_close() of {self.id}", exc_info=True)

        if self._early_listeners is not None:
            self._listeners = list(self._early_listeners)
            self._early_listeners = None
        self._event_bus.reset()
        self._state = ContainerState.CLOSED
        if was_active:
            logger.info(f"Closed {self.id}")

        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.warning(f"Close callback of {self.id} threw an exception", exc_info=True)

    def on_close(self) -> None:
        """Template method for subclasses, called after singletons are destroyed.

        This implementation does nothing.
        """
        pass

    def register_shutdown_hook(self) -> None:
        """Close this container when the interpreter exits."""
        with self._startup_shutdown_lock:
            if self._shutdown_hook is None:
                self._shutdown_hook = self.close
                atexit.register(self._shutdown_hook)

    def add_close_callback(self, callback: Callable[[], None]) -> None:
        """Call callback once, at the end of close().

        Unlike a ContainerClosedEvent listener, the callback also runs when
        the container is closed without ever having been refreshed
        successfully. Failures are logged.

        Raises:
            ContainerClosedError: When the container has been closed
        """
        with self._close_lock:
            self._ensure_not_closed()
            self._close_callbacks.append(callback)

    def remove_close_callback(self, callback: Callable[[], None]) -> None:
        with self._close_lock:
            if callback in self._close_callbacks:
                self._close_callbacks.remove(callback)

    def __enter__(self) -> 'WireBoxContainer':
        """Enter context manager, refreshing the container if it is new.

        Example::

            with WireBoxContainer(sources=[module]) as container:
                service = container.get_instance(MyService)
            # close() is called automatically
        """
        if self._state is ContainerState.NEW:
            self.refresh()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Start every Lifecycle singleton and publish a ContainerStartedEvent."""
        self._ensure_active()
        self._lifecycle_processor.start()
        self.publish(ContainerStartedEvent(self))

    def stop(self) -> None:
        """Stop every Lifecycle singleton and publish a ContainerStoppedEvent."""
        self._ensure_active()
        self._lifecycle_processor.stop()
        self.publish(ContainerStoppedEvent(self))

    # -- definitions -------------------------------------------------------

    def register_definition(self, name: str, definition: ComponentDefinition) -> None:
        """Register a definition, effective immediately and on every refresh.

        Registering over an existing name follows the override policy; when
        active, a replaced singleton is destroyed and recreated on next use.

        Raises:
            InvalidDefinitionError: When the definition is invalid
            DefinitionConflictError: When the name is taken and overriding
                is disabled
            ContainerClosedError: When the container has been closed
        """
        self._ensure_not_closed()
        self._store.register(name, definition)
        self._manual.remove(name)
        self._manual.define(name, definition.copy())

    def remove_definition(self, name: str) -> None:
        """Remove a definition and destroy its singleton, if created.

        Raises:
            DefinitionNotFoundError: When no definition has that name
        """
        self._ensure_not_closed()
        canonical = self._store.canonical_name(name)
        self._store.remove(canonical)
        self._manual.remove(canonical)

    def get_definition(self, name: str) -> ComponentDefinition:
        """Return a copy of the raw definition registered under a name or alias.

        Raises:
            DefinitionNotFoundError: When no definition has that name
        """
        self._ensure_not_closed()
        return self._store.get(name)

    def get_merged_definition(self, name: str) -> MergedDefinition:
        self._ensure_not_closed()
        return self._store.get_merged(name)

    def contains_definition(self, name: str) -> bool:
        return self._store.contains(name)

    @property
    def definition_names(self) -> List[str]:
        return list(self._store.names)

    def register_alias(self, name: str, alias: str) -> None:
        self._ensure_not_closed()
        self._store.register_alias(name, alias)
        self._manual.alias(name, alias)

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register an already built object as a singleton.

        The object is never initialized or destroyed by the container.
        Before refresh it is kept and registered when refresh builds the
        factory.
        """
        self._ensure_not_closed()
        self._manual_singletons[name] = instance
        if self._factory is not None:
            self._factory.register_singleton(name, instance)

    # -- components --------------------------------------------------------

    def get_instance(self, key: Union[str, Type[T]], *args: Any, required_type: Optional[Type[T]] = None) -> Any:
        """Return the component for a name, alias or type.

        Args:
            key: Component name or alias, or a type
            *args: Explicit constructor arguments (prototypes, or singletons
                not created yet)
            required_type: When given, the result must satisfy this type

        Raises:
            NotInitializedError: Before a successful refresh
            ContainerClosedError: After close
            DefinitionNotFoundError: Unknown name
            NoMatchError / AmbiguousMatchError: Type lookup without a winner
            TypeMismatchError: Result incompatible with required_type

        Example::

            db = container.get_instance(Database)
            db = container.get_instance("database", required_type=Database)
            conn = container.get_instance("connection", "replica-1")
        """
        self._ensure_active()
        return self._factory.get_instance(key, *args, required_type=required_type)

    def __getitem__(self, key: Union[str, Type[T]]) -> Callable[..., Any]:
        """Support subscript syntax: container[Type]().

        Example::

            # These are equivalent:
            service = container[MyService]()
            service = container.get_instance(MyService)
        """

        def getter(*args: Any) -> Any:
            return self.get_instance(key, *args)

        return getter

    def get_instances_of_type(self, component_type: Type[T]) -> Dict[str, T]:
        """Every local component of a type, keyed by name, in declaration order."""
        self._ensure_active()
        return self._factory.get_instances_of_type(component_type)

    def get_names_for_type(self, component_type: Any) -> List[str]:
        self._ensure_active()
        return self._factory.names_for_type(component_type)

    def contains_component(self, name: str) -> bool:
        if self._factory is not None:
            return self._factory.contains(name)
        return self._store.contains(name)

    # -- extension points --------------------------------------------------

    def add_definition_post_processor(self, post_processor: DefinitionPostProcessor) -> None:
        """Run post_processor on the store during every refresh."""
        self._definition_post_processors.append(post_processor)

    def add_instance_post_processor(self, post_processor: InstancePostProcessor) -> None:
        """Apply post_processor to every component built from now on."""
        self._instance_post_processors.append(post_processor)
        if self._factory is not None:
            self._factory.add_post_processor(post_processor)

    def register_scope(self, name: str, scope: Scope) -> None:
        """Back definitions with ``scope=name`` by the given Scope.

        Raises:
            ValueError: When name is "singleton" or "prototype"
        """
        self._ensure_not_closed()
        if self._factory is not None:
            self._factory.register_scope(name, scope)
        elif name in ("singleton", "prototype"):
            raise ValueError(f"Cannot replace the built-in '{name}' scope")
        self._scopes[name] = scope

    # -- events ------------------------------------------------------------

    def add_listener(
        self,
        listener: Union[EventListener, Callable[[Event], None]],
        event_type: Type[Event] = Event
    ) -> EventListener:
        """Register a listener; plain callables are wrapped.

        Listeners added before refresh also receive events published before
        refresh, once refresh has registered them.

        Returns:
            The registered EventListener
        """
        if not isinstance(listener, EventListener):
            listener = FunctionEventListener(listener, event_type)
        self._listeners.append(listener)
        multicaster = self._event_bus.multicaster
        if multicaster is not None:
            multicaster.add_listener(listener)
        return listener

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        multicaster = self._event_bus.multicaster
        if multicaster is not None:
            multicaster.remove_listener(listener)

    @property
    def listeners(self) -> List[EventListener]:
        """Listeners registered through add_listener()."""
        return list(self._listeners)

    def publish(self, event: Any) -> Event:
        """Publish an event to every supporting listener, then to the parent.

        Before refresh, events are buffered and delivered once refresh has
        registered the listeners. Objects that are not Events are wrapped in
        a PayloadEvent.

        Raises:
            ContainerClosedError: After close
            Exception: Whatever a listener raises while the container is
                active, unless the multicaster has an error handler
        """
        self._ensure_not_closed()
        return self._event_bus.publish(event)

    def __repr__(self) -> str:
        return f"WireBoxContainer(id={self.id!r}, state={self._state.value})"
