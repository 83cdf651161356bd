# Public API
from .container import ContainerState, WireBoxContainer
from .definition import Autowired, ComponentDefinition, MergedDefinition, Ref, Value
from .definition_source import DefinitionSource
from .definition_store import DefinitionStore
from .descriptor import DependencyDescriptor, Shape
from .environment import Environment
from .event_bus import EventBus, EventMulticaster
from .events import (
    ContainerClosedEvent,
    ContainerEvent,
    ContainerRefreshedEvent,
    ContainerStartedEvent,
    ContainerStoppedEvent,
    Event,
    EventListener,
    FunctionEventListener,
    PayloadEvent,
)
from .exceptions import (
    AlreadyRefreshedError,
    AmbiguousMatchError,
    AmbiguousPrimaryError,
    AmbiguousPriorityError,
    CircularReferenceError,
    ComponentCreationError,
    ContainerClosedError,
    DefinitionConflictError,
    DefinitionNotFoundError,
    InvalidDefinitionError,
    MissingConfigurationError,
    NoMatchError,
    NotInitializedError,
    PrototypeCycleError,
    RefreshFailureError,
    TypeInferenceError,
    TypeMismatchError,
    WireBoxError,
)
from .factory import ComponentFactory
from .instance_cache import InstanceCache
from .lifecycle import (
    PROTOTYPE,
    SINGLETON,
    DisposableComponent,
    InitializingComponent,
    Lifecycle,
    Ordered,
    Role,
)
from .lifecycle_processor import DefaultLifecycleProcessor
from .module import WireBoxModule
from .post_processor import (
    ContainerAware,
    DefinitionPostProcessor,
    InstanceInterceptor,
    InstancePostProcessor,
    InterceptingPostProcessor,
    NameAware,
    SingletonsReadyCallback,
)
from .provider import ComponentProvider
from .registry import ContainerRegistry
from .resolver import DependencyResolver
from .scope import Scope, SimpleScope
from .settings import ContainerSettings
from .type_introspection import TypeMatcher

__all__ = [
    "WireBoxContainer",
    "ContainerState",
    "ContainerRegistry",
    "ContainerSettings",
    "Environment",
    "WireBoxModule",
    "DefinitionSource",
    # Definitions
    "ComponentDefinition",
    "MergedDefinition",
    "DefinitionStore",
    "Ref",
    "Autowired",
    "Value",
    "SINGLETON",
    "PROTOTYPE",
    "Role",
    # Resolution
    "ComponentFactory",
    "InstanceCache",
    "DependencyResolver",
    "DependencyDescriptor",
    "Shape",
    "ComponentProvider",
    "TypeMatcher",
    # Scopes and lifecycle
    "Scope",
    "SimpleScope",
    "Lifecycle",
    "Ordered",
    "InitializingComponent",
    "DisposableComponent",
    "DefaultLifecycleProcessor",
    # Extension points
    "DefinitionPostProcessor",
    "InstancePostProcessor",
    "InstanceInterceptor",
    "InterceptingPostProcessor",
    "ContainerAware",
    "NameAware",
    "SingletonsReadyCallback",
    # Events
    "Event",
    "PayloadEvent",
    "ContainerEvent",
    "ContainerRefreshedEvent",
    "ContainerStartedEvent",
    "ContainerStoppedEvent",
    "ContainerClosedEvent",
    "EventListener",
    "FunctionEventListener",
    "EventBus",
    "EventMulticaster",
    # Exceptions
    "WireBoxError",
    "InvalidDefinitionError",
    "DefinitionConflictError",
    "DefinitionNotFoundError",
    "CircularReferenceError",
    "PrototypeCycleError",
    "NoMatchError",
    "AmbiguousMatchError",
    "AmbiguousPrimaryError",
    "AmbiguousPriorityError",
    "TypeMismatchError",
    "TypeInferenceError",
    "ComponentCreationError",
    "MissingConfigurationError",
    "AlreadyRefreshedError",
    "NotInitializedError",
    "ContainerClosedError",
    "RefreshFailureError",
]

__version__ = '0.1.0'
