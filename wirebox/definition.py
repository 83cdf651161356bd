"""
Definition

Data classes describing how to build a component, and the merge that folds
a child definition over its parent chain.

A ``ComponentDefinition`` leaves fields as ``None`` when it has no opinion,
so a child inherits exactly the fields it does not set. ``MergedDefinition``
is the immutable, fully-resolved result with every default applied.
"""

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

from .exceptions import InvalidDefinitionError
from .lifecycle import PROTOTYPE, SINGLETON, Role


_MISSING = object()

FactoryMethod = Union[str, Callable[..., Any]]


@dataclass(frozen=True)
class Ref:
    """Reference to another component by name."""
    name: str
    required: bool = True


@dataclass(frozen=True)
class Autowired:
    """Dependency resolved by type.

    When ``target_type`` is omitted on a property, the type is taken from
    the class annotation of the same name on the component type.
    """
    target_type: Any = None
    required: bool = True


@dataclass(frozen=True)
class Value:
    """Configuration value looked up in the container's Environment."""
    key: str
    default: Any = _MISSING

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING


@dataclass
class ComponentDefinition:
    """Declarative recipe for one component.

    Attributes:
        component_type: Class to instantiate, or the declared type of the
            factory product
        scope: "singleton", "prototype" or a registered custom scope name
        lazy: When False, singletons are created during refresh
        parent_name: Name of the definition this one inherits from
        constructor_args: Positional constructor/factory arguments
        constructor_kwargs: Keyword constructor/factory arguments
        properties: Attributes assigned after construction
        factory_method: Callable building the instance, or a method name on
            ``factory_component`` (or a static method on ``component_type``)
        factory_component: Name of the component owning ``factory_method``
        primary: Wins ties between several type matches
        priority: Lower value wins ties when no primary exists
        order: Position in collection-shaped dependencies
        autowire_candidate: When False, never injected by type
        init_method / destroy_method: Names of lifecycle hook methods
        role: Role hint used for override logging
        depends_on: Names that must be initialized first
        abstract: Template only; never instantiated

    Example::

        ComponentDefinition(
            component_type=UserRepository,
            properties={"cache": Autowired()},
            init_method="connect",
        )
    """
    component_type: Optional[Type] = None
    scope: Optional[str] = None
    lazy: Optional[bool] = None
    parent_name: Optional[str] = None
    constructor_args: List[Any] = field(default_factory=list)
    constructor_kwargs: Dict[str, Any] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)
    factory_method: Optional[FactoryMethod] = None
    factory_component: Optional[str] = None
    primary: Optional[bool] = None
    priority: Optional[int] = None
    order: Optional[int] = None
    autowire_candidate: Optional[bool] = None
    init_method: Optional[str] = None
    destroy_method: Optional[str] = None
    role: Optional[Role] = None
    depends_on: Optional[List[str]] = None
    abstract: bool = False

    @property
    def is_inherited(self) -> bool:
        return self.parent_name is not None

    def validate(self) -> None:
        """Check the definition on its own, before any parent is merged in.

        Raises:
            InvalidDefinitionError: When the definition is self-contradictory
        """
        if self.scope is not None and (not isinstance(self.scope, str) or not self.scope):
            raise InvalidDefinitionError(f"Invalid scope {self.scope!r}")
        if self.factory_component is not None and not isinstance(self.factory_method, str):
            raise InvalidDefinitionError(
                f"factory_component '{self.factory_component}' requires "
                f"factory_method to be a method name"
            )
        for attribute in ('priority', 'order'):
            value = getattr(self, attribute)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise InvalidDefinitionError(f"{attribute} must be an int, got {value!r}")
        if self.is_inherited or self.abstract:
            return
        if self.component_type is None and self.factory_method is None:
            raise InvalidDefinitionError(
                "A definition needs a component_type or a factory_method"
            )
        if isinstance(self.factory_method, str) and self.factory_component is None \
                and self.component_type is None:
            raise InvalidDefinitionError(
                f"factory_method '{self.factory_method}' needs a factory_component "
                f"or a component_type declaring it"
            )

    def copy(self) -> 'ComponentDefinition':
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values['constructor_args'] = list(self.constructor_args)
        values['constructor_kwargs'] = dict(self.constructor_kwargs)
        values['properties'] = dict(self.properties)
        if self.depends_on is not None:
            values['depends_on'] = list(self.depends_on)
        return ComponentDefinition(**values)


@dataclass(frozen=True)
class MergedDefinition:
    """Immutable, fully-resolved view of a definition and its parent chain."""
    name: str
    component_type: Optional[Type]
    scope: str
    lazy: bool
    abstract: bool
    constructor_args: Tuple[Any, ...]
    constructor_kwargs: Mapping[str, Any]
    properties: Mapping[str, Any]
    factory_method: Optional[FactoryMethod]
    factory_component: Optional[str]
    primary: bool
    priority: Optional[int]
    order: Optional[int]
    autowire_candidate: bool
    init_method: Optional[str]
    destroy_method: Optional[str]
    role: Role
    depends_on: Tuple[str, ...]
    parent_name: Optional[str] = None

    @property
    def is_singleton(self) -> bool:
        return self.scope == SINGLETON

    @property
    def is_prototype(self) -> bool:
        return self.scope == PROTOTYPE

    @property
    def has_explicit_arguments(self) -> bool:
        return bool(self.constructor_args) or bool(self.constructor_kwargs)


def _pick(child: Any, parent: Any, default: Any) -> Any:
    if child is not None:
        return child
    if parent is not None:
        return parent
    return default


def merge_definitions(
    name: str,
    definition: ComponentDefinition,
    parent: Optional[MergedDefinition] = None
) -> MergedDefinition:
    """Fold a definition over its already-merged parent.

    Scalar fields set on the child win. Positional arguments override the
    parent's position by position, keyword arguments and properties are
    merged by key. ``abstract`` is never inherited.

    Args:
        name: Name the merged definition is registered under
        definition: The child definition
        parent: The merged parent, or None for a local definition

    Returns:
        The merged definition

    Raises:
        InvalidDefinitionError: When the merged result has nothing to build
            from and is not abstract
    """
    if parent is None:
        args: List[Any] = list(definition.constructor_args)
        kwargs: Dict[str, Any] = dict(definition.constructor_kwargs)
        properties: Dict[str, Any] = dict(definition.properties)
    else:
        args = list(parent.constructor_args)
        for index, value in enumerate(definition.constructor_args):
            if index < len(args):
                args[index] = value
            else:
                args.append(value)
        kwargs = dict(parent.constructor_kwargs)
        kwargs.update(definition.constructor_kwargs)
        properties = dict(parent.properties)
        properties.update(definition.properties)

    p = parent
    factory_method = _pick(definition.factory_method, p and p.factory_method, None)
    # A child naming its own factory method drops the parent's factory owner
    if definition.factory_method is not None:
        factory_component = definition.factory_component
    else:
        factory_component = _pick(definition.factory_component, p and p.factory_component, None)

    merged = MergedDefinition(
        name=name,
        component_type=_pick(definition.component_type, p and p.component_type, None),
        scope=_pick(definition.scope, p and p.scope, SINGLETON),
        lazy=_pick(definition.lazy, p and p.lazy, False),
        abstract=definition.abstract,
        constructor_args=tuple(args),
        constructor_kwargs=MappingProxyType(kwargs),
        properties=MappingProxyType(properties),
        factory_method=factory_method,
        factory_component=factory_component,
        primary=_pick(definition.primary, p and p.primary, False),
        priority=_pick(definition.priority, p and p.priority, None),
        order=_pick(definition.order, p and p.order, None),
        autowire_candidate=_pick(definition.autowire_candidate, p and p.autowire_candidate, True),
        init_method=_pick(definition.init_method, p and p.init_method, None),
        destroy_method=_pick(definition.destroy_method, p and p.destroy_method, None),
        role=_pick(definition.role, p and p.role, Role.USER),
        depends_on=tuple(_pick(definition.depends_on, p and p.depends_on, ())),
        parent_name=definition.parent_name,
    )

    if not merged.abstract and merged.component_type is None and merged.factory_method is None:
        raise InvalidDefinitionError(
            f"Definition '{name}' has neither a component_type nor a factory_method "
            f"after merging its parent chain"
        )
    return merged
