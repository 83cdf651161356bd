"""
ComponentFactory

This module provides the object-graph engine behind WireBoxContainer. It is
responsible for:

- Turning merged definitions into instances (constructor or factory method)
- Constructor, factory and property autowiring through DependencyResolver
- Scope handling: cached singletons, fresh prototypes, custom scopes
- Early exposure of singletons to break property-level cycles
- Init/destroy callbacks and InstancePostProcessor hooks
- Type prediction for by-type candidate matching

The factory is typically not used directly. WireBoxContainer owns one and
rebuilds it on every refresh.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from .definition import Autowired, MergedDefinition, Ref, Value
from .definition_store import DefinitionStore
from .descriptor import DependencyDescriptor
from .environment import Environment
from .exceptions import (
    CircularReferenceError,
    ComponentCreationError,
    DefinitionNotFoundError,
    InvalidDefinitionError,
    TypeInferenceError,
    TypeMismatchError,
    WireBoxError,
)
from .instance_cache import InstanceCache
from .lifecycle import PROTOTYPE, SINGLETON, DisposableComponent, InitializingComponent
from .post_processor import InstancePostProcessor, NameAware, SingletonsReadyCallback
from .resolution_context import creating, creating_prototype
from .resolver import DependencyResolver
from .scope import Scope
from .settings import ContainerSettings
from .type_introspection import (
    TypeMatcher,
    get_attribute_type,
    get_parameter_specs,
    get_return_type,
    type_name,
)

T = TypeVar('T')

logger = logging.getLogger(__name__)


class ComponentFactory:
    """Builds, caches and destroys the components of one container.

    Attributes:
        store: Definitions this factory builds from
        cache: Singleton instances and early references
        resolver: By-type dependency resolution
        settings: Behavioural switches shared with the container
        environment: Source of Value() lookups
        parent: Factory of the parent container, consulted for names and
            types not defined locally
        type_matcher: Pluggable type-compatibility oracle

    Example::

        store = DefinitionStore()
        store.register("db", ComponentDefinition(component_type=Database))
        factory = ComponentFactory(store)

        db = factory.get_instance("db")
        same = factory.get_instance(Database)   # by type, same singleton
    """

    def __init__(
        self,
        store: DefinitionStore,
        settings: Optional[ContainerSettings] = None,
        environment: Optional[Environment] = None,
        parent: Optional['ComponentFactory'] = None,
        type_matcher: Optional[TypeMatcher] = None
    ):
        self.store = store
        self.settings = settings or ContainerSettings()
        self.environment = environment or Environment(
            use_environment_variables=self.settings.use_environment_variables
        )
        self.parent = parent
        self.type_matcher = type_matcher or TypeMatcher()
        self.cache = InstanceCache()
        self.resolver = DependencyResolver(self)
        self._post_processors: List[InstancePostProcessor] = []
        self._scopes: Dict[str, Scope] = {}
        self._resolvable_values: Dict[Any, Any] = {}
        self._manual_singletons: List[str] = []
        self._predicted_types: Dict[str, Optional[Any]] = {}

        store.add_reset_listener(self._on_definition_reset)

    # -- configuration -----------------------------------------------------

    def add_post_processor(self, post_processor: InstancePostProcessor) -> None:
        """Append a post-processor; re-adding one moves it to the end."""
        if post_processor in self._post_processors:
            self._post_processors.remove(post_processor)
        self._post_processors.append(post_processor)

    @property
    def post_processors(self) -> List[InstancePostProcessor]:
        return list(self._post_processors)

    def register_scope(self, name: str, scope: Scope) -> None:
        """Make definitions with ``scope=name`` use the given Scope.

        Raises:
            ValueError: When name is one of the built-in scopes
        """
        if name in (SINGLETON, PROTOTYPE):
            raise ValueError(f"Cannot replace the built-in '{name}' scope")
        previous = self._scopes.get(name)
        if previous is not None and previous is not scope:
            logger.debug(f"Replacing scope '{name}' ({previous!r}) with {scope!r}")
        self._scopes[name] = scope

    def get_scope(self, name: str) -> Optional[Scope]:
        return self._scopes.get(name)

    @property
    def registered_scope_names(self) -> List[str]:
        return list(self._scopes)

    def register_resolvable_value(self, value_type: Any, value: Any) -> None:
        """Answer every by-type request for value_type with value."""
        self._resolvable_values[value_type] = value

    @property
    def resolvable_values(self) -> Dict[Any, Any]:
        return self._resolvable_values

    def register_singleton(self, name: str, instance: Any) -> None:
        """Register an externally built instance under name.

        The instance takes part in by-type resolution but is never
        initialized or destroyed by the container.

        Raises:
            DefinitionConflictError: When name already holds an instance
        """
        self.cache.register_singleton(name, instance)
        if name not in self._manual_singletons:
            self._manual_singletons.append(name)

    # -- lookup ------------------------------------------------------------

    def get_instance(self, key: Any, *args: Any, required_type: Optional[Type[T]] = None) -> Any:
        """Return the instance for a component name, alias or type.

        Args:
            key: Name or alias (str), or a type resolved by candidate search
            *args: Explicit constructor arguments overriding the definition's
            required_type: When given, the result must satisfy this type

        Raises:
            DefinitionNotFoundError: Unknown name
            NoMatchError / AmbiguousMatchError: Type lookup without a winner
            TypeMismatchError: Result incompatible with required_type
        """
        if isinstance(key, str):
            return self.get_by_name(key, args, required_type)
        instance = self.resolver.resolve(DependencyDescriptor(target_type=key), args)
        return self._check_type(type_name(key), instance, required_type)

    def get_by_name(
        self,
        name: str,
        args: Sequence[Any] = (),
        required_type: Optional[Any] = None
    ) -> Any:
        canonical = self.store.canonical_name(name)

        if not args:
            instance = self.cache.get_singleton(canonical)
            if instance is not None:
                return self._check_type(canonical, instance, required_type)

        if not self.store.contains(canonical):
            if self.parent is not None and self.parent.contains(canonical):
                return self.parent.get_by_name(canonical, args, required_type)
            if self.cache.contains(canonical):
                return self._check_type(canonical, self.cache.get_singleton(canonical), required_type)
            raise self._not_found(name)

        merged = self.store.get_merged(canonical)
        if merged.abstract:
            raise InvalidDefinitionError(
                f"Component definition '{canonical}' is abstract and cannot be instantiated"
            )

        self._initialize_depends_on(canonical, merged)

        if merged.is_singleton:
            instance = self.cache.create_singleton(
                canonical, lambda: self._create_singleton(canonical, merged, args)
            )
        elif merged.is_prototype:
            with creating_prototype(canonical):
                instance = self._create(canonical, merged, args)
        else:
            scope = self._scopes.get(merged.scope)
            if scope is None:
                raise InvalidDefinitionError(
                    f"No scope registered for scope name '{merged.scope}' "
                    f"used by component '{canonical}'"
                )

            def object_factory() -> Any:
                with creating_prototype(canonical):
                    return self._create(canonical, merged, args)

            instance = scope.get(canonical, object_factory)

        return self._check_type(canonical, instance, required_type)

    def _check_type(self, name: str, instance: Any, required_type: Optional[Any]) -> Any:
        if required_type is not None and not self.type_matcher.is_instance(instance, required_type):
            raise TypeMismatchError(
                f"Component '{name}' is expected to be of type {type_name(required_type)} "
                f"but was actually of type {type(instance).__name__}"
            )
        return instance

    def _not_found(self, name: str) -> DefinitionNotFoundError:
        registered = ", ".join(list(self.store.names) + self._manual_singletons) or "None"
        return DefinitionNotFoundError(
            f"No component named '{name}' is defined.\n"
            f"Registered names: {registered}"
        )

    def contains(self, name: str) -> bool:
        """Whether name is defined or registered here or in an ancestor."""
        canonical = self.store.canonical_name(name)
        if self.is_local(canonical):
            return True
        return self.parent is not None and self.parent.contains(canonical)

    def is_local(self, name: str) -> bool:
        canonical = self.store.canonical_name(name)
        return self.store.contains(canonical) or canonical in self._manual_singletons

    def canonical_name(self, name: str) -> str:
        return self.store.canonical_name(name)

    def matches_name(self, name: str, candidate_name: str) -> bool:
        """Whether candidate_name is name or one of its aliases."""
        return candidate_name == name or candidate_name in self.store.get_aliases(name)

    def find_merged_definition(self, name: str) -> Optional[MergedDefinition]:
        """Merged definition for name, looking through ancestors; None if undefined."""
        canonical = self.store.canonical_name(name)
        if self.store.contains(canonical):
            return self.store.get_merged(canonical)
        if self.parent is not None:
            return self.parent.find_merged_definition(canonical)
        return None

    def is_primary(self, name: str) -> bool:
        merged = self.find_merged_definition(name)
        return merged is not None and merged.primary

    def get_priority(self, name: str) -> Optional[int]:
        merged = self.find_merged_definition(name)
        return merged.priority if merged is not None else None

    def is_autowire_candidate(self, name: str) -> bool:
        canonical = self.store.canonical_name(name)
        if self.store.contains(canonical):
            merged = self.store.get_merged(canonical)
            return merged.autowire_candidate and not merged.abstract
        if canonical in self._manual_singletons:
            return True
        return self.parent is not None and self.parent.is_autowire_candidate(canonical)

    def register_dependent(self, name: str, dependent: str) -> None:
        self.cache.register_dependent(self.store.canonical_name(name), dependent)

    # -- type matching -----------------------------------------------------

    def predict_type(self, name: str) -> Optional[Any]:
        """Best-known type of what name produces, without instantiating it.

        A completed singleton answers with its actual type. Otherwise the
        definition's component type is used, or the return annotation of
        its factory method.
        """
        canonical = self.store.canonical_name(name)
        instance = self.cache.get_singleton(canonical, allow_early=False)
        if instance is not None:
            return type(instance)
        if canonical in self._predicted_types:
            return self._predicted_types[canonical]

        merged = self.find_merged_definition(canonical)
        predicted = self._predict_from_definition(merged) if merged is not None else None
        self._predicted_types[canonical] = predicted
        return predicted

    def _predict_from_definition(self, merged: MergedDefinition) -> Optional[Any]:
        if merged.abstract:
            return None
        factory_method = merged.factory_method
        if factory_method is None:
            return merged.component_type
        if merged.factory_component is not None:
            if merged.component_type is not None:
                return merged.component_type
            owner_type = self.predict_type(merged.factory_component)
            method = getattr(owner_type, factory_method, None) if owner_type is not None else None
            return get_return_type(method) if method is not None else None
        if isinstance(factory_method, str):
            method = getattr(merged.component_type, factory_method, None)
            returned = get_return_type(method) if method is not None else None
            return returned or merged.component_type
        return merged.component_type or get_return_type(factory_method)

    def candidate_value(self, name: str) -> Any:
        """The completed instance for name if one exists, else its predicted type."""
        canonical = self.store.canonical_name(name)
        instance = self.cache.get_singleton(canonical, allow_early=False)
        if instance is not None:
            return instance
        if not self.is_local(canonical) and self.parent is not None:
            return self.parent.candidate_value(canonical)
        return self.predict_type(canonical)

    def _matches_type(self, name: str, target_type: Any) -> bool:
        instance = self.cache.get_singleton(name, allow_early=False)
        if instance is not None:
            return self.type_matcher.is_instance(instance, target_type)
        predicted = self.predict_type(name)
        if predicted is None:
            return False
        return self.type_matcher.is_assignable(predicted, target_type)

    def names_for_type(self, target_type: Any, include_ancestors: bool = False) -> List[str]:
        """Names whose component satisfies target_type, in declaration order.

        Abstract definitions never match. Manually registered singletons
        follow the defined components. With include_ancestors, names from
        parent factories that are not shadowed locally come last.
        """
        result = []
        for name in self.store.names:
            merged = self.store.get_merged(name)
            if not merged.abstract and self._matches_type(name, target_type):
                result.append(name)
        for name in self._manual_singletons:
            if name not in result and not self.store.contains(name):
                instance = self.cache.get_singleton(name, allow_early=False)
                if instance is not None and self.type_matcher.is_instance(instance, target_type):
                    result.append(name)
        if include_ancestors and self.parent is not None:
            for name in self.parent.names_for_type(target_type, include_ancestors=True):
                if name not in result and not self.is_local(name):
                    result.append(name)
        return result

    def get_instances_of_type(self, target_type: Type[T]) -> Dict[str, T]:
        """Every local component matching target_type, keyed by name."""
        return {
            name: self.get_by_name(name)
            for name in self.names_for_type(target_type)
        }

    # -- creation ----------------------------------------------------------

    def _initialize_depends_on(self, name: str, merged: MergedDefinition) -> None:
        for dependency in merged.depends_on:
            dependency = self.store.canonical_name(dependency)
            if self.cache.is_dependent(name, dependency):
                raise CircularReferenceError(
                    f"Circular depends-on relationship between '{name}' and '{dependency}'"
                )
            self.cache.register_dependent(dependency, name)
            try:
                self.get_by_name(dependency)
            except DefinitionNotFoundError as e:
                raise ComponentCreationError(
                    name, f"'{name}' depends on missing component '{dependency}'"
                ) from e

    def _create_singleton(self, name: str, merged: MergedDefinition, args: Sequence[Any]) -> Any:
        with creating(name):
            return self._create(name, merged, args)

    def _create(self, name: str, merged: MergedDefinition, args: Sequence[Any]) -> Any:
        """Instantiate, populate and initialize one component.

        Raises:
            ComponentCreationError: Wrapping any non-container exception
            CircularReferenceError: When a raw early reference was injected
                but the component ended up wrapped
        """
        logger.debug(f"Creating instance of component '{name}'")
        try:
            instance = self._instantiate(name, merged, args)
        except WireBoxError:
            raise
        except Exception as e:
            raise ComponentCreationError(name, f"Instantiation failed: {e}") from e

        if instance is None:
            raise ComponentCreationError(name, "Constructor or factory method returned None")

        early_exposure = (
            merged.is_singleton
            and self.settings.allow_circular_references
            and self.cache.is_in_creation(name)
        )
        if early_exposure:
            logger.debug(f"Eagerly caching component '{name}' to allow for resolving circular references")
            self.cache.add_early_factory(name, lambda: self._early_reference(name, instance))

        try:
            self._populate(name, merged, instance)
            exposed = self._initialize(name, merged, instance)
        except WireBoxError:
            raise
        except Exception as e:
            raise ComponentCreationError(name, f"Initialization failed: {e}") from e

        self._register_disposable(name, merged, instance)

        if early_exposure:
            early = self.cache.early_reference(name)
            if early is not None:
                if exposed is instance:
                    exposed = early
                elif (not self.settings.allow_raw_injection_despite_wrapping
                      and self.cache.dependents_of(name)):
                    holders = ", ".join(sorted(self.cache.dependents_of(name)))
                    raise CircularReferenceError(
                        f"Component '{name}' has been injected into other components "
                        f"[{holders}] in its raw version as part of a circular reference, "
                        f"but has eventually been wrapped. This means that said other "
                        f"components do not use the final version of the component."
                    )

        return exposed

    def _instantiate(self, name: str, merged: MergedDefinition, args: Sequence[Any]) -> Any:
        factory_method = merged.factory_method
        if factory_method is None:
            return self._invoke(name, merged.component_type, merged, args)

        if merged.factory_component is not None:
            owner_name = self.store.canonical_name(merged.factory_component)
            if owner_name == name:
                raise InvalidDefinitionError(
                    f"Factory component reference '{owner_name}' points back to the same definition"
                )
            owner = self.get_by_name(owner_name)
            self.cache.register_dependent(owner_name, name)
            target = getattr(owner, factory_method, None)
            if target is None:
                raise InvalidDefinitionError(
                    f"Factory component '{owner_name}' has no method '{factory_method}'"
                )
        elif isinstance(factory_method, str):
            target = getattr(merged.component_type, factory_method, None)
            if target is None:
                raise InvalidDefinitionError(
                    f"{type_name(merged.component_type)} has no factory method '{factory_method}'"
                )
        else:
            target = factory_method
        return self._invoke(name, target, merged, args)

    def _invoke(
        self,
        name: str,
        target: Callable[..., Any],
        merged: MergedDefinition,
        args: Sequence[Any]
    ) -> Any:
        """Call a constructor or factory with explicit and autowired arguments.

        Explicit arguments fill parameters first. Every remaining parameter
        is autowired from its type annotation; one without annotation must
        have a default.
        """
        specs = get_parameter_specs(target)
        if args:
            positional = list(args)
            keywords: Dict[str, Any] = {}
        else:
            positional = [
                self._resolve_value(name, value, annotation=self._annotation_at(specs, index))
                for index, value in enumerate(merged.constructor_args)
            ]
            keywords = {
                key: self._resolve_value(name, value, annotation=self._annotation_of(specs, key))
                for key, value in merged.constructor_kwargs.items()
            }

        for spec in specs[len(positional):]:
            if spec.name in keywords:
                continue
            if not spec.has_annotation:
                if spec.has_default:
                    continue
                raise TypeInferenceError(
                    f"Cannot autowire parameter '{spec.name}' of component '{name}': "
                    f"missing type hint.\n"
                    f"Hint: annotate it, e.g. '{spec.name}: SomeType', or pass it explicitly"
                )
            descriptor = DependencyDescriptor.for_annotation(
                spec.annotation,
                dependency_name=spec.name,
                declaring_component=name,
                required=not spec.has_default,
            )
            value = self.resolver.resolve(descriptor)
            if value is None and spec.has_default:
                continue
            keywords[spec.name] = value

        return target(*positional, **keywords)

    @staticmethod
    def _annotation_at(specs: list, index: int) -> Any:
        if index < len(specs) and specs[index].has_annotation:
            return specs[index].annotation
        return None

    @staticmethod
    def _annotation_of(specs: list, key: str) -> Any:
        for spec in specs:
            if spec.name == key and spec.has_annotation:
                return spec.annotation
        return None

    def _resolve_value(
        self,
        requester: str,
        value: Any,
        annotation: Any = None,
        dependency_name: Optional[str] = None
    ) -> Any:
        """Turn a definition value into the object to inject.

        Ref, Autowired and Value markers are resolved; lists, tuples and
        dicts are resolved element by element; anything else is a literal.
        """
        if isinstance(value, Ref):
            canonical = self.store.canonical_name(value.name)
            if not value.required and not self.contains(canonical):
                return None
            instance = self.get_by_name(canonical)
            self.register_dependent(canonical, requester)
            return instance
        if isinstance(value, Autowired):
            target = value.target_type if value.target_type is not None else annotation
            if target is None:
                raise TypeInferenceError(
                    f"Cannot autowire '{dependency_name or '?'}' of component '{requester}': "
                    f"no target type given and no annotation to infer it from"
                )
            descriptor = DependencyDescriptor.for_annotation(
                target,
                dependency_name=dependency_name,
                declaring_component=requester,
                required=value.required,
            )
            return self.resolver.resolve(descriptor)
        if isinstance(value, DependencyDescriptor):
            return self.resolver.resolve(value)
        if isinstance(value, Value):
            if value.has_default:
                return self.environment.get_property(value.key, value.default)
            return self.environment.get_required_property(value.key)
        if isinstance(value, list):
            return [self._resolve_value(requester, item) for item in value]
        if isinstance(value, tuple):
            return tuple(self._resolve_value(requester, item) for item in value)
        if isinstance(value, dict):
            return {key: self._resolve_value(requester, item) for key, item in value.items()}
        return value

    def _populate(self, name: str, merged: MergedDefinition, instance: Any) -> None:
        owner_type = merged.component_type or type(instance)
        for attribute, value in merged.properties.items():
            annotation = None
            if isinstance(value, Autowired) and value.target_type is None:
                annotation = get_attribute_type(owner_type, attribute)
            resolved = self._resolve_value(name, value, annotation=annotation, dependency_name=attribute)
            setattr(instance, attribute, resolved)

    def _initialize(self, name: str, merged: MergedDefinition, instance: Any) -> Any:
        if isinstance(instance, NameAware):
            instance.set_component_name(name)

        wrapped = instance
        for post_processor in self._post_processors:
            result = post_processor.before_init(wrapped, name)
            if result is not None:
                wrapped = result

        if isinstance(wrapped, InitializingComponent):
            logger.debug(f"Invoking after_properties_set() on component '{name}'")
            wrapped.after_properties_set()
        init_method = merged.init_method
        if init_method and not (isinstance(wrapped, InitializingComponent)
                                and init_method == 'after_properties_set'):
            method = getattr(wrapped, init_method, None)
            if method is None:
                raise InvalidDefinitionError(
                    f"Could not find an init method named '{init_method}' on component '{name}'"
                )
            logger.debug(f"Invoking init method '{init_method}' on component '{name}'")
            method()

        for post_processor in self._post_processors:
            result = post_processor.after_init(wrapped, name)
            if result is not None:
                wrapped = result
        return wrapped

    def _early_reference(self, name: str, instance: Any) -> Any:
        exposed = instance
        for post_processor in self._post_processors:
            exposed = post_processor.get_early_reference(exposed, name)
        return exposed

    # -- destruction -------------------------------------------------------

    def _requires_destruction(self, merged: MergedDefinition, instance: Any) -> bool:
        if isinstance(instance, DisposableComponent) or merged.destroy_method:
            return True
        return any(
            type(pp).before_destruction is not InstancePostProcessor.before_destruction
            for pp in self._post_processors
        )

    def _register_disposable(self, name: str, merged: MergedDefinition, instance: Any) -> None:
        if merged.is_prototype or not self._requires_destruction(merged, instance):
            return

        def callback() -> None:
            self._destroy_instance(name, merged, instance)

        if merged.is_singleton:
            self.cache.register_disposable(name, callback)
        else:
            scope = self._scopes.get(merged.scope)
            if scope is not None:
                scope.register_destruction_callback(name, callback)

    def _destroy_instance(self, name: str, merged: MergedDefinition, instance: Any) -> None:
        for post_processor in self._post_processors:
            post_processor.before_destruction(instance, name)
        if isinstance(instance, DisposableComponent):
            logger.debug(f"Invoking destroy() on component '{name}'")
            instance.destroy()
        destroy_method = merged.destroy_method
        if destroy_method and not (isinstance(instance, DisposableComponent)
                                   and destroy_method == 'destroy'):
            method = getattr(instance, destroy_method, None)
            if method is None:
                logger.warning(
                    f"Could not find a destroy method named '{destroy_method}' on component '{name}'"
                )
                return
            logger.debug(f"Invoking destroy method '{destroy_method}' on component '{name}'")
            method()

    def destroy_singleton(self, name: str) -> None:
        canonical = self.store.canonical_name(name)
        self.cache.destroy_singleton(canonical)
        if canonical in self._manual_singletons:
            self._manual_singletons.remove(canonical)

    def destroy_singletons(self) -> None:
        """Destroy every singleton and forget manually registered ones."""
        self.cache.destroy_singletons()
        self._manual_singletons.clear()
        self._predicted_types.clear()

    def _on_definition_reset(self, name: str) -> None:
        self._predicted_types.clear()
        if self.cache.contains(name):
            logger.debug(f"Destroying singleton '{name}' after its definition changed")
            self.cache.destroy_singleton(name)

    # -- bulk instantiation ------------------------------------------------

    def pre_instantiate_singletons(self) -> None:
        """Create every non-lazy, non-abstract singleton in declaration order,
        then notify SingletonsReadyCallback implementations."""
        names = self.store.names
        for name in names:
            merged = self.store.get_merged(name)
            if not merged.abstract and merged.is_singleton and not merged.lazy:
                self.get_by_name(name)

        for name in names:
            instance = self.cache.get_singleton(name, allow_early=False)
            if isinstance(instance, SingletonsReadyCallback):
                instance.on_singletons_ready()

    def __repr__(self) -> str:
        return (
            f"ComponentFactory(definitions={list(self.store.names)}, "
            f"singletons={self.cache.names})"
        )
