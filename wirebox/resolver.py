"""
DependencyResolver

Type-directed candidate search and deterministic tie-breaking.

Given a DependencyDescriptor, the resolver:

1. Consults the resolvable-value table (framework objects such as the
   container itself); a match is consumed and nothing else is considered
2. Enumerates every definition or registered singleton whose type satisfies
   the target type, including those of parent containers
3. Excludes self-references, keeping them only as a last resort; a
   multi-element request never receives the requester itself
4. Drops candidates that are not autowire candidates
5. For multi-element shapes, returns every remaining candidate, ordered
6. For scalars, picks exactly one: primary flag, then lowest priority,
   then a name or alias match with the injection point

Obtaining a singleton candidate goes through the factory's InstanceCache,
which is where cycles are broken or rejected.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from .descriptor import DependencyDescriptor, Shape
from .exceptions import (
    AmbiguousMatchError,
    AmbiguousPrimaryError,
    AmbiguousPriorityError,
    NoMatchError,
    TypeMismatchError,
)
from .lifecycle import get_order
from .provider import ComponentProvider
from .type_introspection import type_name

if TYPE_CHECKING:
    from .factory import ComponentFactory

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Resolves DependencyDescriptors against a ComponentFactory.

    Note:
        This class is typically not used directly. Each ComponentFactory
        owns one and uses it for constructor, factory and property
        autowiring and for lookups by type.
    """

    def __init__(self, factory: 'ComponentFactory'):
        self._factory = factory

    def resolve(self, descriptor: DependencyDescriptor, args: Sequence[Any] = ()) -> Any:
        """Resolve a descriptor to a value of the requested shape.

        Args:
            descriptor: What to resolve
            args: Explicit constructor arguments, used only when a scalar
                request ends up creating a new instance

        Returns:
            An instance, None (optional scalar with no match), a tuple,
            list or dict of instances, or a ComponentProvider

        Raises:
            NoMatchError: Required scalar with no candidate
            AmbiguousMatchError: Scalar with several candidates and no winner
            TypeMismatchError: Produced value incompatible with the request
        """
        if descriptor.shape is Shape.SCALAR:
            return self._resolve_scalar(descriptor, args)
        if descriptor.shape is Shape.LAZY_STREAM:
            return ComponentProvider(self, descriptor)

        matches = self.resolve_all(descriptor)
        if descriptor.shape is Shape.ARRAY:
            return tuple(matches.values())
        if descriptor.shape is Shape.ORDERED_COLLECTION:
            return list(matches.values())
        return matches

    def resolve_all(self, descriptor: DependencyDescriptor) -> Dict[str, Any]:
        """Every eligible candidate, instantiated and ordered.

        Candidates with an explicit order come first, ascending; the rest
        keep declaration order. No match yields an empty dict.
        """
        shortcut = self._resolvable_value(descriptor)
        if shortcut is not None:
            registered_type, value = shortcut
            return {f"({type_name(registered_type)})": value}

        candidates = self.find_candidates(descriptor)
        instances: List[Tuple[str, Any]] = []
        for name in candidates:
            instances.append((name, self._obtain(name, descriptor)))

        def sort_key(item: Tuple[int, Tuple[str, Any]]) -> Tuple[int, int, int]:
            index, (name, instance) = item
            order = self._order_of(name, instance)
            if order is None:
                return (1, 0, index)
            return (0, order, index)

        ordered = sorted(enumerate(instances), key=sort_key)
        return {name: instance for _, (name, instance) in ordered}

    def _order_of(self, name: str, instance: Any) -> Optional[int]:
        order = get_order(instance)
        if order is not None:
            return order
        merged = self._factory.find_merged_definition(name)
        if merged is None:
            return None
        return merged.order if merged.order is not None else merged.priority

    # -- scalar resolution -------------------------------------------------

    def _resolve_scalar(self, descriptor: DependencyDescriptor, args: Sequence[Any]) -> Any:
        shortcut = self._resolvable_value(descriptor)
        if shortcut is not None:
            return shortcut[1]

        candidates = self.find_candidates(descriptor)
        if not candidates:
            if descriptor.required:
                raise NoMatchError(self._no_match_message(descriptor))
            return None

        if len(candidates) == 1:
            name = next(iter(candidates))
        else:
            name = self.determine_candidate(candidates, descriptor)
            if name is None:
                if descriptor.required:
                    raise AmbiguousMatchError(
                        f"No unique component of type {type_name(descriptor.target_type)} "
                        f"available{self._site(descriptor)}: expected single matching "
                        f"component but found {len(candidates)}: {', '.join(candidates)}"
                    )
                return None

        return self._obtain(name, descriptor, args)

    def determine_candidate(
        self,
        candidates: Dict[str, Any],
        descriptor: DependencyDescriptor
    ) -> Optional[str]:
        """Pick one of several candidates, or None if none wins.

        Raises:
            AmbiguousPrimaryError: More than one local primary candidate
            AmbiguousPriorityError: Several candidates share the lowest priority
        """
        primary = self._determine_primary(candidates, descriptor)
        if primary is not None:
            return primary
        highest = self._determine_highest_priority(candidates, descriptor)
        if highest is not None:
            return highest
        if descriptor.dependency_name is not None:
            for name in candidates:
                if self._factory.matches_name(name, descriptor.dependency_name):
                    return name
        return None

    def _determine_primary(
        self,
        candidates: Dict[str, Any],
        descriptor: DependencyDescriptor
    ) -> Optional[str]:
        primary_name = None
        for name in candidates:
            if not self._factory.is_primary(name):
                continue
            if primary_name is None:
                primary_name = name
                continue
            candidate_local = self._factory.is_local(name)
            primary_local = self._factory.is_local(primary_name)
            if candidate_local and primary_local:
                raise AmbiguousPrimaryError(
                    f"More than one 'primary' component of type "
                    f"{type_name(descriptor.target_type)} found among candidates: "
                    f"{', '.join(candidates)}"
                )
            if candidate_local:
                primary_name = name
        return primary_name

    def _determine_highest_priority(
        self,
        candidates: Dict[str, Any],
        descriptor: DependencyDescriptor
    ) -> Optional[str]:
        prioritized = [
            (self._factory.get_priority(name), name) for name in candidates
        ]
        prioritized = [(priority, name) for priority, name in prioritized if priority is not None]
        if not prioritized:
            return None
        lowest = min(priority for priority, _ in prioritized)
        winners = [name for priority, name in prioritized if priority == lowest]
        if len(winners) > 1:
            raise AmbiguousPriorityError(
                f"Multiple components of type {type_name(descriptor.target_type)} found "
                f"with the same priority ({lowest}) among candidates: {', '.join(winners)}"
            )
        return winners[0]

    # -- candidates --------------------------------------------------------

    def find_candidates(self, descriptor: DependencyDescriptor) -> Dict[str, Any]:
        """Eligible candidate names mapped to their instance or predicted type.

        Self-references are kept only when nothing else qualifies. Multi-element
        requests never receive the requester itself, only components built by
        its factory methods.
        """
        factory = self._factory
        requester = descriptor.declaring_component
        names = factory.names_for_type(descriptor.target_type, include_ancestors=True)

        result: Dict[str, Any] = {}
        for name in names:
            if not self._is_self_reference(requester, name) and factory.is_autowire_candidate(name):
                result[name] = factory.candidate_value(name)

        if not result:
            for name in names:
                if descriptor.is_multiple and name == requester:
                    continue
                if self._is_self_reference(requester, name) and factory.is_autowire_candidate(name):
                    logger.debug(f"Falling back to self-reference '{name}' for {descriptor.describe()}")
                    result[name] = factory.candidate_value(name)
        return result

    def _is_self_reference(self, requester: Optional[str], candidate: str) -> bool:
        if requester is None:
            return False
        if candidate == requester:
            return True
        merged = self._factory.find_merged_definition(candidate)
        return (merged is not None
                and merged.factory_component is not None
                and self._factory.canonical_name(merged.factory_component) == requester)

    def _resolvable_value(self, descriptor: DependencyDescriptor) -> Optional[Tuple[Any, Any]]:
        matcher = self._factory.type_matcher
        target = descriptor.target_type
        if not isinstance(target, type) or target is object:
            return None
        for registered_type, value in self._factory.resolvable_values.items():
            if matcher.is_assignable(target, registered_type) and matcher.is_instance(value, target):
                return registered_type, value
        return None

    def _obtain(
        self,
        name: str,
        descriptor: DependencyDescriptor,
        args: Sequence[Any] = ()
    ) -> Any:
        instance = self._factory.get_by_name(name, args)
        if descriptor.declaring_component is not None:
            self._factory.register_dependent(name, descriptor.declaring_component)
        if not self._factory.type_matcher.is_instance(instance, descriptor.target_type):
            raise TypeMismatchError(
                f"Component '{name}' is expected to be of type "
                f"{type_name(descriptor.target_type)} but was actually of type "
                f"{type(instance).__name__}{self._site(descriptor)}"
            )
        return instance

    @staticmethod
    def _site(descriptor: DependencyDescriptor) -> str:
        if descriptor.declaring_component is None:
            return ""
        if descriptor.dependency_name is None:
            return f" for '{descriptor.declaring_component}'"
        return f" for '{descriptor.dependency_name}' of '{descriptor.declaring_component}'"

    def _no_match_message(self, descriptor: DependencyDescriptor) -> str:
        return (
            f"No qualifying component of type {type_name(descriptor.target_type)} "
            f"available{self._site(descriptor)}: expected at least 1 component "
            f"which qualifies as autowire candidate.\n"
            f"Hint: module.single[{type_name(descriptor.target_type)}]()"
        )
