"""
DefinitionStore

Registry of named component definitions.

The store owns:
- Registration with a configurable override policy
- Aliases resolving to canonical names
- Lazily computed, cached merged definitions (parent chain folded in)
- Cascading invalidation of merged definitions when a definition changes
- A frozen name snapshot for fast iteration during eager instantiation
"""

import logging
import threading
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from .definition import ComponentDefinition, MergedDefinition, merge_definitions
from .exceptions import (
    DefinitionConflictError,
    DefinitionNotFoundError,
    InvalidDefinitionError,
)

logger = logging.getLogger(__name__)


class DefinitionStore:
    """Named component definitions with parent-chain merging.

    A name maps to at most one definition at a time. Merged definitions are
    computed on first use and cached until the definition, or any definition
    in its parent chain, is replaced or removed.

    Attributes:
        parent: Store of the parent container, consulted for parent
            definitions that are not registered locally

    Example::

        store = DefinitionStore()
        store.register("base_repo", ComponentDefinition(
            abstract=True, properties={"timeout": 5}))
        store.register("user_repo", ComponentDefinition(
            component_type=UserRepository, parent_name="base_repo"))

        merged = store.get_merged("user_repo")
        merged.properties["timeout"]   # 5, inherited
    """

    def __init__(
        self,
        allow_overriding: bool = True,
        parent: Optional['DefinitionStore'] = None
    ):
        """Initialize an empty store.

        Args:
            allow_overriding: Whether registering an existing name replaces
                the old definition instead of raising DefinitionConflictError
            parent: Store of the parent container, if any
        """
        self.allow_overriding = allow_overriding
        self.parent = parent
        self._definitions: Dict[str, ComponentDefinition] = {}
        self._names: List[str] = []
        self._merged: Dict[str, MergedDefinition] = {}
        self._aliases: Dict[str, str] = {}
        self._frozen = False
        self._frozen_names: Optional[Tuple[str, ...]] = None
        self._reset_listeners: List[Callable[[str], None]] = []
        self._lock = threading.RLock()

        if parent is not None:
            parent.add_reset_listener(self._on_parent_reset)

    # -- registration ------------------------------------------------------

    def register(self, name: str, definition: ComponentDefinition) -> None:
        """Register a definition under a name.

        The store keeps its own copy, so later changes to the passed object
        have no effect until it is registered again.

        Args:
            name: Component name
            definition: The definition to register

        Raises:
            InvalidDefinitionError: When the name or definition is invalid
            DefinitionConflictError: When the name is taken and overriding
                is disabled
        """
        if not isinstance(name, str) or not name:
            raise InvalidDefinitionError(f"Component name must be a non-empty string, got {name!r}")
        try:
            definition.validate()
        except InvalidDefinitionError as e:
            raise InvalidDefinitionError(f"Invalid definition '{name}': {e}") from e

        definition = definition.copy()
        with self._lock:
            if name in self._aliases:
                if not self.allow_overriding:
                    raise DefinitionConflictError(
                        f"Cannot register definition '{name}': the name is already "
                        f"used as an alias for '{self._aliases[name]}'"
                    )
                logger.debug(f"Definition '{name}' replaces an alias of the same name")
                del self._aliases[name]

            existing = self._definitions.get(name)
            if existing is not None:
                if not self.allow_overriding:
                    raise DefinitionConflictError(
                        f"Cannot register definition '{name}': there is already "
                        f"{existing!r} bound and overriding is disabled"
                    )
                self._log_override(name, existing, definition)
                self._definitions[name] = definition
                self._reset(name)
            else:
                self._definitions[name] = definition
                self._names.append(name)
                self._merged.pop(name, None)

            self._frozen_names = None

    @staticmethod
    def _log_override(
        name: str,
        existing: ComponentDefinition,
        replacement: ComponentDefinition
    ) -> None:
        existing_role = existing.role or 0
        replacement_role = replacement.role or 0
        if existing_role < replacement_role:
            logger.warning(
                f"Overriding user-defined definition for '{name}' with a "
                f"framework-generated definition: replacing [{existing}] with [{replacement}]"
            )
        elif existing != replacement:
            logger.info(
                f"Overriding definition for '{name}' with a different definition: "
                f"replacing [{existing}] with [{replacement}]"
            )
        else:
            logger.debug(f"Overriding definition for '{name}' with an equivalent definition")

    def remove(self, name: str) -> None:
        """Remove a definition and invalidate everything merged from it.

        Raises:
            DefinitionNotFoundError: When no definition has that name
        """
        with self._lock:
            name = self.canonical_name(name)
            if name not in self._definitions:
                raise self._not_found(name)
            del self._definitions[name]
            self._names.remove(name)
            self._frozen_names = None
            self._reset(name)

    def get(self, name: str) -> ComponentDefinition:
        """Return a copy of the raw (unmerged) definition for a name or alias.

        Raises:
            DefinitionNotFoundError: When no definition has that name
        """
        canonical = self.canonical_name(name)
        definition = self._definitions.get(canonical)
        if definition is None:
            raise self._not_found(name)
        return definition.copy()

    def contains(self, name: str) -> bool:
        return self.canonical_name(name) in self._definitions

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)

    def __len__(self) -> int:
        return len(self._definitions)

    def _not_found(self, name: str) -> DefinitionNotFoundError:
        registered = ", ".join(self._names) or "None"
        return DefinitionNotFoundError(
            f"No definition named '{name}' is registered.\n"
            f"Registered names: {registered}"
        )

    # -- aliases -----------------------------------------------------------

    def register_alias(self, name: str, alias: str) -> None:
        """Make alias resolve to name.

        Raises:
            DefinitionConflictError: When the alias is a definition name and
                overriding is disabled, when the alias is already bound to a
                different name and overriding is disabled, or when the alias
                would create a cycle
        """
        with self._lock:
            if alias == name:
                self._aliases.pop(alias, None)
                return
            if alias in self._definitions and not self.allow_overriding:
                raise DefinitionConflictError(
                    f"Cannot register alias '{alias}' for '{name}': "
                    f"a definition with that name exists"
                )
            registered = self._aliases.get(alias)
            if registered is not None and registered != name and not self.allow_overriding:
                raise DefinitionConflictError(
                    f"Cannot register alias '{alias}' for '{name}': "
                    f"it is already registered for '{registered}'"
                )
            if self._resolves_to(name, alias):
                raise DefinitionConflictError(
                    f"Cannot register alias '{alias}' for '{name}': "
                    f"circular reference - '{name}' is a direct or indirect alias "
                    f"for '{alias}' already"
                )
            self._aliases[alias] = name

    def _resolves_to(self, name: str, target: str) -> bool:
        seen: Set[str] = set()
        current = name
        while current in self._aliases and current not in seen:
            seen.add(current)
            current = self._aliases[current]
            if current == target:
                return True
        return False

    def canonical_name(self, name: str) -> str:
        """Follow the alias chain from name to a definition name."""
        seen: Set[str] = set()
        while name in self._aliases and name not in seen:
            seen.add(name)
            name = self._aliases[name]
        return name

    def get_aliases(self, name: str) -> List[str]:
        """All aliases that resolve to name, directly or through other aliases."""
        return [
            alias for alias in self._aliases
            if alias != name and self.canonical_name(alias) == name
        ]

    # -- merging -----------------------------------------------------------

    def get_merged(self, name: str) -> MergedDefinition:
        """Return the merged definition for a name or alias.

        The parent chain is folded in with child fields overriding parent
        fields. A parent name equal to the child's own name refers to the
        parent container's definition.

        Raises:
            DefinitionNotFoundError: When the name or a parent is missing
            DefinitionConflictError: When parent references form a cycle
            InvalidDefinitionError: When the merged result is not buildable
        """
        name = self.canonical_name(name)
        merged = self._merged.get(name)
        if merged is not None:
            return merged
        with self._lock:
            return self._merge(name, [])

    def _merge(self, name: str, chain: List[str]) -> MergedDefinition:
        merged = self._merged.get(name)
        if merged is not None:
            return merged
        if name in chain:
            cycle = " -> ".join(chain + [name])
            raise DefinitionConflictError(f"Circular parent reference between definitions: {cycle}")

        definition = self._definitions.get(name)
        if definition is None:
            if not chain and self.parent is not None and self.parent.contains(name):
                return self.parent.get_merged(name)
            raise self._not_found(name)

        parent = None
        if definition.parent_name is not None:
            parent_name = self.canonical_name(definition.parent_name)
            if parent_name != name and parent_name in self._definitions:
                parent = self._merge(parent_name, chain + [name])
            elif self.parent is not None and self.parent.contains(parent_name):
                parent = self.parent.get_merged(parent_name)
            else:
                raise DefinitionNotFoundError(
                    f"Parent definition '{definition.parent_name}' of '{name}' is not registered"
                )

        merged = merge_definitions(name, definition, parent)
        self._merged[name] = merged
        return merged

    def is_merged_cached(self, name: str) -> bool:
        return self.canonical_name(name) in self._merged

    def clear_metadata_cache(self) -> None:
        """Drop every cached merged definition."""
        with self._lock:
            self._merged.clear()

    def add_reset_listener(self, listener: Callable[[str], None]) -> None:
        """Call listener(name) whenever a definition is replaced or removed.

        Listeners are also called for every definition whose merged form
        depended on the changed one.
        """
        with self._lock:
            self._reset_listeners.append(listener)

    def remove_reset_listener(self, listener: Callable[[str], None]) -> None:
        """Stop calling listener. Unknown listeners are ignored."""
        with self._lock:
            if listener in self._reset_listeners:
                self._reset_listeners.remove(listener)

    @property
    def reset_listener_count(self) -> int:
        return len(self._reset_listeners)

    def detach(self) -> None:
        """Stop following the parent store, if any.

        Called when the owning container replaces or closes this store.
        """
        if self.parent is not None:
            self.parent.remove_reset_listener(self._on_parent_reset)

    def _reset(self, name: str, seen: Optional[Set[str]] = None) -> None:
        seen = seen if seen is not None else set()
        if name in seen:
            return
        seen.add(name)
        self._merged.pop(name, None)
        for listener in list(self._reset_listeners):
            listener(name)
        for other, definition in list(self._definitions.items()):
            if (definition.parent_name is not None
                    and other != name
                    and self.canonical_name(definition.parent_name) == name):
                self._reset(other, seen)

    def _on_parent_reset(self, name: str) -> None:
        with self._lock:
            self._merged.clear()

    # -- enumeration -------------------------------------------------------

    def freeze(self) -> None:
        """Snapshot the name enumeration for fast iteration.

        Registration stays possible afterwards; it invalidates the snapshot,
        which is rebuilt on the next enumeration.
        """
        with self._lock:
            self._frozen = True
            self._frozen_names = tuple(self._names)
        logger.debug(f"Definition store frozen with {len(self._names)} definitions")

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def names(self) -> Tuple[str, ...]:
        """Definition names in registration order."""
        if self._frozen:
            snapshot = self._frozen_names
            if snapshot is None:
                with self._lock:
                    snapshot = self._frozen_names = tuple(self._names)
            return snapshot
        with self._lock:
            return tuple(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)
