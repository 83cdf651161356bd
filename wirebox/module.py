"""
WireBoxModule

This module provides the programmatic definition source. A WireBoxModule
collects named component definitions, which a WireBoxContainer loads into
its DefinitionStore on every refresh.

Key features:
- Subscript DSL: module.single[Type](...), module.prototype[Type](...)
  and module.scoped("request")[Type](...)
- Explicit definitions: module.define(name, ComponentDefinition(...))
- Aliases: module.alias(name, alias)
- Context manager support for cleaner definition blocks

Example::

    module = WireBoxModule()
    with module:
        module.single[Database]()
        module.single[UserRepository](primary=True)
        module.prototype[Session](properties={"db": Ref("database")})

    container = WireBoxContainer(sources=[module])
    container.refresh()
"""

from typing import List, Tuple

from .definition import ComponentDefinition
from .definition_builder import DefinitionBuilder
from .definition_source import DefinitionSource
from .definition_store import DefinitionStore
from .lifecycle import PROTOTYPE, SINGLETON


class WireBoxModule(DefinitionSource):
    """Definition source for programmatic registrations.

    Attributes:
        single: Builder for singleton registrations
        prototype: Builder for prototype registrations (new instance per request)
        lazy: Default lazy flag for singletons registered through the DSL

    Example::

        module = WireBoxModule(lazy=True)
        with module:
            # Singleton, created on first use because the module is lazy
            module.single[Database]()

            # Singleton created during refresh despite the module default
            module.single[Cache](lazy=False)

            # Custom scope, backed by a Scope registered on the container
            module.scoped("request")[RequestContext]()
    """

    def __init__(self, lazy: bool = False):
        """Initialize a new module with no definitions.

        Args:
            lazy: If True, singleton definitions of this module are created
                on first use instead of during refresh. Defaults to False.
        """
        self._definitions: List[Tuple[str, ComponentDefinition]] = []
        self._aliases: List[Tuple[str, str]] = []
        self.lazy = lazy
        self.single = DefinitionBuilder(self, SINGLETON)
        self.prototype = DefinitionBuilder(self, PROTOTYPE)

    def __enter__(self) -> 'WireBoxModule':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        return False

    def scoped(self, scope_name: str) -> DefinitionBuilder:
        """Builder for definitions living in a custom scope.

        Example::

            module.scoped("request")[RequestContext]()
        """
        return DefinitionBuilder(self, scope_name)

    def define(self, name: str, definition: ComponentDefinition) -> None:
        """Add a fully specified definition.

        Note:
            This method does not check for duplicates. The container's
            override policy applies when the module is loaded.
        """
        self._definitions.append((name, definition))

    def alias(self, name: str, alias: str) -> None:
        self._aliases.append((name, alias))

    def remove(self, name: str) -> None:
        """Forget every definition and alias registered under name."""
        self._definitions = [(n, d) for n, d in self._definitions if n != name]
        self._aliases = [(n, a) for n, a in self._aliases if n != name and a != name]

    @property
    def definitions(self) -> List[Tuple[str, ComponentDefinition]]:
        """Registered (name, definition) pairs in registration order."""
        return list(self._definitions)

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._definitions]

    def load_definitions(self, store: DefinitionStore) -> None:
        for name, definition in self._definitions:
            store.register(name, definition)
        for name, alias in self._aliases:
            store.register_alias(name, alias)

    def __repr__(self) -> str:
        return f"WireBoxModule(definitions={self.names})"
