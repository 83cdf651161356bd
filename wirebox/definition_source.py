"""
DefinitionSource

This module provides the DefinitionSource abstract interface for anything
that produces component definitions: programmatic modules, configuration
files, classpath-style scanners.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .definition_store import DefinitionStore


class DefinitionSource(ABC):
    """Abstract producer of named component definitions.

    A container asks each of its sources to load into a fresh store on
    every refresh, so a source should be re-loadable: loading twice must
    register the same definitions twice, not accumulate state.

    Example::

        class DictSource(DefinitionSource):
            def __init__(self, config):
                self._config = config

            def load_definitions(self, store):
                for name, cls in self._config.items():
                    store.register(name, ComponentDefinition(component_type=cls))
    """

    @abstractmethod
    def load_definitions(self, store: 'DefinitionStore') -> None:
        """Register this source's definitions and aliases in store.

        Args:
            store: The store being built for the current refresh

        Raises:
            InvalidDefinitionError: If a definition is invalid
            DefinitionConflictError: If a name clashes and overriding is disabled
        """
        pass
