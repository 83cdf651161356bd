"""
Test Configuration and Utilities

Common base classes and helper functions for WireBox tests
"""

import unittest
from typing import Any, Dict, List, Optional, Type

from wirebox import (
    ComponentDefinition,
    ContainerSettings,
    DefinitionStore,
    Event,
    EventListener,
    WireBoxContainer,
    WireBoxModule,
)
from wirebox.factory import ComponentFactory


class WireBoxTestCase(unittest.TestCase):
    """
    Base test case class for WireBox tests.

    Containers created through new_container() are closed after each test.
    """

    def setUp(self):
        self._containers: List[WireBoxContainer] = []

    def tearDown(self):
        for container in reversed(self._containers):
            container.close()

    def new_container(
        self,
        *modules: WireBoxModule,
        refresh: bool = True,
        **kwargs: Any
    ) -> WireBoxContainer:
        """Create a container for the given modules, closed on tearDown.

        Args:
            *modules: Definition sources of the container
            refresh: Whether to refresh it right away
            **kwargs: Passed on to WireBoxContainer
        """
        container = WireBoxContainer(sources=list(modules), **kwargs)
        self._containers.append(container)
        if refresh:
            container.refresh()
        return container


def create_simple_module(*service_classes: Type, **options: Any) -> WireBoxModule:
    """
    Create a module with singleton registrations for the given classes.

    Args:
        *service_classes: Classes to register, constructor-autowired
        **options: Registration options applied to every class

    Returns:
        A WireBoxModule with the registrations

    Example:
        >>> module = create_simple_module(Database, CacheService)
        >>> container = WireBoxContainer(sources=[module])
    """
    module = WireBoxModule()
    with module:
        for cls in service_classes:
            module.single[cls](**options)
    return module


def create_store(definitions: Dict[str, ComponentDefinition], **kwargs: Any) -> DefinitionStore:
    """Create a DefinitionStore holding the given definitions, in order."""
    store = DefinitionStore(**kwargs)
    for name, definition in definitions.items():
        store.register(name, definition)
    return store


def create_factory(
    definitions: Dict[str, ComponentDefinition],
    settings: Optional[ContainerSettings] = None,
    parent: Optional[ComponentFactory] = None
) -> ComponentFactory:
    """Create a ComponentFactory over a fresh store of the given definitions."""
    parent_store = parent.store if parent is not None else None
    store = create_store(definitions, parent=parent_store)
    return ComponentFactory(store, settings=settings, parent=parent)


class RecordingListener(EventListener):
    """Listener that remembers every event it receives"""

    def __init__(self, event_type: Type[Event] = Event, order: Optional[int] = None):
        self.event_type = event_type
        if order is not None:
            self.order = order
        self.events: List[Event] = []

    def on_event(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: Type[Event]) -> List[Event]:
        return [event for event in self.events if isinstance(event, event_type)]
