"""
DefaultLifecycleProcessor

Starts and stops the Lifecycle singletons of a container in phase order
"""

import logging
from typing import Dict, List

from .factory import ComponentFactory
from .lifecycle import Lifecycle

logger = logging.getLogger(__name__)


class DefaultLifecycleProcessor:
    """Drives Lifecycle components through start and stop.

    Only singletons take part. A singleton that has not been created yet is
    created for this purpose when its class sets ``auto_startup``; others
    are left alone until something creates them.

    Lower phases start first and stop last. Within a phase, components
    start in declaration order and stop in reverse declaration order.
    """

    def __init__(self, factory: ComponentFactory):
        self._factory = factory
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def on_refresh(self) -> None:
        """Start every auto-startup component."""
        self._start(auto_startup_only=True)
        self._running = True

    def on_close(self) -> None:
        """Stop everything started, if the processor is running."""
        if self._running:
            self.stop()

    def start(self) -> None:
        """Start every Lifecycle singleton, auto-startup or not."""
        self._start(auto_startup_only=False)
        self._running = True

    def stop(self) -> None:
        components = self._lifecycle_components(create_missing=False)
        ordered = sorted(reversed(list(components.items())), key=lambda item: item[1].phase, reverse=True)
        for name, component in ordered:
            if component.is_running():
                logger.debug(f"Stopping component '{name}' in phase {component.phase}")
                component.stop()
        self._running = False

    def _start(self, auto_startup_only: bool) -> None:
        components = self._lifecycle_components()
        ordered = sorted(components.items(), key=lambda item: item[1].phase)
        for name, component in ordered:
            if auto_startup_only and not component.auto_startup:
                continue
            if not component.is_running():
                logger.debug(f"Starting component '{name}' in phase {component.phase}")
                component.start()

    def _lifecycle_components(self, create_missing: bool = True) -> Dict[str, Lifecycle]:
        factory = self._factory
        components: Dict[str, Lifecycle] = {}
        names: List[str] = factory.names_for_type(Lifecycle)
        for name in names:
            merged = factory.find_merged_definition(name)
            if merged is not None and not merged.is_singleton:
                continue
            instance = factory.cache.get_singleton(name, allow_early=False)
            if instance is None:
                component_type = factory.predict_type(name)
                if not create_missing or not getattr(component_type, 'auto_startup', False):
                    continue
                instance = factory.get_instance(name)
            if isinstance(instance, Lifecycle):
                components[name] = instance
        return components
