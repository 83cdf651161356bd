"""
ComponentProvider

Lazy handle injected for stream-shaped dependencies. Nothing is resolved
until the provider is asked for an object or iterated.
"""

from dataclasses import replace
from typing import TYPE_CHECKING, Generic, Iterator, Optional, TypeVar

from .exceptions import AmbiguousMatchError

if TYPE_CHECKING:
    from .descriptor import DependencyDescriptor
    from .resolver import DependencyResolver

T = TypeVar('T')


class ComponentProvider(Generic[T]):
    """Deferred access to components of one type.

    Example::

        class ReportService:
            def __init__(self, exporters: ComponentProvider[Exporter]):
                self._exporters = exporters

            def export(self, report):
                for exporter in self._exporters:   # resolved here, in order
                    exporter.write(report)
    """

    def __init__(self, resolver: 'DependencyResolver', descriptor: 'DependencyDescriptor'):
        self._resolver = resolver
        self._descriptor = descriptor

    def _scalar(self, required: bool) -> 'DependencyDescriptor':
        from .descriptor import Shape
        return replace(self._descriptor, shape=Shape.SCALAR, required=required, nesting_level=1)

    def get_object(self) -> T:
        """Resolve exactly one component, applying the usual tie-breaks.

        Raises:
            NoMatchError: When nothing matches
            AmbiguousMatchError: When several match and none wins
        """
        return self._resolver.resolve(self._scalar(required=True))

    def get_if_available(self) -> Optional[T]:
        """Like get_object(), but None when nothing matches."""
        return self._resolver.resolve(self._scalar(required=False))

    def get_if_unique(self) -> Optional[T]:
        """None when nothing matches or no candidate wins the tie-break."""
        try:
            return self._resolver.resolve(self._scalar(required=False))
        except AmbiguousMatchError:
            return None

    def __iter__(self) -> Iterator[T]:
        return iter(self._resolver.resolve_all(self._descriptor).values())

    def __repr__(self) -> str:
        return f"ComponentProvider[{self._descriptor.describe()}]"
