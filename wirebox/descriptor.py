"""
DependencyDescriptor

Describes one injection point: what type is wanted, in what shape, whether
it is required, and who is asking.
"""

import collections.abc
import typing
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from .exceptions import TypeMismatchError
from .provider import ComponentProvider
from .type_introspection import is_union, type_name

_COLLECTION_ORIGINS = (
    list,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Collection,
)
_MAP_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)
_STREAM_ORIGINS = (collections.abc.Iterator, collections.abc.Iterable, ComponentProvider)


class Shape(Enum):
    """Shape of the value an injection point expects"""
    SCALAR = "scalar"
    ARRAY = "array"
    ORDERED_COLLECTION = "ordered_collection"
    MAP = "map"
    LAZY_STREAM = "lazy_stream"


@dataclass(frozen=True)
class DependencyDescriptor:
    """A resolution request.

    For multi-element shapes ``target_type`` is the element type; the
    container (tuple, list, dict or ComponentProvider) is implied by
    ``shape``.

    Attributes:
        target_type: Type every resolved element must satisfy
        shape: Container shape the caller expects
        required: Whether an unresolvable scalar is an error
        declaring_component: Name of the component asking, for
            self-reference exclusion
        dependency_name: Parameter or property name at the injection point,
            used for the name-match tie-break
        nesting_level: How deep target_type sits inside the declared
            annotation (1 for a plain type, 2 for List[T])
        key_type: Key type of map-shaped requests
    """
    target_type: Any
    shape: Shape = Shape.SCALAR
    required: bool = True
    declaring_component: Optional[str] = None
    dependency_name: Optional[str] = None
    nesting_level: int = 1
    key_type: Any = None

    @property
    def is_multiple(self) -> bool:
        return self.shape is not Shape.SCALAR

    def optional(self) -> 'DependencyDescriptor':
        return replace(self, required=False)

    def describe(self) -> str:
        if self.shape is Shape.SCALAR:
            return type_name(self.target_type)
        return f"{self.shape.value} of {type_name(self.target_type)}"

    @classmethod
    def for_annotation(
        cls,
        annotation: Any,
        dependency_name: Optional[str] = None,
        declaring_component: Optional[str] = None,
        required: bool = True,
    ) -> 'DependencyDescriptor':
        """Build a descriptor from a type annotation.

        ``Optional[T]`` makes the request non-required. ``List[T]`` and
        ``Sequence[T]`` ask for an ordered collection, ``Tuple[T, ...]`` for
        an array, ``Dict[str, T]`` for a map keyed by component name, and
        ``Iterator[T]``, ``Iterable[T]`` or ``ComponentProvider[T]`` for a
        lazy stream.

        Raises:
            TypeMismatchError: When a map-shaped annotation has a non-str key
        """
        if is_union(annotation):
            args = typing.get_args(annotation)
            non_none = [arg for arg in args if arg is not type(None)]
            if len(non_none) == 1 and len(non_none) != len(args):
                annotation = non_none[0]
                required = False

        shape = Shape.SCALAR
        target = annotation
        key_type = None
        origin = typing.get_origin(annotation)
        args = typing.get_args(annotation)

        if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
            shape, target = Shape.ARRAY, args[0]
        elif origin in _COLLECTION_ORIGINS and len(args) == 1:
            shape, target = Shape.ORDERED_COLLECTION, args[0]
        elif origin in _MAP_ORIGINS and len(args) == 2:
            key_type, target = args
            if key_type is not str:
                raise TypeMismatchError(
                    f"Map-shaped dependency '{dependency_name}' must be keyed by str "
                    f"(component names), got {type_name(key_type)}"
                )
            shape = Shape.MAP
        elif origin in _STREAM_ORIGINS and len(args) == 1:
            shape, target = Shape.LAZY_STREAM, args[0]

        return cls(
            target_type=target,
            shape=shape,
            required=required,
            declaring_component=declaring_component,
            dependency_name=dependency_name,
            nesting_level=1 if shape is Shape.SCALAR else 2,
            key_type=key_type,
        )
