"""
ResolutionContext

This module provides the per-thread state of an ongoing object-graph walk.
The ResolutionContext tracks:

- The chain of components currently being created (for error messages)
- Prototype and custom-scoped names currently in creation (cycle detection)

The context is stored in a ContextVar so that concurrent resolutions on
different threads never see each other's state.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, List, Optional, Set

from .exceptions import PrototypeCycleError


class ResolutionContext:
    """State of one resolution walk on the current thread.

    Attributes:
        chain: Names of components being created, outermost first
        prototypes_in_creation: Non-singleton names being created. A name
            entering twice means an unbreakable cycle.

    Note:
        This class is used internally by ComponentFactory.
        Users should not need to interact with it directly.
    """

    def __init__(self):
        self.chain: List[str] = []
        self.prototypes_in_creation: Set[str] = set()

    def describe_cycle(self, name: str) -> str:
        """Render the chain up to and including a repeated name.

        Example::

            ctx.chain = ["a", "b"]
            ctx.describe_cycle("a")   # "a -> b -> a"
        """
        if name in self.chain:
            start = self.chain.index(name)
            return " -> ".join(self.chain[start:] + [name])
        return " -> ".join(self.chain + [name])


_resolution_context: ContextVar[Optional[ResolutionContext]] = ContextVar(
    '_WIREBOX_RESOLUTION_CONTEXT',
    default=None
)


def current_context() -> ResolutionContext:
    """Return the context of the current thread, creating it on first use."""
    ctx = _resolution_context.get()
    if ctx is None:
        ctx = ResolutionContext()
        _resolution_context.set(ctx)
    return ctx


@contextmanager
def creating(name: str) -> Iterator[ResolutionContext]:
    """Record that name is being created for the duration of the block."""
    ctx = current_context()
    ctx.chain.append(name)
    try:
        yield ctx
    finally:
        ctx.chain.pop()


@contextmanager
def creating_prototype(name: str) -> Iterator[ResolutionContext]:
    """Guard the creation of a non-singleton component.

    Raises:
        PrototypeCycleError: When name is already being created further up
            the current walk
    """
    ctx = current_context()
    if name in ctx.prototypes_in_creation:
        raise PrototypeCycleError(
            f"Circular reference through prototype-scoped component '{name}': "
            f"{ctx.describe_cycle(name)}. Non-singleton components are never "
            f"exposed early, so this cycle cannot be broken."
        )
    ctx.prototypes_in_creation.add(name)
    try:
        with creating(name):
            yield ctx
    finally:
        ctx.prototypes_in_creation.discard(name)
