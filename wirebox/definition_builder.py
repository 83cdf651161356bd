"""
DefinitionBuilder

This module provides the builder behind the module DSL's type parameter
syntax (e.g., single[Type], prototype[Type], scoped("request")[Type]).

The DefinitionBuilder performs:
- Type parameter extraction via __getitem__
- Default component naming from the type
- ComponentDefinition creation and registration with the module
"""

import re
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar, Union

from .definition import ComponentDefinition
from .lifecycle import SINGLETON

if TYPE_CHECKING:
    from .module import WireBoxModule

T = TypeVar('T')

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def default_component_name(component_type: Any) -> str:
    """Derive a component name from a type: ``UserRepository`` -> ``user_repository``.

    Example::

        default_component_name(HTTPClient)     # "http_client"
        default_component_name(UserService)    # "user_service"
    """
    name = getattr(component_type, '__name__', None) or str(component_type)
    return _CAMEL_BOUNDARY.sub('_', name).lower()


class DefinitionBuilder:
    """Registers definitions of one scope through subscript syntax.

    Attributes:
        module: The WireBoxModule to register definitions to
        scope: The scope ("singleton", "prototype" or a custom scope name)
            of created definitions

    Note:
        This class is not used directly. Use module.single, module.prototype
        or module.scoped(name) instead.
    """

    def __init__(self, module: 'WireBoxModule', scope: str):
        self.module = module
        self.scope = scope

    def __getitem__(self, interface: Type[T]) -> Callable[..., str]:
        """Enable subscript syntax: builder[Type](...).

        The returned registration function accepts an optional
        implementation: a class (instantiated with constructor autowiring)
        or a callable (a factory whose parameters are autowired). Without
        one, ``interface`` itself is instantiated.

        Args:
            interface: The type the component is declared as

        Returns:
            A registration function returning the component name

        Example::

            # Constructor autowiring
            module.single[UserService]()

            # Implementation class for an interface
            module.single[Repository](SqlRepository, primary=True)

            # Factory callable, parameters autowired from its annotations
            def make_database(config: Config) -> Database:
                return Database(config.url)

            module.single[Database](make_database)

            # Explicit arguments and properties
            module.prototype[Connection](
                args=[Value("db.url")],
                properties={"pool": Ref("pool")},
            )
        """

        def register(
            implementation: Union[Type[T], Callable[..., T], None] = None,
            *,
            name: Optional[str] = None,
            args: Sequence[Any] = (),
            kwargs: Optional[Dict[str, Any]] = None,
            properties: Optional[Dict[str, Any]] = None,
            lazy: Optional[bool] = None,
            primary: Optional[bool] = None,
            priority: Optional[int] = None,
            order: Optional[int] = None,
            autowire_candidate: Optional[bool] = None,
            init_method: Optional[str] = None,
            destroy_method: Optional[str] = None,
            depends_on: Optional[List[str]] = None,
            parent: Optional[str] = None,
            aliases: Sequence[str] = (),
        ) -> str:
            if implementation is None or isinstance(implementation, type):
                component_type = implementation or interface
                factory_method = None
            else:
                component_type = interface
                factory_method = implementation

            # Only singletons are created eagerly; the module default applies
            # unless the definition says otherwise
            effective_lazy = None
            if self.scope == SINGLETON:
                effective_lazy = lazy if lazy is not None else self.module.lazy

            definition = ComponentDefinition(
                component_type=component_type,
                scope=self.scope,
                lazy=effective_lazy,
                parent_name=parent,
                constructor_args=list(args),
                constructor_kwargs=dict(kwargs or {}),
                properties=dict(properties or {}),
                factory_method=factory_method,
                primary=primary,
                priority=priority,
                order=order,
                autowire_candidate=autowire_candidate,
                init_method=init_method,
                destroy_method=destroy_method,
                depends_on=list(depends_on) if depends_on is not None else None,
            )
            component_name = name or default_component_name(interface)
            self.module.define(component_name, definition)
            for alias in aliases:
                self.module.alias(component_name, alias)
            return component_name

        return register
