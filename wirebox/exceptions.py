"""
WireBox Exceptions

Custom exception hierarchy for the WireBox container
"""


class WireBoxError(Exception):
    """
    Base exception for all WireBox errors.

    All WireBox-specific exceptions inherit from this class.
    You can catch this to handle any container error generically.

    Example:
        >>> try:
        ...     service = container.get_instance(MyService)
        ... except WireBoxError as e:
        ...     print(f"DI error: {e}")
    """

    pass


class InvalidDefinitionError(WireBoxError):
    """
    Raised when a component definition fails validation.

    Common causes:
        - Empty or non-string component name
        - A definition with neither ``component_type`` nor ``factory_method``
        - ``factory_component`` given without a method name
        - Requesting an instance of an ``abstract`` definition

    Solution:
        Give every concrete definition something to build from::

            ComponentDefinition(component_type=Database)
            ComponentDefinition(factory_method=make_database)
    """

    pass


class DefinitionConflictError(WireBoxError):
    """
    Raised when definitions cannot coexist.

    This error occurs when registering a name that already exists while
    definition overriding is disabled, when parent references form a
    cycle, or when aliases form a cycle.

    Common causes:
        - Registering the same name twice with
          ``ContainerSettings(allow_definition_overriding=False)``
        - ``a`` declares ``parent_name="b"`` and ``b`` declares ``parent_name="a"``
        - An alias that points back to itself through other aliases

    Solution:
        Use unique names, or remove the old definition first::

            store.remove("database")
            store.register("database", new_definition)
    """

    pass


class DefinitionNotFoundError(WireBoxError):
    """
    Raised when a requested name is not registered in the container.

    Common causes:
        - Forgetting to register the component
        - Typo in the component name
        - Definition source containing the component not attached

    Note:
        The error message includes a list of registered names
        to help identify available components.
    """

    pass


class CircularReferenceError(WireBoxError):
    """
    Raised when a singleton dependency cycle cannot be broken.

    Cycles through settable properties are broken by exposing an early
    reference. Cycles through constructor arguments cannot be broken,
    because no partial instance exists while the constructor is running.

    Example of an unbreakable cycle::

        class ServiceA:
            def __init__(self, b: "ServiceB"): ...

        class ServiceB:
            def __init__(self, a: ServiceA): ...  # Circular!

    Solution:
        Move one side of the cycle to a property assignment::

            ComponentDefinition(
                component_type=ServiceB,
                properties={"a": Autowired()},
            )
    """

    pass


class PrototypeCycleError(WireBoxError):
    """
    Raised when a dependency cycle runs through a prototype component.

    Prototype instances are never cached and never exposed early, so
    every request builds a fresh instance and the cycle can never close.
    There is no retry or alternate path for this error.
    """

    pass


class NoMatchError(WireBoxError):
    """
    Raised when a required dependency has no eligible candidate.

    Common causes:
        - No component of the requested type is registered
        - All matching components are marked ``autowire_candidate=False``
        - The only match is the requesting component itself and the
          request is multi-element

    Solution:
        Register a component of the requested type, or mark the
        dependency as optional (``Optional[T]`` or ``required=False``).
    """

    pass


class AmbiguousMatchError(WireBoxError):
    """
    Raised when a scalar dependency has several candidates and none wins.

    Tie-breaking runs in order: primary flag, lowest priority value,
    then an exact name or alias match with the declaring parameter.

    Solution:
        Mark one candidate as primary::

            module.single[PostgresDatabase](primary=True)

        or name the parameter after the component you want.
    """

    pass


class AmbiguousPrimaryError(AmbiguousMatchError):
    """
    Raised when more than one local candidate is flagged ``primary``.
    """

    pass


class AmbiguousPriorityError(AmbiguousMatchError):
    """
    Raised when several candidates share the lowest priority value.
    """

    pass


class TypeMismatchError(WireBoxError):
    """
    Raised when a produced value is not compatible with the requested type.

    Common causes:
        - An interceptor replaced the instance with a wrapper of an
          unrelated type
        - A factory method returned something other than its declared type
        - A map-shaped dependency declared a non-``str`` key type
    """

    pass


class TypeInferenceError(WireBoxError):
    """
    Raised when constructor or factory parameters cannot be autowired.

    Common causes:
        - Missing type hints on ``__init__`` parameters
        - Using built-in types or C extensions without accessible signatures
        - Forward references that cannot be resolved

    Solution:
        Ensure all ``__init__`` parameters have type hints::

            # Good - all parameters have type hints
            class UserRepository:
                def __init__(self, db: Database, cache: CacheService):
                    self.db = db
                    self.cache = cache

            # Bad - missing type hints
            class UserRepository:
                def __init__(self, db, cache):  # TypeInferenceError!
                    ...
    """

    pass


class ComponentCreationError(WireBoxError):
    """
    Raised when building a component fails with a non-container error.

    The original exception is chained as ``__cause__`` and the message
    names the component whose constructor, factory, init hook or
    post-processor raised it.
    """

    def __init__(self, name: str, message: str):
        super().__init__(f"Error creating component '{name}': {message}")
        self.component_name = name


class MissingConfigurationError(WireBoxError):
    """
    Raised when required configuration keys are absent at refresh time.

    Solution:
        Provide the keys through the container's ``properties`` mapping
        or, when enabled, through environment variables::

            WireBoxContainer(properties={"db.url": "sqlite://"})
    """

    def __init__(self, missing_keys):
        self.missing_keys = list(missing_keys)
        super().__init__(
            "The following required configuration values were not present: "
            + ", ".join(self.missing_keys)
        )


class AlreadyRefreshedError(WireBoxError):
    """
    Raised when refresh() is called on a container that is already active.

    A container is refreshed once. A failed refresh may be retried; a
    successful one may not.

    Common causes:
        - Calling ``refresh()`` twice
        - Calling ``refresh()`` inside a ``with`` block, which already
          refreshed the container on entry

    Solution:
        Register further definitions with ``register_definition()`` (they
        take effect immediately), or build a new container::

            container.close()
            container = WireBoxContainer(sources=[new_module])
            container.refresh()
    """

    pass


class NotInitializedError(WireBoxError):
    """
    Raised when a container is used before a successful ``refresh()``.

    Common causes:
        - Calling ``get_instance()`` before ``refresh()``
        - Using a container whose last ``refresh()`` failed

    Solution:
        Refresh the container first::

            container = WireBoxContainer(sources=[module])
            container.refresh()
            service = container.get_instance(MyService)
    """

    pass


class ContainerClosedError(WireBoxError):
    """
    Raised when attempting to use a closed container.

    Common causes:
        - Using a container after calling ``close()``
        - Using a container after exiting a ``with`` block

    Solution:
        Create a new ``WireBoxContainer`` instead of reusing a closed one.
    """

    pass


class RefreshFailureError(WireBoxError):
    """
    Raised when ``refresh()`` fails with a non-container exception.

    Container errors (any ``WireBoxError``) propagate unchanged; anything
    else raised during bootstrap is wrapped here with the original chained
    as ``__cause__``. Either way, every singleton created during the failed
    refresh has been destroyed and the container is inactive.
    """

    pass
