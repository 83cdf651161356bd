"""
ContainerSettings

Behavioural switches for a WireBoxContainer and its component factory
"""

from dataclasses import dataclass


@dataclass
class ContainerSettings:
    """Container configuration.

    Attributes:
        allow_definition_overriding: Whether registering a name twice replaces
            the old definition (True) or raises DefinitionConflictError (False)
        allow_circular_references: Whether singletons may expose early
            references to break property-level cycles
        allow_raw_injection_despite_wrapping: Whether a component may end up
            wrapped after its raw early reference was already injected
            elsewhere. When False, this raises CircularReferenceError.
        use_environment_variables: Whether the container's Environment falls
            back to os.environ for configuration lookups
    """
    allow_definition_overriding: bool = True
    allow_circular_references: bool = True
    allow_raw_injection_despite_wrapping: bool = False
    use_environment_variables: bool = True
