"""
Type Introspection

Signature and annotation analysis used for autowiring, plus the pluggable
"type satisfies" predicate used to match candidates against a requested type.

The signature analysis performs:
- Constructor and factory parameter extraction
- Forward reference (string annotation) resolution
- PEP 604 union conversion for types that do not support ``|``
"""

import ast
import inspect
import types
import typing
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Type, Union

from .exceptions import TypeInferenceError


class ParameterSpec(NamedTuple):
    """One injectable parameter of a constructor or factory."""
    name: str
    annotation: Any
    has_default: bool
    default: Any
    keyword_only: bool

    @property
    def has_annotation(self) -> bool:
        return self.annotation is not inspect.Parameter.empty


def get_parameter_specs(target: Union[Type, Callable]) -> List[ParameterSpec]:
    """Extract the injectable parameters of a class constructor or a callable.

    Args:
        target: A class (its ``__init__`` is analyzed) or any callable

    Returns:
        Parameters in declaration order, excluding 'self', *args and **kwargs.
        Parameters without an annotation carry ``inspect.Parameter.empty``.

    Raises:
        TypeInferenceError: When the signature cannot be inspected
            (e.g., built-in types or C extension classes)
    """
    if target is None:
        raise TypeInferenceError(
            "Cannot analyze parameter types: target is None. "
            "Ensure the component type is correctly specified."
        )

    is_class = isinstance(target, type)
    function = target.__init__ if is_class else target
    label = f"{_name_of(target)}.__init__" if is_class else _name_of(target)

    if is_class and function is object.__init__:
        return []

    try:
        sig = inspect.signature(function)
    except ValueError as e:
        raise TypeInferenceError(
            f"Cannot inspect {label}: {e}. "
            f"This may occur with built-in types or C extension classes."
        ) from e
    except TypeError as e:
        raise TypeInferenceError(
            f"Cannot get signature for {label}: {e}. "
            f"Ensure {_name_of(target)} is a class or a callable."
        ) from e

    resolved_hints = resolve_type_hints(function)
    owner = target if is_class else function

    specs = []
    for index, (param_name, param) in enumerate(sig.parameters.items()):
        if is_class and index == 0:
            continue

        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = param.annotation
        if annotation is not inspect.Parameter.empty:
            annotation = resolved_hints.get(param_name, annotation)
            if isinstance(annotation, str):
                annotation = _resolve_string_annotation(owner, param_name, annotation)

        specs.append(ParameterSpec(
            name=param_name,
            annotation=annotation,
            has_default=param.default is not inspect.Parameter.empty,
            default=param.default,
            keyword_only=param.kind == inspect.Parameter.KEYWORD_ONLY,
        ))

    return specs


def get_return_type(function: Callable) -> Optional[Type]:
    """Return the annotated return type of a callable, if it declares one."""
    hints = resolve_type_hints(function)
    return_type = hints.get('return')
    if return_type is None or return_type is type(None):
        return None
    return return_type


def get_attribute_type(cls: Type, attribute: str) -> Any:
    """Return the class-level annotation for an attribute.

    Raises:
        TypeInferenceError: When the class does not annotate the attribute
    """
    hints = resolve_type_hints(cls)
    if attribute not in hints:
        raise TypeInferenceError(
            f"Cannot autowire property '{attribute}' of {_name_of(cls)}: "
            f"no class annotation found. Declare '{attribute}: SomeType' on the class "
            f"or pass Autowired(SomeType)."
        )
    annotation = hints[attribute]
    if isinstance(annotation, str):
        annotation = _resolve_string_annotation(cls, attribute, annotation)
    return annotation


def resolve_type_hints(obj: Any) -> Dict[str, Any]:
    """Resolve type hints using typing.get_type_hints().

    Handles failure scenarios gracefully by returning an empty dict,
    allowing fallback to manual resolution of string annotations.
    """
    try:
        # include_extras=True preserves Annotated[] metadata
        return typing.get_type_hints(obj, include_extras=True)
    except NameError:
        # Type not found in scope - common with local classes
        return {}
    except RecursionError:
        return {}
    except TypeError:
        # PEP 604 | operator used with a type that doesn't support it
        return {}
    except Exception:
        return {}


def _resolve_string_annotation(owner: Any, param_name: str, annotation: str) -> Any:
    """Resolve a string annotation in the owner's module namespace.

    Raises:
        TypeInferenceError: When the string annotation cannot be resolved
    """
    module = inspect.getmodule(owner)
    if module is None:
        raise TypeInferenceError(
            f"Cannot resolve forward reference '{annotation}' for '{param_name}' "
            f"in {_name_of(owner)}: the module could not be determined."
        )

    namespace: Dict[str, Any] = {}
    if hasattr(module, '__dict__'):
        namespace.update(module.__dict__)
    if isinstance(owner, type):
        namespace.update(owner.__dict__)
    namespace.setdefault('Union', Union)
    namespace.setdefault('Optional', Optional)

    converted_annotation = _convert_union_syntax(annotation)

    try:
        return eval(converted_annotation, namespace)
    except NameError:
        raise TypeInferenceError(
            f"Cannot resolve forward reference '{annotation}' for '{param_name}' "
            f"in {_name_of(owner)}. The type '{annotation}' was not found in the "
            f"module's namespace. Hint: Ensure '{annotation}' is defined and imported "
            f"before the component is created."
        )
    except SyntaxError as e:
        raise TypeInferenceError(
            f"Invalid forward reference '{annotation}' for '{param_name}' "
            f"in {_name_of(owner)}: {e}."
        ) from e
    except Exception as e:
        raise TypeInferenceError(
            f"Failed to resolve forward reference '{annotation}' for '{param_name}' "
            f"in {_name_of(owner)}: {e}."
        ) from e


def _convert_union_syntax(annotation: str) -> str:
    """Convert PEP 604 union syntax (X | Y) to Union[X, Y].

    Example::

        >>> _convert_union_syntax('int | str')
        'Union[int, str]'
    """
    if '|' not in annotation:
        return annotation

    try:
        tree = ast.parse(annotation, mode='eval')
    except SyntaxError:
        return annotation

    class UnionTransformer(ast.NodeTransformer):
        """Transform BinOp(|) nodes to Subscript(Union[...]) nodes."""

        def visit_BinOp(self, node: ast.BinOp) -> ast.AST:
            if isinstance(node.op, ast.BitOr):
                # Flatten first so X | Y | Z becomes Union[X, Y, Z]
                members = _collect_union_types(node)
                transformed_types = [self.visit(t) for t in members]
                return ast.Subscript(
                    value=ast.Name(id='Union', ctx=ast.Load()),
                    slice=ast.Tuple(elts=transformed_types, ctx=ast.Load()),
                    ctx=ast.Load()
                )
            self.generic_visit(node)
            return node

    new_tree = UnionTransformer().visit(tree)
    ast.fix_missing_locations(new_tree)
    return ast.unparse(new_tree.body)


def _collect_union_types(node: ast.BinOp) -> List[ast.AST]:
    types: List[ast.AST] = []

    def collect(n: ast.AST) -> None:
        if isinstance(n, ast.BinOp) and isinstance(n.op, ast.BitOr):
            collect(n.left)
            collect(n.right)
        else:
            types.append(n)

    collect(node)
    return types


def _name_of(obj: Any) -> str:
    return getattr(obj, '__qualname__', None) or getattr(obj, '__name__', None) or repr(obj)


def type_name(tp: Any) -> str:
    """Readable name of a type for error messages."""
    if isinstance(tp, type):
        return tp.__name__
    return str(tp).replace('typing.', '')


class TypeMatcher:
    """Answers type-assignability questions for candidate matching.

    This is the single place where the container asks "does a component of
    this type satisfy that request?". Subclass and pass an instance to the
    container to plug in a different notion of compatibility.
    """

    def is_assignable(self, candidate_type: Any, target_type: Any) -> bool:
        """Whether a value of candidate_type can be used where target_type is wanted."""
        if target_type is Any or target_type is object:
            return True
        if candidate_type is None:
            return False

        target = _strip(target_type)
        if is_union(target):
            return any(self.is_assignable(candidate_type, arg) for arg in typing.get_args(target))

        candidate = _strip(candidate_type)
        candidate = typing.get_origin(candidate) or candidate
        target = typing.get_origin(target) or target
        if not isinstance(candidate, type) or not isinstance(target, type):
            return candidate == target
        try:
            return issubclass(candidate, target)
        except TypeError:
            # Non-runtime-checkable protocols and similar
            return False

    def is_instance(self, value: Any, target_type: Any) -> bool:
        """Whether an already produced value satisfies target_type."""
        if target_type is Any or target_type is object:
            return True
        target = _strip(target_type)
        if is_union(target):
            return any(self.is_instance(value, arg) for arg in typing.get_args(target))
        target = typing.get_origin(target) or target
        if not isinstance(target, type):
            return True
        try:
            return isinstance(value, target)
        except TypeError:
            return self.is_assignable(type(value), target)


def _strip(tp: Any) -> Any:
    """Drop Annotated[] metadata from a type."""
    if typing.get_origin(tp) is typing.Annotated:
        return typing.get_args(tp)[0]
    return tp


def is_union(tp: Any) -> bool:
    """Whether tp is a Union, including the PEP 604 ``X | Y`` form."""
    origin = typing.get_origin(tp)
    return origin is Union or origin is types.UnionType
