"""
Environment

Configuration lookup for the container.

Values come from an explicit properties mapping first and, when enabled,
from ``os.environ``. For environment lookups a dotted key such as
``db.url`` is also tried as ``DB_URL``.
"""

import os
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .exceptions import MissingConfigurationError

_PLACEHOLDER = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')


class Environment:
    """Layered configuration properties with required-key validation.

    Example::

        env = Environment({"db.url": "sqlite://"})
        env.set_required_properties("db.url")
        env.validate_required_properties()
        env.resolve_placeholders("url=${db.url}")   # "url=sqlite://"
    """

    def __init__(
        self,
        properties: Optional[Mapping[str, Any]] = None,
        use_environment_variables: bool = True
    ):
        self._properties: Dict[str, Any] = dict(properties or {})
        self._use_environment_variables = use_environment_variables
        self._required: List[str] = []

    def set_property(self, key: str, value: Any) -> None:
        self._properties[key] = value

    def contains_property(self, key: str) -> bool:
        return self._lookup(key) is not None

    def get_property(self, key: str, default: Any = None) -> Any:
        """Return the value for key, or default when no layer defines it."""
        value = self._lookup(key)
        return default if value is None else value

    def get_required_property(self, key: str) -> Any:
        value = self._lookup(key)
        if value is None:
            raise MissingConfigurationError([key])
        return value

    def set_required_properties(self, *keys: str) -> None:
        """Mark keys that must be present when the container refreshes."""
        for key in keys:
            if key not in self._required:
                self._required.append(key)

    @property
    def required_properties(self) -> List[str]:
        return list(self._required)

    def validate_required_properties(self) -> None:
        """Check that every required key is present.

        Raises:
            MissingConfigurationError: Listing every missing key at once
        """
        missing = [key for key in self._required if not self.contains_property(key)]
        if missing:
            raise MissingConfigurationError(missing)

    def resolve_placeholders(self, text: str) -> str:
        """Replace ``${key}`` and ``${key:default}`` placeholders in text.

        Raises:
            MissingConfigurationError: When a placeholder without a default
                names an absent key
        """
        def replace(match: 're.Match') -> str:
            key, default = match.group(1), match.group(2)
            value = self._lookup(key)
            if value is None:
                if default is None:
                    raise MissingConfigurationError([key])
                return default
            return str(value)

        return _PLACEHOLDER.sub(replace, text)

    def _lookup(self, key: str) -> Any:
        if key in self._properties:
            return self._properties[key]
        if self._use_environment_variables:
            for candidate in self._environment_keys(key):
                if candidate in os.environ:
                    return os.environ[candidate]
        return None

    @staticmethod
    def _environment_keys(key: str) -> Iterable[str]:
        yield key
        normalized = re.sub(r'[.\-]', '_', key).upper()
        if normalized != key:
            yield normalized

    def __repr__(self) -> str:
        return f"Environment(properties={sorted(self._properties)})"
