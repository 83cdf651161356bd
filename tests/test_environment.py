"""
Environment Tests

Tests for configuration lookup:
- Explicit properties and environment variable fallback
- Required properties
- ${key} and ${key:default} placeholders
"""

import os
import unittest
from unittest import mock

from wirebox import ContainerSettings, Environment, MissingConfigurationError

from conftest import WireBoxTestCase


class TestPropertyLookup(unittest.TestCase):
    """Tests for get_property() and friends"""

    def test_explicit_properties(self):
        env = Environment({"db.url": "sqlite://"}, use_environment_variables=False)

        self.assertEqual(env.get_property("db.url"), "sqlite://")
        self.assertTrue(env.contains_property("db.url"))
        self.assertIsNone(env.get_property("db.user"))
        self.assertEqual(env.get_property("db.user", "admin"), "admin")

    def test_set_property(self):
        env = Environment(use_environment_variables=False)
        env.set_property("pool.size", 10)

        self.assertEqual(env.get_property("pool.size"), 10)

    @mock.patch.dict(os.environ, {"DB_URL": "postgres://env", "CACHE_TTL_SECONDS": "30"})
    def test_environment_variable_fallback(self):
        """Dotted and dashed keys are also looked up in upper snake case"""
        env = Environment()

        self.assertEqual(env.get_property("db.url"), "postgres://env")
        self.assertEqual(env.get_property("cache.ttl-seconds"), "30")

    @mock.patch.dict(os.environ, {"DB_URL": "postgres://env"})
    def test_properties_take_precedence(self):
        env = Environment({"db.url": "sqlite://"})

        self.assertEqual(env.get_property("db.url"), "sqlite://")

    @mock.patch.dict(os.environ, {"DB_URL": "postgres://env"})
    def test_environment_variables_disabled(self):
        env = Environment(use_environment_variables=False)

        self.assertFalse(env.contains_property("db.url"))


class TestRequiredProperties(unittest.TestCase):
    """Tests for required keys"""

    def test_get_required_property(self):
        env = Environment({"a": 1}, use_environment_variables=False)

        self.assertEqual(env.get_required_property("a"), 1)
        with self.assertRaises(MissingConfigurationError) as ctx:
            env.get_required_property("b")
        self.assertEqual(ctx.exception.missing_keys, ["b"])

    def test_validation_reports_every_missing_key(self):
        env = Environment({"b": 2}, use_environment_variables=False)
        env.set_required_properties("a", "b", "c")
        env.set_required_properties("a")

        self.assertEqual(env.required_properties, ["a", "b", "c"])
        with self.assertRaises(MissingConfigurationError) as ctx:
            env.validate_required_properties()

        self.assertEqual(ctx.exception.missing_keys, ["a", "c"])
        self.assertIn("a, c", str(ctx.exception))

    def test_validation_passes(self):
        env = Environment({"a": 1}, use_environment_variables=False)
        env.set_required_properties("a")

        env.validate_required_properties()


class TestPlaceholders(unittest.TestCase):
    """Tests for resolve_placeholders()"""

    def setUp(self):
        self.env = Environment(
            {"db.host": "localhost", "db.port": 5432},
            use_environment_variables=False
        )

    def test_placeholders_replaced(self):
        text = self.env.resolve_placeholders("postgres://${db.host}:${db.port}/app")

        self.assertEqual(text, "postgres://localhost:5432/app")

    def test_default_used_when_absent(self):
        self.assertEqual(self.env.resolve_placeholders("${db.user:admin}"), "admin")
        self.assertEqual(self.env.resolve_placeholders("[${db.password:}]"), "[]")

    def test_missing_placeholder(self):
        with self.assertRaises(MissingConfigurationError) as ctx:
            self.env.resolve_placeholders("${db.user}")

        self.assertEqual(ctx.exception.missing_keys, ["db.user"])

    def test_plain_text_untouched(self):
        self.assertEqual(self.env.resolve_placeholders("no placeholders"), "no placeholders")


class TestContainerEnvironment(WireBoxTestCase):
    """Tests for the Environment owned by a container"""

    def test_container_properties(self):
        container = self.new_container(
            properties={"app.name": "orders"},
            settings=ContainerSettings(use_environment_variables=False),
        )

        self.assertEqual(container.environment.get_property("app.name"), "orders")
        self.assertIs(container.get_instance(Environment), container.environment)

    @mock.patch.dict(os.environ, {"APP_NAME": "from-env"})
    def test_settings_control_environment_variables(self):
        container = self.new_container(refresh=False)

        self.assertEqual(container.environment.get_property("app.name"), "from-env")


if __name__ == '__main__':
    unittest.main()
