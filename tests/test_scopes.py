"""
Scope Tests

Tests for non-singleton scopes:
- Prototype scope
- Custom scopes backed by SimpleScope
- Scope registration rules
"""

import unittest

from wirebox import (
    InvalidDefinitionError,
    PrototypeCycleError,
    SimpleScope,
    WireBoxModule,
)

from conftest import WireBoxTestCase
from fixtures import ConstructorA, ConstructorB, Database, Journal, TrackedResource


class RequestContext:
    def __init__(self, db: Database):
        self.db = db


class RequestResource(TrackedResource):
    pass


def _request_module():
    module = WireBoxModule()
    with module:
        module.single[Database]()
        module.scoped("request")[RequestContext]()
    return module


class TestSimpleScope(unittest.TestCase):
    """Tests for SimpleScope on its own"""

    def test_get_caches_instances(self):
        scope = SimpleScope("req-1")
        calls = []

        def build():
            calls.append(1)
            return object()

        first = scope.get("ctx", build)
        second = scope.get("ctx", build)

        self.assertIs(first, second)
        self.assertEqual(len(calls), 1)
        self.assertEqual(scope.names, ["ctx"])

    def test_remove(self):
        scope = SimpleScope()
        instance = scope.get("ctx", object)

        self.assertIs(scope.remove("ctx"), instance)
        self.assertIsNone(scope.remove("ctx"))

    def test_close_runs_callbacks_in_reverse(self):
        scope = SimpleScope()
        destroyed = []
        for name in ("a", "b"):
            scope.get(name, object)
            scope.register_destruction_callback(name, lambda n=name: destroyed.append(n))

        scope.close()
        scope.close()

        self.assertEqual(destroyed, ["b", "a"])
        self.assertTrue(scope.is_closed)

    def test_closed_scope_rejects_lookups(self):
        with SimpleScope("req-2") as scope:
            pass

        with self.assertRaises(RuntimeError):
            scope.get("ctx", object)


class TestCustomScopes(WireBoxTestCase):
    """Tests for scoped components in a container"""

    def test_instance_shared_within_scope(self):
        container = self.new_container(_request_module(), refresh=False)
        scope = SimpleScope("req-1")
        container.register_scope("request", scope)
        container.refresh()

        first = container.get_instance(RequestContext)
        second = container.get_instance(RequestContext)

        self.assertIs(first, second)
        self.assertIs(first.db, container.get_instance(Database))

    def test_new_scope_new_instance(self):
        """Swapping the scope object starts a fresh set of instances"""
        container = self.new_container(_request_module())
        container.register_scope("request", SimpleScope("req-1"))
        first = container.get_instance(RequestContext)

        container.register_scope("request", SimpleScope("req-2"))
        second = container.get_instance(RequestContext)

        self.assertIsNot(first, second)

    def test_scoped_not_created_eagerly(self):
        scope = SimpleScope()
        container = self.new_container(_request_module(), refresh=False)
        container.register_scope("request", scope)
        container.refresh()

        self.assertEqual(scope.names, [])

    def test_scope_close_destroys_instances(self):
        journal = Journal()
        module = WireBoxModule()
        with module:
            module.scoped("request")[RequestResource]()
        container = self.new_container(module, refresh=False)
        container.register_singleton("journal", journal)
        scope = SimpleScope()
        container.register_scope("request", scope)
        container.refresh()
        resource = container.get_instance(RequestResource)

        scope.close()

        self.assertTrue(resource.destroyed)
        self.assertEqual(journal.entries, ["init:RequestResource", "destroy:RequestResource"])

    def test_unregistered_scope(self):
        container = self.new_container(_request_module())

        with self.assertRaises(InvalidDefinitionError) as ctx:
            container.get_instance(RequestContext)

        self.assertIn("request", str(ctx.exception))

    def test_builtin_scopes_cannot_be_replaced(self):
        container = self.new_container(refresh=False)

        with self.assertRaises(ValueError):
            container.register_scope("singleton", SimpleScope())
        container.refresh()
        with self.assertRaises(ValueError):
            container.register_scope("prototype", SimpleScope())

    def test_scoped_cycle(self):
        """Constructor cycles through scoped components cannot be broken"""
        module = WireBoxModule()
        with module:
            module.scoped("request")[ConstructorA]()
            module.scoped("request")[ConstructorB]()
        container = self.new_container(module)
        container.register_scope("request", SimpleScope())

        with self.assertRaises(PrototypeCycleError):
            container.get_instance(ConstructorA)


if __name__ == '__main__':
    unittest.main()
