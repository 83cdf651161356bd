"""
Circular Reference Tests

Tests for cycle handling:
- Property-level singleton cycles broken by early references
- Constructor-level cycles rejected with CircularReferenceError
- Prototype cycles rejected with PrototypeCycleError
- depends_on ordering and cycles
- Early references and wrapping post-processors
"""

import unittest
from typing import List

from wirebox import (
    Autowired,
    CircularReferenceError,
    ComponentCreationError,
    ComponentDefinition,
    ContainerSettings,
    InstanceInterceptor,
    InstancePostProcessor,
    InterceptingPostProcessor,
    NotInitializedError,
    PrototypeCycleError,
    WireBoxModule,
)

from conftest import WireBoxTestCase, create_factory, create_simple_module
from fixtures import (
    CacheService,
    ConstructorA,
    ConstructorB,
    Database,
    PropertyA,
    PropertyB,
)


def _property_cycle_module(scope_a="single", scope_b="single") -> WireBoxModule:
    module = WireBoxModule()
    with module:
        getattr(module, scope_a)[PropertyA](properties={"b": Autowired()})
        getattr(module, scope_b)[PropertyB](properties={"a": Autowired()})
    return module


class PropertyAProxy(PropertyA):
    """Stand-in wrapper for PropertyA"""

    def __init__(self, target: PropertyA):
        self.target = target


class ProxyInterceptor(InstanceInterceptor):
    def intercept(self, instance, name):
        return PropertyAProxy(instance)


class LateWrapper(InstancePostProcessor):
    """Wraps property_a after init only, never for early references"""

    def after_init(self, instance, name):
        if name == "property_a":
            return PropertyAProxy(instance)
        return instance


class TestPropertyCycles(WireBoxTestCase):
    """Tests for cycles through properties"""

    def test_singletons_reference_each_other(self):
        """Two singletons linked through properties both construct"""
        container = self.new_container(_property_cycle_module())

        a = container.get_instance(PropertyA)
        b = container.get_instance(PropertyB)

        self.assertIs(a.b, b)
        self.assertIs(b.a, a)

    def test_cycle_rejected_when_circular_references_disabled(self):
        """Without early references the same cycle cannot be built"""
        settings = ContainerSettings(allow_circular_references=False)

        with self.assertRaises(CircularReferenceError):
            self.new_container(_property_cycle_module(), settings=settings)

    def test_singleton_with_prototype_in_cycle(self):
        """A prototype can point back to the singleton that is creating it"""
        container = self.new_container(_property_cycle_module(scope_b="prototype"))

        a = container.get_instance(PropertyA)

        self.assertIs(a.b.a, a)

    def test_prototype_cycle_raises(self):
        """A cycle between prototypes raises PrototypeCycleError"""
        container = self.new_container(_property_cycle_module("prototype", "prototype"))

        with self.assertRaises(PrototypeCycleError) as ctx:
            container.get_instance(PropertyA)

        self.assertIn("property_a", str(ctx.exception))


class ClosablePropertyA(PropertyA):
    """PropertyA that records when it is closed"""

    instances: List['ClosablePropertyA'] = []

    def __init__(self):
        self.closed = False
        ClosablePropertyA.instances.append(self)

    def close(self) -> None:
        self.closed = True


class TestConstructorCycles(WireBoxTestCase):
    """Tests for cycles through constructor arguments"""

    def test_constructor_cycle_fails_refresh(self):
        """A constructor cycle fails refresh with CircularReferenceError"""
        module = create_simple_module(ConstructorA, ConstructorB)
        container = self.new_container(module, refresh=False)

        with self.assertRaises(CircularReferenceError) as ctx:
            container.refresh()

        self.assertIn("constructor_a -> constructor_b -> constructor_a", str(ctx.exception))
        self.assertFalse(container.is_active)
        with self.assertRaises(NotInitializedError):
            container.get_instance("constructor_b")

    def test_constructor_cycle_leaves_nothing_cached(self):
        """Neither side of a failed constructor cycle stays registered"""
        factory = create_factory({
            "constructor_a": ComponentDefinition(component_type=ConstructorA),
            "constructor_b": ComponentDefinition(component_type=ConstructorB),
        })

        with self.assertRaises(CircularReferenceError):
            factory.get_instance(ConstructorA)

        self.assertFalse(factory.cache.contains("constructor_a"))
        self.assertFalse(factory.cache.contains("constructor_b"))
        self.assertFalse(factory.cache.is_in_creation("constructor_a"))

    def test_prototype_constructor_cycle(self):
        """Prototype constructor cycles raise PrototypeCycleError"""
        module = WireBoxModule()
        with module:
            module.prototype[ConstructorA]()
            module.prototype[ConstructorB]()
        container = self.new_container(module)

        with self.assertRaises(PrototypeCycleError):
            container.get_instance(ConstructorB)


class TestDependsOn(WireBoxTestCase):
    """Tests for explicit depends_on"""

    def test_dependency_created_first(self):
        """depends_on components are initialized before the dependent"""
        created = []

        def make_database() -> Database:
            created.append("database")
            return Database()

        def make_cache() -> CacheService:
            created.append("cache_service")
            return CacheService()

        module = WireBoxModule()
        with module:
            module.single[Database](make_database, depends_on=["cache_service"])
            module.single[CacheService](make_cache)

        self.new_container(module)

        self.assertEqual(created, ["cache_service", "database"])

    def test_depends_on_cycle_raises(self):
        """Mutual depends_on raises CircularReferenceError"""
        module = WireBoxModule()
        with module:
            module.single[Database](depends_on=["cache_service"])
            module.single[CacheService](depends_on=["database"])

        with self.assertRaises(CircularReferenceError) as ctx:
            self.new_container(module)

        self.assertIn("depends-on", str(ctx.exception))

    def test_depends_on_missing_component(self):
        """depends_on naming an unknown component fails creation"""
        module = create_simple_module(Database, depends_on=["nothing"])

        with self.assertRaises(ComponentCreationError) as ctx:
            self.new_container(module)

        self.assertIn("nothing", str(ctx.exception))


class TestEarlyReferenceWrapping(WireBoxTestCase):
    """Tests for early references combined with wrapping post-processors"""

    def test_interceptor_wraps_early_reference_once(self):
        """Every holder sees the same wrapper, also through the cycle"""
        module = _property_cycle_module()
        container = self.new_container(module, refresh=False)
        container.add_instance_post_processor(InterceptingPostProcessor(
            ProxyInterceptor(),
            applies_to=lambda name, instance: name == "property_a",
        ))
        container.refresh()

        a = container.get_instance("property_a")
        b = container.get_instance("property_b")

        self.assertIsInstance(a, PropertyAProxy)
        self.assertIs(b.a, a)
        self.assertIs(a.target.b, b)

    def test_raw_injection_despite_wrapping_rejected(self):
        """A late wrapper after the raw instance was injected is an error"""
        container = self.new_container(_property_cycle_module(), refresh=False)
        container.add_instance_post_processor(LateWrapper())

        with self.assertRaises(CircularReferenceError) as ctx:
            container.refresh()

        self.assertIn("property_b", str(ctx.exception))
        self.assertIn("raw version", str(ctx.exception))

    def test_rejected_raw_injection_destroys_instance(self):
        """The instance rejected for raw injection still gets its destroy callback"""
        ClosablePropertyA.instances = []
        module = WireBoxModule()
        with module:
            module.single[ClosablePropertyA](
                name="property_a",
                properties={"b": Autowired()},
                destroy_method="close",
            )
            module.single[PropertyB](properties={"a": Autowired()})
        container = self.new_container(module, refresh=False)
        container.add_instance_post_processor(LateWrapper())

        with self.assertRaises(CircularReferenceError):
            container.refresh()

        self.assertEqual(len(ClosablePropertyA.instances), 1)
        self.assertTrue(ClosablePropertyA.instances[0].closed)

    def test_raw_injection_despite_wrapping_allowed(self):
        """With raw injection allowed, holders keep the raw instance"""
        settings = ContainerSettings(allow_raw_injection_despite_wrapping=True)
        container = self.new_container(_property_cycle_module(), refresh=False, settings=settings)
        container.add_instance_post_processor(LateWrapper())
        container.refresh()

        a = container.get_instance("property_a")
        b = container.get_instance("property_b")

        self.assertIsInstance(a, PropertyAProxy)
        self.assertIs(b.a, a.target)

    def test_wrapper_without_cycle_is_fine(self):
        """A late wrapper is harmless when nobody took an early reference"""
        module = WireBoxModule()
        with module:
            module.single[PropertyA]()
        container = self.new_container(module, refresh=False)
        container.add_instance_post_processor(LateWrapper())
        container.refresh()

        self.assertIsInstance(container.get_instance("property_a"), PropertyAProxy)


if __name__ == '__main__':
    unittest.main()
