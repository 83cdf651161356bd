"""
Lifecycle Tests

Tests for component lifecycle callbacks:
- InitializingComponent and init_method
- DisposableComponent and destroy_method
- Lifecycle start/stop ordered by phase
- Manual start() and stop() on the container
"""

import unittest

from wirebox import (
    Autowired,
    ContainerStartedEvent,
    ContainerStoppedEvent,
    InvalidDefinitionError,
    WireBoxModule,
)

from conftest import RecordingListener, WireBoxTestCase
from fixtures import Database, Journal, TrackedResource, Worker


class PropertyCheckingResource(TrackedResource):
    """Verifies its properties are set before after_properties_set()"""

    db: Database

    def after_properties_set(self):
        self.journal.record(f"init:db={type(self.db).__name__}")


class Connection:
    """Uses named lifecycle methods instead of interfaces"""

    def __init__(self, journal: Journal):
        self.journal = journal

    def connect(self):
        self.journal.record("connect")

    def disconnect(self):
        self.journal.record("disconnect")


class EarlyWorker(Worker):
    phase = -1


class LateWorker(Worker):
    phase = 5


class ManualWorker(Worker):
    auto_startup = False


class OtherWorker(Worker):
    pass


class LifecycleTestCase(WireBoxTestCase):
    """Creates containers sharing one Journal singleton"""

    def setUp(self):
        super().setUp()
        self.journal = Journal()

    def container_for(self, module: WireBoxModule, refresh: bool = True):
        container = self.new_container(module, refresh=False)
        container.register_singleton("journal", self.journal)
        if refresh:
            container.refresh()
        return container


class TestInitAndDestroy(LifecycleTestCase):
    """Tests for init and destroy callbacks"""

    def test_after_properties_set_sees_properties(self):
        module = WireBoxModule()
        with module:
            module.single[Database]()
            module.single[PropertyCheckingResource](properties={"db": Autowired()})

        self.container_for(module)

        self.assertEqual(self.journal.entries, ["init:db=Database"])

    def test_init_and_destroy_methods(self):
        """init_method runs during refresh, destroy_method on close"""
        module = WireBoxModule()
        with module:
            module.single[Connection](init_method="connect", destroy_method="disconnect")
        container = self.container_for(module)
        self.assertEqual(self.journal.entries, ["connect"])

        container.close()

        self.assertEqual(self.journal.entries, ["connect", "disconnect"])

    def test_disposable_destroyed_on_close(self):
        module = WireBoxModule()
        with module:
            module.single[TrackedResource]()
        container = self.container_for(module)
        resource = container.get_instance(TrackedResource)

        container.close()

        self.assertTrue(resource.destroyed)

    def test_missing_init_method_fails_refresh(self):
        module = WireBoxModule()
        with module:
            module.single[Connection](init_method="open")

        with self.assertRaises(InvalidDefinitionError) as ctx:
            self.container_for(module)

        self.assertIn("open", str(ctx.exception))

    def test_missing_destroy_method_logged(self):
        module = WireBoxModule()
        with module:
            module.single[Connection](destroy_method="release")
        container = self.container_for(module)

        with self.assertLogs('wirebox.factory', level='WARNING'):
            container.close()

    def test_prototypes_never_destroyed(self):
        """The container does not track prototype instances"""
        module = WireBoxModule()
        with module:
            module.prototype[TrackedResource]()
        container = self.container_for(module)
        resource = container.get_instance(TrackedResource)

        container.close()

        self.assertFalse(resource.destroyed)
        self.assertEqual(self.journal.entries, ["init:TrackedResource"])

    def test_registered_singletons_not_destroyed(self):
        """Objects registered with register_singleton() are left alone"""
        resource = TrackedResource(self.journal)
        container = self.container_for(WireBoxModule(), refresh=False)
        container.register_singleton("external", resource)
        container.refresh()

        container.close()

        self.assertFalse(resource.destroyed)


class TestLifecyclePhases(LifecycleTestCase):
    """Tests for Lifecycle components"""

    def test_started_on_refresh_and_stopped_on_close(self):
        """Lower phases start first and stop last"""
        module = WireBoxModule()
        with module:
            module.single[LateWorker]()
            module.single[EarlyWorker]()
        container = self.container_for(module)

        self.assertEqual(self.journal.entries, ["start:EarlyWorker", "start:LateWorker"])

        container.close()

        self.assertEqual(self.journal.entries[2:], ["stop:LateWorker", "stop:EarlyWorker"])

    def test_same_phase_stops_in_reverse(self):
        module = WireBoxModule()
        with module:
            module.single[Worker]()
            module.single[OtherWorker]()
        container = self.container_for(module)

        container.close()

        self.assertEqual(self.journal.entries, [
            "start:Worker", "start:OtherWorker", "stop:OtherWorker", "stop:Worker",
        ])

    def test_lazy_auto_startup_component_created(self):
        """A lazy Lifecycle singleton is created to be started"""
        module = WireBoxModule()
        with module:
            module.single[Worker](lazy=True)
        container = self.container_for(module)

        self.assertEqual(self.journal.entries, ["start:Worker"])
        self.assertTrue(container.get_instance(Worker).is_running())

    def test_manual_start_and_stop(self):
        """auto_startup=False components wait for container.start()"""
        module = WireBoxModule()
        with module:
            module.single[ManualWorker]()
        container = self.container_for(module, refresh=False)
        listener = container.add_listener(RecordingListener())
        container.refresh()
        self.assertEqual(self.journal.entries, [])

        container.start()
        container.stop()

        self.assertEqual(self.journal.entries, ["start:ManualWorker", "stop:ManualWorker"])
        self.assertEqual(len(listener.of_type(ContainerStartedEvent)), 1)
        self.assertEqual(len(listener.of_type(ContainerStoppedEvent)), 1)

    def test_stopped_components_not_stopped_again_on_close(self):
        module = WireBoxModule()
        with module:
            module.single[Worker]()
        container = self.container_for(module)

        container.stop()
        container.close()

        self.assertEqual(self.journal.entries, ["start:Worker", "stop:Worker"])


if __name__ == '__main__':
    unittest.main()
