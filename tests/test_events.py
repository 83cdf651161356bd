"""
Event Tests

Tests for event publication through a container:
- Early events buffered until refresh registers the listeners
- Listener filtering by event type and ordering
- Listener components discovered by type
- Propagation from child to parent containers
- Listener failures and the multicaster error handler
"""

import unittest

from wirebox import (
    ComponentDefinition,
    ContainerClosedEvent,
    ContainerRefreshedEvent,
    ContainerSettings,
    ContainerStartedEvent,
    Event,
    EventListener,
    EventMulticaster,
    FunctionEventListener,
    MissingConfigurationError,
    PayloadEvent,
    WireBoxModule,
)

from conftest import RecordingListener, WireBoxTestCase, create_simple_module
from fixtures import Database


class OrderPlaced(Event):
    def __init__(self, source, order_id):
        super().__init__(source)
        self.order_id = order_id


class AuditListener(EventListener):
    """Listener component receiving refresh events only"""

    event_type = ContainerRefreshedEvent

    def __init__(self):
        self.events = []

    def on_event(self, event):
        self.events.append(event)


class TestEarlyEvents(WireBoxTestCase):
    """Tests for events published before refresh"""

    def test_buffered_until_refresh(self):
        """Events published before refresh are delivered once, in order"""
        container = self.new_container(refresh=False)
        listener = RecordingListener()
        container.add_listener(listener)

        container.publish("first")
        container.publish("second")
        self.assertEqual(listener.events, [])

        container.refresh()

        payloads = [event.payload for event in listener.of_type(PayloadEvent)]
        self.assertEqual(payloads, ["first", "second"])
        self.assertIsInstance(listener.events[-1], ContainerRefreshedEvent)

    def test_buffered_after_failed_refresh(self):
        """Events published between a failed and a successful refresh are kept"""
        container = self.new_container(
            refresh=False, settings=ContainerSettings(use_environment_variables=False)
        )
        container.environment.set_required_properties("app.name")
        listener = RecordingListener(PayloadEvent)
        container.add_listener(listener)

        with self.assertRaises(MissingConfigurationError):
            container.refresh()
        container.publish("between")
        container.environment.set_property("app.name", "demo")
        container.refresh()

        self.assertEqual([event.payload for event in listener.events], ["between"])


class TestDelivery(WireBoxTestCase):
    """Tests for delivery to registered listeners"""

    def test_payload_event(self):
        """Non-Event objects are wrapped in a PayloadEvent"""
        container = self.new_container()
        listener = container.add_listener(RecordingListener(PayloadEvent))

        published = container.publish({"user": 42})

        self.assertIsInstance(published, PayloadEvent)
        self.assertIs(published.source, container)
        self.assertEqual(listener.events, [published])
        self.assertEqual(listener.events[0].payload, {"user": 42})

    def test_event_type_filtering(self):
        """A listener only receives events of its event_type"""
        container = self.new_container(refresh=False)
        placed = []
        container.add_listener(placed.append, OrderPlaced)
        container.refresh()

        container.publish("ignored")
        container.publish(OrderPlaced(self, 7))

        self.assertEqual([event.order_id for event in placed], [7])

    def test_listener_order(self):
        """Ordered listeners run first, ascending; the rest by registration"""
        container = self.new_container()
        calls = []
        container.add_listener(FunctionEventListener(lambda e: calls.append("plain"), PayloadEvent))
        container.add_listener(FunctionEventListener(lambda e: calls.append("late"), PayloadEvent, order=2))
        container.add_listener(FunctionEventListener(lambda e: calls.append("early"), PayloadEvent, order=1))

        container.publish("go")

        self.assertEqual(calls, ["early", "late", "plain"])

    def test_remove_listener(self):
        container = self.new_container()
        listener = container.add_listener(RecordingListener(PayloadEvent))

        container.remove_listener(listener)
        container.publish("unheard")

        self.assertEqual(listener.events, [])
        self.assertNotIn(listener, container.listeners)

    def test_listener_component(self):
        """EventListener components are registered by type during refresh"""
        module = create_simple_module(AuditListener)
        container = self.new_container(module)

        audit = container.get_instance(AuditListener)

        self.assertEqual(len(audit.events), 1)
        self.assertIs(audit.events[0].container, container)

    def test_start_event(self):
        container = self.new_container()
        listener = container.add_listener(RecordingListener(ContainerStartedEvent))

        container.start()

        self.assertEqual(len(listener.events), 1)

    def test_listener_error_propagates(self):
        """Without an error handler, a listener exception reaches the publisher"""
        container = self.new_container()

        def explode(event):
            raise RuntimeError("listener broke")

        container.add_listener(explode, PayloadEvent)

        with self.assertRaises(RuntimeError):
            container.publish("boom")

    def test_error_handler(self):
        """A custom multicaster with an error handler keeps delivering"""
        errors = []
        module = WireBoxModule()
        module.define("event_multicaster", ComponentDefinition(
            component_type=EventMulticaster,
            constructor_kwargs={"error_handler": errors.append},
        ))
        container = self.new_container(module)
        received = []

        def explode(event):
            raise RuntimeError("listener broke")

        container.add_listener(explode, PayloadEvent)
        container.add_listener(received.append, PayloadEvent)

        container.publish("still delivered")

        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], RuntimeError)
        self.assertEqual([event.payload for event in received], ["still delivered"])


class TestParentPropagation(WireBoxTestCase):
    """Tests for events crossing into the parent container"""

    def test_child_events_reach_parent(self):
        """Events published in a child are also delivered to the parent"""
        parent = self.new_container(create_simple_module(Database), name="parent")
        parent_listener = parent.add_listener(RecordingListener())
        child = self.new_container(parent=parent, name="child")
        child_listener = child.add_listener(RecordingListener(PayloadEvent))

        child.publish("hello")

        self.assertEqual([e.payload for e in child_listener.events], ["hello"])
        payloads = [e.payload for e in parent_listener.of_type(PayloadEvent)]
        self.assertEqual(payloads, ["hello"])
        refreshed = parent_listener.of_type(ContainerRefreshedEvent)
        self.assertEqual([e.container for e in refreshed], [child])

    def test_parent_events_stay_in_parent(self):
        """Events published in the parent do not reach its children"""
        parent = self.new_container(name="parent")
        child = self.new_container(parent=parent, name="child")
        child_listener = child.add_listener(RecordingListener(PayloadEvent))

        parent.publish("parent only")

        self.assertEqual(child_listener.events, [])

    def test_child_close_event_reaches_parent(self):
        parent = self.new_container(name="parent")
        parent_listener = parent.add_listener(RecordingListener(ContainerClosedEvent))
        child = self.new_container(parent=parent, name="child")

        child.close()

        self.assertEqual([e.container for e in parent_listener.events], [child])


if __name__ == '__main__':
    unittest.main()
