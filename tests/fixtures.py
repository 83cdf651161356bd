"""
Test Fixtures

Common test classes used across test modules
"""

from typing import List, Optional

from wirebox import DisposableComponent, InitializingComponent, Lifecycle


class Database:
    """Test database class"""

    def __init__(self):
        self.name = "TestDB"


class CacheService:
    """Test cache service"""

    def __init__(self):
        self.cache = {}


class UserRepository:
    """Test repository with dependencies"""

    def __init__(self, db: Database, cache: CacheService):
        self.db = db
        self.cache = cache


class UserService:
    """Test service depending on a repository"""

    def __init__(self, repo: UserRepository):
        self.repo = repo


class CounterService:
    """Service with mutable state for testing singleton behavior"""

    def __init__(self):
        self.counter = 0

    def increment(self):
        self.counter += 1
        return self.counter


class ServiceWithoutHint:
    """Service with missing type hint - for error testing"""

    def __init__(self, dependency):  # No type hint!
        self.dependency = dependency


class Failing:
    """Constructor always raises"""

    def __init__(self):
        raise RuntimeError("boom")


# Interface with several implementations

class Notifier:
    """Notification interface"""

    def send(self, message: str) -> str:
        raise NotImplementedError


class EmailNotifier(Notifier):
    def send(self, message: str) -> str:
        return f"email: {message}"


class SmsNotifier(Notifier):
    def send(self, message: str) -> str:
        return f"sms: {message}"


class PushNotifier(Notifier):
    def send(self, message: str) -> str:
        return f"push: {message}"


class NotificationService:
    """Scalar dependency on Notifier"""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier


class Broadcaster:
    """Collection dependency on Notifier"""

    def __init__(self, notifiers: List[Notifier]):
        self.notifiers = notifiers


class OptionalConsumer:
    """Optional dependency on Notifier"""

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier


# Cycles

class PropertyA:
    """Half of a property-level cycle"""
    b: 'PropertyB'


class PropertyB:
    """Other half of a property-level cycle"""
    a: PropertyA


class ConstructorA:
    """Half of a constructor-level cycle"""

    def __init__(self, b: 'ConstructorB'):
        self.b = b


class ConstructorB:
    """Other half of a constructor-level cycle"""

    def __init__(self, a: ConstructorA):
        self.a = a


# Lifecycle recording

class Journal:
    """Shared record of lifecycle callbacks, in call order"""

    def __init__(self):
        self.entries: List[str] = []

    def record(self, entry: str) -> None:
        self.entries.append(entry)


class TrackedResource(InitializingComponent, DisposableComponent):
    """Records its init and destroy callbacks in a Journal"""

    def __init__(self, journal: Journal):
        self.journal = journal
        self.label = type(self).__name__
        self.destroyed = False

    def after_properties_set(self) -> None:
        self.journal.record(f"init:{self.label}")

    def destroy(self) -> None:
        self.destroyed = True
        self.journal.record(f"destroy:{self.label}")


class Worker(Lifecycle):
    """Lifecycle component recording start and stop"""

    phase = 0

    def __init__(self, journal: Journal):
        self.journal = journal
        self._running = False

    def start(self) -> None:
        self._running = True
        self.journal.record(f"start:{type(self).__name__}")

    def stop(self) -> None:
        self._running = False
        self.journal.record(f"stop:{type(self).__name__}")

    def is_running(self) -> bool:
        return self._running
