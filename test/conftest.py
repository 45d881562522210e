"""
Shared fixtures for wotkit tests.

- scheduler: private Scheduler per test, stopped on teardown
- recorder: factory for subscribers that record pushed messages
- serve: async context manager running a WebThingServer on an ephemeral port
- waitFor: poll a predicate until it holds
"""

import contextlib
import threading
import time

import orjson
import pytest

from wotkit.core import Scheduler, TransportError
from wotkit.server import WebThingServer
from wotkit.server.discovery import Advertiser


class RecordingSubscriber:
    """Subscriber that keeps every pushed message (decoded)"""

    def __init__(self, failing: bool = False):
        self.failing = failing
        self.messages = []
        self._lock = threading.Lock()

    def push(self, message: str):
        if self.failing:
            raise TransportError("connection gone")
        with self._lock:
            self.messages.append(orjson.loads(message))

    def ofType(self, messageType: str) -> list:
        with self._lock:
            return [m['data'] for m in self.messages if m['messageType'] == messageType]

    def actionStatuses(self, actionName: str, actionId: str) -> list:
        return [
            d[actionName]['status'] for d in self.ofType('actionStatus')
            if actionName in d and d[actionName]['id'] == actionId
        ]


class RecordingAdvertiser(Advertiser):
    """In-memory presence advertiser"""

    def __init__(self):
        self.calls = []
        self.registered = None

    async def register(self, name: str, port: int, tls: bool = False, path: str = '/'):
        self.calls.append('register')
        self.registered = {'name': name, 'port': port, 'tls': tls, 'path': path}

    async def unregister(self):
        self.calls.append('unregister')
        self.registered = None


def _waitFor(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def waitFor():
    return _waitFor


@pytest.fixture
def scheduler():
    """Create a private scheduler for action execution"""
    sched = Scheduler(name='test-scheduler')
    sched.start()
    yield sched
    sched.stop()


@pytest.fixture
def recorder():
    return RecordingSubscriber


@pytest.fixture
def advertiser():
    return RecordingAdvertiser()


@pytest.fixture
def serve(advertiser):
    """Run a server on 127.0.0.1 with an ephemeral port; yields (server, baseUrl)"""

    @contextlib.asynccontextmanager
    async def _serve(things, **kwargs):
        server = WebThingServer(things, port=0, host='127.0.0.1', advertiser=advertiser, **kwargs)
        await server.start()
        try:
            yield server, f"http://127.0.0.1:{server.port}"
        finally:
            await server.stop()

    return _serve
