import os as _os
import sys

import pytest
from docker.errors import NotFound

# Ensure project root is importable when running without an install.
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from ciw.errors import CommandFailure  # noqa: E402
from ciw.runtime import CooldownTracker  # noqa: E402


class FakeClock:
    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


class FakeContainer:
    def __init__(self, cid, name, image):
        self.id = cid
        self.name = name.lstrip("/")
        self.attrs = {"Id": cid, "Name": name, "Config": {"Image": image}}


class FakeContainers:
    def __init__(self):
        self.by_id = {}
        self.errors = {}

    def add(self, cid, name, image):
        self.by_id[cid] = FakeContainer(cid, name, image)

    def get(self, cid):
        if cid in self.errors:
            raise self.errors[cid]
        if cid not in self.by_id:
            raise NotFound(f"No such container: {cid}")
        return self.by_id[cid]


class FakeStream:
    """Yields scripted event messages, then optionally raises like a broken subscription."""

    def __init__(self, messages, error=None):
        self.messages = list(messages)
        self.error = error
        self.closed = False

    def __iter__(self):
        for m in self.messages:
            if self.closed:
                return
            yield m
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


class FakeDockerClient:
    def __init__(self, streams=None):
        self.containers = FakeContainers()
        self.streams = list(streams or [])
        self.events_calls = []
        self.on_exhausted = None

    def events(self, decode=False, filters=None):
        self.events_calls.append({"decode": decode, "filters": filters})
        if not self.streams:
            if self.on_exhausted:
                self.on_exhausted()
            return FakeStream([])
        return self.streams.pop(0)

    def ping(self):
        return True


class RecordingRunner:
    def __init__(self, fail_on=None, output="simulated failure"):
        self.calls = []
        self.fail_on = set(fail_on or [])
        self.output = output

    def run(self, command, *args):
        self.calls.append((command, *args))
        if command in self.fail_on:
            raise CommandFailure(command, self.output, 1)


def die_event(cid, action="die", type_="container"):
    return {"Type": type_, "Action": action, "Actor": {"ID": cid, "Attributes": {}}}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return CooldownTracker(clock=clock)


@pytest.fixture
def docker_client():
    return FakeDockerClient()


@pytest.fixture
def runner():
    return RecordingRunner()
