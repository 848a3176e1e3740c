"""Shared fakes: a controllable presence sink and a manual clock."""

import pytest

from poe2_drpc.sink import PresenceRejected, SinkUnavailable


class FakeSink:
    """In-memory PresenceSink that can be told to fail."""

    def __init__(self):
        self.available = True
        self.reject = False
        self.fail_updates = False
        self.connects = 0
        self.updates = []
        self.clears = 0
        self.closed = False
        # Calls that raise an unexpected error, e.g. {"connect", "update"}
        self.crash_on = set()

    def connect(self):
        self.connects += 1
        if "connect" in self.crash_on:
            raise RuntimeError("sink crashed")
        if not self.available:
            raise SinkUnavailable("discord not running")

    def update(self, payload):
        if "update" in self.crash_on:
            raise RuntimeError("sink crashed")
        if not self.available or self.fail_updates:
            raise SinkUnavailable("pipe closed")
        if self.reject:
            raise PresenceRejected("bad payload")
        self.updates.append(payload)

    def clear(self):
        if not self.available:
            raise SinkUnavailable("pipe closed")
        self.clears += 1

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def clock():
    return FakeClock()
