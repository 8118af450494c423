"""Shared fixtures for the V2X-CPM test suite."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


class ManualTimer:
    """Timer that only fires when the test says so."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


class ManualTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if t.started and not t.cancelled]


@pytest.fixture
def manual_timers():
    return ManualTimerFactory()


@pytest.fixture
def stub_projector():
    """Projection that places every reference position at grid (1000, 2000)."""
    return lambda lat, lon: (1000, 2000)
