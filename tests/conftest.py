"""
Shared fixtures
"""

import pytest


class FakeClock:
    """Epoch-milliseconds clock advanced by hand."""

    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds * 1000


@pytest.fixture
def clock():
    return FakeClock()
