"""Shared fixtures."""

from __future__ import annotations

import pytest

from irctransport.service import EventLoopThread


@pytest.fixture
def loop_thread():
    """A running background event loop, stopped after the test."""
    thread = EventLoopThread(name="test-loop")
    thread.start()
    yield thread
    thread.stop()
