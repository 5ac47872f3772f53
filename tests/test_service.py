"""Tests for ChatService and EventLoopThread (irctransport/service.py)."""

from __future__ import annotations

import asyncio
from functools import partial

import pytest

from irctransport.agent import IrcAgent
from irctransport.service import ChatService, EventLoopThread
from irctransport.settings import MemorySettingsStore
from tests.mocks import FakePlayer, FakeTransport, make_config

TIMEOUT = 5


@pytest.fixture
def service():
    svc = ChatService(
        make_config(),
        MemorySettingsStore(),
        agent_factory=partial(IrcAgent, transport_factory=FakeTransport),
    )
    svc.start()
    yield svc
    svc.stop()


def _wait_connected(agent: IrcAgent) -> None:
    asyncio.run_coroutine_threadsafe(asyncio.sleep(0.05), agent._loop).result(TIMEOUT)
    assert agent.transport.connect.await_count == 1


class TestEventLoopThread:
    def test_runs_coroutines(self):
        thread = EventLoopThread(name="t")
        loop = thread.start()
        try:
            assert thread.running
            assert asyncio.run_coroutine_threadsafe(asyncio.sleep(0, result=42), loop).result(TIMEOUT) == 42
        finally:
            thread.stop()
        assert not thread.running
        assert loop.is_closed()

    def test_loop_before_start_raises(self):
        with pytest.raises(RuntimeError):
            EventLoopThread().loop

    def test_start_twice_returns_same_loop(self, loop_thread):
        assert loop_thread.start() is loop_thread.loop

    def test_stop_without_start_is_noop(self):
        EventLoopThread().stop()


class TestChatService:
    def test_get_or_create_starts_agent(self, service):
        agent = service.get_or_create_agent(FakePlayer("Steve"))
        _wait_connected(agent)
        assert agent.nick == "mc_Steve"
        assert service.get_agent("Steve") is agent

    def test_get_or_create_reuses_agent(self, service):
        player = FakePlayer("Steve")
        assert service.get_or_create_agent(player) is service.get_or_create_agent(player)

    def test_agents_keyed_by_player(self, service):
        steve = service.get_or_create_agent(FakePlayer("Steve"))
        alex = service.get_or_create_agent(FakePlayer("Alex"))
        assert steve is not alex
        assert alex.nick == "mc_Alex"

    def test_get_agent_unknown(self, service):
        assert service.get_agent("nobody") is None

    def test_remove_agent_quits(self, service):
        agent = service.get_or_create_agent(FakePlayer("Steve"))
        _wait_connected(agent)
        service.remove_agent("Steve").result(TIMEOUT)
        agent.transport.quit.assert_awaited_once_with("Leaving")
        assert service.get_agent("Steve") is None

    def test_remove_unknown_agent(self, service):
        assert service.remove_agent("nobody") is None

    def test_recreate_after_remove_builds_new_agent(self, service):
        player = FakePlayer("Steve")
        first = service.get_or_create_agent(player)
        service.remove_agent("Steve").result(TIMEOUT)
        second = service.get_or_create_agent(player)
        assert second is not first
        assert second.is_new_settings is False

    def test_stop_shuts_down_every_agent(self):
        svc = ChatService(
            make_config(),
            MemorySettingsStore(),
            agent_factory=partial(IrcAgent, transport_factory=FakeTransport),
        )
        svc.start()
        agents = [svc.get_or_create_agent(FakePlayer(name)) for name in ("Steve", "Alex")]
        for agent in agents:
            _wait_connected(agent)
        svc.stop()
        for agent in agents:
            assert agent.shutting_down
            agent.transport.quit.assert_awaited_once()
