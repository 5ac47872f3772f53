"""Chat service: one background event loop hosting every player's IRC agent."""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from irctransport.agent import IrcAgent

if TYPE_CHECKING:
    from irctransport.agent import Player
    from irctransport.config import Config
    from irctransport.settings import SettingsStore


class EventLoopThread:
    """asyncio loop running forever in a daemon thread."""

    def __init__(self, name: str = "irctransport-loop") -> None:
        self._name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("Event loop thread not started")
        return self._loop

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, timeout: float = 5.0) -> asyncio.AbstractEventLoop:
        """Start the thread and block until its loop is running."""
        if self.running:
            return self.loop
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name=self._name)
        self._thread.start()
        if not self._ready.wait(timeout):
            raise RuntimeError(f"Event loop did not start within {timeout}s")
        return self.loop

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            logger.debug("Event loop {} closed", self._name)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop, cancel leftover tasks and join the thread."""
        if self._loop is None or self._thread is None:
            return
        if not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Event loop thread {} did not stop within {}s", self._name, timeout)
        self._thread = None
        self._loop = None


class ChatService:
    """Registry of IRC agents keyed by player name, all sharing one loop thread."""

    def __init__(
        self,
        config: Config,
        store: SettingsStore,
        *,
        deliver: Callable[[Callable[[], None]], None] | None = None,
        agent_factory: Callable[..., IrcAgent] = IrcAgent,
    ) -> None:
        self._config = config
        self._store = store
        self._deliver = deliver
        self._agent_factory = agent_factory
        self._agents: dict[str, IrcAgent] = {}
        self._lock = threading.Lock()
        self._loop_thread = EventLoopThread()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop_thread.loop

    def start(self) -> None:
        self._loop_thread.start()
        logger.info(
            "Chat service started (server {}:{}, tls={})",
            self._config.irc_server,
            self._config.irc_port,
            self._config.irc_tls,
        )

    def get_agent(self, player_name: str) -> IrcAgent | None:
        with self._lock:
            return self._agents.get(player_name)

    def get_or_create_agent(self, player: Player) -> IrcAgent:
        """Return the player's agent, creating and starting one on first use."""
        with self._lock:
            agent = self._agents.get(player.name)
            if agent is not None and not agent.shutting_down:
                return agent
            agent = self._agent_factory(self._config, player, self._store, deliver=self._deliver)
            self._agents[player.name] = agent
        agent.start(self.loop)
        logger.info("Created IRC agent {} for player {}", agent.nick, player.name)
        return agent

    def remove_agent(self, player_name: str) -> concurrent.futures.Future[None] | None:
        """Shut down and forget the player's agent."""
        with self._lock:
            agent = self._agents.pop(player_name, None)
        if agent is None:
            return None
        logger.info("Removing IRC agent for player {}", player_name)
        return agent.shutdown()

    def stop(self, timeout: float = 5.0) -> None:
        """Shut down every agent, give the QUITs a moment, then stop the loop."""
        with self._lock:
            agents = list(self._agents.values())
            self._agents.clear()
        futures = [f for f in (a.shutdown() for a in agents) if f is not None]
        if futures:
            _, not_done = concurrent.futures.wait(futures, timeout=timeout)
            if not_done:
                logger.warning("{} agent(s) did not quit within {}s", len(not_done), timeout)
        self._loop_thread.stop(timeout)
        logger.info("Chat service stopped ({} agent(s))", len(agents))
