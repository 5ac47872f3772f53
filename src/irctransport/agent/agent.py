"""Per-player IRC agent: event notifications in, chat commands out."""

from __future__ import annotations

import asyncio
import re
import threading
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any

import pydle
from loguru import logger

from irctransport.agent.connection import ConnectionManager
from irctransport.agent.transport import IRCTransport
from irctransport.core.constants import DISCONNECTED_NOTICE, ERROR_NUMERICS, NO_ACTIVE_CHANNEL_NOTICE
from irctransport.core.errors import AgentClosedError
from irctransport.formatting import YELLOW, from_irc, to_irc
from irctransport.settings import AgentSettings, default_nick

if TYPE_CHECKING:
    from irctransport.agent.base import Player
    from irctransport.config import Config
    from irctransport.settings import SettingsStore

# "<nick> <channel> :<text>" or "<channel> :<text>"
_NUMERIC_RE = re.compile(r"^(?:\S+ )?(\S+) :(.*)$")

# Errors from a single wire command; logged, never raised to the caller
_WIRE_ERRORS = (pydle.Error, ConnectionError, ValueError)


class IrcAgent:
    """One player's IRC presence.

    Construction loads (or creates) the player's settings and builds the
    transport; no network I/O happens until ``start(loop)``. Handler methods
    run on the loop thread. The outbound methods are safe to call from any
    thread and return a ``concurrent.futures.Future`` (or None when nothing
    was scheduled).
    """

    def __init__(
        self,
        config: Config,
        player: Player,
        store: SettingsStore,
        *,
        transport_factory: Callable[..., Any] = IRCTransport,
        log: Any = None,
        deliver: Callable[[Callable[[], None]], None] | None = None,
    ) -> None:
        self.config = config
        self.player = player
        self.store = store
        self.log = log if log is not None else logger.bind(player=player.name)
        self._deliver = deliver
        self._lock = threading.RLock()
        self._active_channel: str | None = None
        self._shutting_down = False
        self._loop: asyncio.AbstractEventLoop | None = None

        settings = store.find(player.name)
        if settings is None:
            settings = AgentSettings(
                player_name=player.name,
                irc_nick=default_nick(player.name, config.nick_prefix, config.nick_suffix),
            )
            self.is_new_settings = True
            if not store.save(settings):
                self.log.warning("Could not save new settings for player '{}'", player.name)
        else:
            self.is_new_settings = False
            self.log.info("Player '{}' using persistent IRC nick '{}'", player.name, settings.irc_nick)
        self._settings = settings

        self.transport = transport_factory(
            self,
            settings.irc_nick,
            channels=config.irc_autojoin_channels,
            username=player.name,
            realname=player.name,
        )
        self.connection = ConnectionManager(self, config)

    # State

    @property
    def shutting_down(self) -> bool:
        with self._lock:
            return self._shutting_down

    @property
    def active_channel(self) -> str | None:
        with self._lock:
            return self._active_channel

    @property
    def settings(self) -> AgentSettings:
        with self._lock:
            return self._settings

    @property
    def nick(self) -> str:
        """Nick confirmed by the server once registered, else the configured one."""
        if getattr(self.transport, "registered", False) and self.transport.nickname:
            return self.transport.nickname
        return self.settings.irc_nick

    @property
    def is_connected(self) -> bool:
        return bool(self.transport.connected)

    # Lifecycle

    def start(self, loop: asyncio.AbstractEventLoop) -> Future[bool | None]:
        """Submit the first connection attempt to ``loop``."""
        with self._lock:
            if self._shutting_down:
                raise AgentClosedError(
                    f"Agent for '{self.player.name}' was shut down",
                    code="agent_closed",
                    details={"player": self.player.name},
                )
            self._loop = loop
        return self._submit(self._connect())

    async def _connect(self) -> bool | None:
        task = self.connection.schedule()
        if task is None:
            return None
        return await asyncio.shield(task)

    def shutdown(self) -> Future[None] | None:
        """Quit IRC and stop reconnecting. Only the first call has any effect."""
        with self._lock:
            if self._shutting_down:
                return None
            self._shutting_down = True
            loop = self._loop
        self.log.info("Shutting down IRC agent (nick={})", self.nick)
        if loop is None:
            return None
        return self._submit(self._shutdown())

    async def _shutdown(self) -> None:
        await self.connection.cancel()
        if self.transport.connected:
            try:
                await self.transport.quit(self.config.irc_quit_message)
            except _WIRE_ERRORS as exc:
                self.log.warning("QUIT failed: {}", exc)

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> Future[Any] | None:
        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            self.log.warning("Agent not started; dropping command")
            return None
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        future.add_done_callback(self._log_failure)
        return future

    def _log_failure(self, future: Future[Any]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.log.opt(exception=exc).error("IRC command failed: {}", exc)

    # Player output

    def _notify(self, text: str) -> None:
        """Deliver a line to the player. A failing player never breaks dispatch."""

        def send() -> None:
            try:
                self.player.send_message(text)
            except Exception as exc:
                self.log.exception("Failed to deliver message to player: {}", exc)

        if self._deliver is None:
            send()
            return
        try:
            self._deliver(send)
        except Exception as exc:
            self.log.exception("Failed to schedule delivery to player: {}", exc)

    # Inbound events

    def on_connect(self) -> None:
        self.log.info("IRC registered as {}", self.nick)

    def on_disconnect(self, expected: bool) -> None:
        self._notify(DISCONNECTED_NOTICE)
        if self.shutting_down:
            self.log.debug("Disconnected during shutdown; not reconnecting")
            return
        self.log.warning("IRC disconnected (expected={}); reconnecting", expected)
        self.connection.schedule(after_drop=True)

    def on_action(self, sender: str, target: str, action: str) -> None:
        self._notify(f"[{target}] * {sender} {from_irc(action)}")

    def on_join(self, channel: str, sender: str) -> None:
        if self.transport.is_same_nick(sender, self.nick):
            with self._lock:
                self._active_channel = channel
            self.log.debug("Active channel is now {}", channel)
        self._notify(f"{YELLOW}[{channel}] {sender} has joined.")

    def on_kick(self, channel: str, kicker: str, recipient: str, reason: str | None) -> None:
        self._notify(f"{YELLOW}[{channel}] {recipient} kicked by {kicker}: {from_irc(reason or '')}")

    def on_message(self, channel: str, sender: str, message: str) -> None:
        self._notify(f"[{channel}] {sender}: {from_irc(message)}")

    def on_nick_change(self, old_nick: str, new_nick: str) -> None:
        own = old_nick == self.player.display_name or self.transport.is_same_nick(
            new_nick, self.transport.nickname
        )
        if own:
            with self._lock:
                self.player.display_name = new_nick
                self._settings.irc_nick = new_nick
                settings = AgentSettings(self._settings.player_name, new_nick)
            if self.store.save(settings):
                self.log.info("Saved IRC nick '{}'", new_nick)
            else:
                self.log.warning("Could not save IRC nick '{}'", new_nick)
        self._notify(f"{old_nick} is now known as {new_nick}")

    def on_part(self, channel: str, sender: str, reason: str | None) -> None:
        self._notify(f"{YELLOW}[{channel}] {sender} has parted.")

    def on_private_message(self, sender: str, message: str) -> None:
        self._notify(f"{sender}: {from_irc(message)}")

    def on_quit(self, sender: str, reason: str | None) -> None:
        self._notify(f"{YELLOW}{sender} has quit: {from_irc(reason or '')}")

    def on_server_response(self, code: int, response: str) -> None:
        if code not in ERROR_NUMERICS:
            return
        match = _NUMERIC_RE.match(response)
        if match is None:
            self.log.debug("Unparsed server response {}: {!r}", code, response)
            return
        target, message = match.groups()
        self._notify(f"{YELLOW}[{target}] {message}")

    def on_topic(self, channel: str, topic: str, setter: str | None, changed: bool) -> None:
        label = "Topic changed" if changed else "Topic"
        self._notify(f"{YELLOW}[{channel}] {label}: {from_irc(topic)}")

    def on_user_list(self, channel: str, users: list[str]) -> None:
        self._notify(f"{channel} members: {' '.join(users)}")

    # Outbound commands

    def set_active_channel(self, channel: str) -> None:
        with self._lock:
            self._active_channel = channel

    def _require_channel(self, command: str) -> str | None:
        channel = self.active_channel
        if channel is None:
            self.log.warning("{} dropped: no active channel", command)
            self._notify(NO_ACTIVE_CHANNEL_NOTICE)
        return channel

    async def _wire(self, command: str, func: Callable[..., Coroutine[Any, Any, Any]], *args: Any) -> bool:
        """Run one transport call. Disconnected sessions and wire errors are logged, not raised."""
        if not self.transport.connected:
            self.log.warning("{} dropped: not connected", command)
            return False
        try:
            await func(*args)
        except _WIRE_ERRORS as exc:
            self.log.warning("{} failed: {}", command, exc)
            return False
        return True

    def send_message(self, text: str) -> Future[Any] | None:
        """Say ``text`` in the active channel; echoed to the player when connected."""
        channel = self._require_channel("PRIVMSG")
        if channel is None:
            return None
        if self.is_connected:
            self._notify(f"[{channel}] {self.player.display_name}: {text}")
        return self._submit(self._wire("PRIVMSG", self.transport.message, channel, to_irc(text)))

    def send_action(self, text: str) -> Future[Any] | None:
        """/me in the active channel; always echoed."""
        channel = self._require_channel("ACTION")
        if channel is None:
            return None
        self._notify(f"[{channel}] * {self.player.display_name} {text}")
        return self._submit(self._wire("ACTION", self.transport.ctcp, channel, "ACTION", to_irc(text)))

    def request_topic(self) -> Future[Any] | None:
        channel = self._require_channel("TOPIC")
        if channel is None:
            return None
        return self._submit(self._wire("TOPIC", self.transport.rawmsg, "TOPIC", channel))

    def set_topic(self, text: str) -> Future[Any] | None:
        channel = self._require_channel("TOPIC")
        if channel is None:
            return None
        return self._submit(self._wire("TOPIC", self.transport.rawmsg, "TOPIC", channel, to_irc(text)))

    def request_names(self) -> Future[Any] | None:
        channel = self._require_channel("NAMES")
        if channel is None:
            return None
        return self._submit(self._wire("NAMES", self.transport.rawmsg, "NAMES", channel))

    def join(self, channel: str, key: str | None = None) -> Future[Any] | None:
        return self._submit(self._wire("JOIN", self.transport.join, channel, key))

    def part(self, channel: str | None = None, reason: str | None = None) -> Future[Any] | None:
        """Leave ``channel``, defaulting to the active one."""
        if channel is None:
            channel = self._require_channel("PART")
            if channel is None:
                return None
        return self._submit(self._wire("PART", self.transport.part, channel, reason))

    def change_nick(self, nick: str) -> Future[Any] | None:
        """Request a new nick. Persisted once the server confirms it."""
        return self._submit(self._wire("NICK", self.transport.set_nickname, nick))
