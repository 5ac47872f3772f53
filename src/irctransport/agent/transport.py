"""IRC transport: pydle client forwarding parsed events to an agent."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import pydle
from loguru import logger

from irctransport.core.constants import (
    ERR_BADCHANNELKEY,
    ERR_INVITEONLYCHAN,
    ERR_NICKNAMEINUSE,
    ERR_NOSUCHCHANNEL,
    ERR_NOSUCHNICK,
)

if TYPE_CHECKING:
    from irctransport.agent.base import EventHandler


def numeric_payload(params: list[str] | tuple[str, ...]) -> str:
    """Rebuild a numeric's parameters as a wire-style string: 'a b :trailing'."""
    params = [str(p) for p in params]
    if not params:
        return ""
    if len(params) == 1:
        return params[0]
    return " ".join(params[:-1]) + " :" + params[-1]


class IRCTransport(pydle.Client):
    """One IRC session. Owns no game logic; every parsed event goes to the handler."""

    # Reconnect policy belongs to ConnectionManager
    RECONNECT_ON_ERROR: ClassVar[bool] = False

    def __init__(
        self,
        handler: EventHandler,
        nick: str,
        channels: list[str] | None = None,
        **kwargs,
    ):
        super().__init__(nick, **kwargs)
        self._handler = handler
        self._channels: list[str] = channels or []
        self._names: dict[str, list[str]] = {}

    def _emit(self, callback: str, *args) -> None:
        """Invoke a handler callback; a failing handler must not stop the read loop."""
        try:
            getattr(self._handler, callback)(*args)
        except Exception as exc:
            logger.exception("IRC handler {} failed: {}", callback, exc)

    async def on_connect(self):
        """After registration, join configured channels."""
        await super().on_connect()
        for channel in self._channels:
            try:
                await self.join(channel)
            except pydle.AlreadyInChannel:
                pass
        self._emit("on_connect")

    async def on_disconnect(self, expected: bool) -> None:
        await super().on_disconnect(expected)
        self._names.clear()
        logger.debug("IRC disconnected (expected={})", expected)
        self._emit("on_disconnect", expected)

    async def on_join(self, channel, user):
        await super().on_join(channel, user)
        self._emit("on_join", channel, user)

    async def on_part(self, channel, user, message=None):
        await super().on_part(channel, user, message)
        self._emit("on_part", channel, user, message)

    async def on_kick(self, channel, target, by, reason=None):
        await super().on_kick(channel, target, by, reason)
        self._emit("on_kick", channel, by, target, reason)

    async def on_quit(self, user, message=None):
        await super().on_quit(user, message)
        self._emit("on_quit", user, message)

    async def on_nick_change(self, old, new):
        await super().on_nick_change(old, new)
        if old == pydle.client.DEFAULT_NICKNAME:
            # Synthetic NICK pydle emits on registration; on_connect reports the confirmed nick
            return
        self._emit("on_nick_change", old, new)

    async def on_channel_message(self, target, by, message):
        await super().on_channel_message(target, by, message)
        self._emit("on_message", target, by, message)

    async def on_private_message(self, target, by, message):
        await super().on_private_message(target, by, message)
        self._emit("on_private_message", by, message)

    async def on_ctcp_action(self, by, target, contents):
        """Handle /me (CTCP ACTION)."""
        self._emit("on_action", by, target, contents or "")

    async def on_topic_change(self, channel, message, by):
        await super().on_topic_change(channel, message, by)
        self._emit("on_topic", channel, message, by, True)

    async def on_raw_332(self, message):
        """RPL_TOPIC: topic on join or in reply to TOPIC."""
        await super().on_raw_332(message)
        params = getattr(message, "params", [])
        if len(params) >= 3:
            self._emit("on_topic", params[1], params[2], None, False)

    async def on_raw_353(self, message):
        """RPL_NAMREPLY: collect names until RPL_ENDOFNAMES, including channels we are not in."""
        await super().on_raw_353(message)
        params = getattr(message, "params", [])
        if len(params) < 4:
            return
        channel, names = params[2], params[3]
        self._names.setdefault(channel, []).extend(n for n in names.split(" ") if n)

    async def on_raw_366(self, message):
        """RPL_ENDOFNAMES: report the collected user list."""
        params = getattr(message, "params", [])
        if len(params) < 2:
            return
        channel = params[1]
        self._emit("on_user_list", channel, self._names.pop(channel, []))

    def _numeric(self, code: int, message) -> None:
        self._emit("on_server_response", code, numeric_payload(getattr(message, "params", [])))

    async def on_raw_401(self, message):
        """ERR_NOSUCHNICK."""
        await super().on_raw_401(message)
        self._numeric(ERR_NOSUCHNICK, message)

    async def on_raw_403(self, message):
        """ERR_NOSUCHCHANNEL."""
        self._numeric(ERR_NOSUCHCHANNEL, message)

    async def on_raw_433(self, message):
        """ERR_NICKNAMEINUSE. pydle picks the next nick while registering."""
        await super().on_raw_433(message)
        self._numeric(ERR_NICKNAMEINUSE, message)

    async def on_raw_473(self, message):
        """ERR_INVITEONLYCHAN."""
        self._numeric(ERR_INVITEONLYCHAN, message)

    async def on_raw_475(self, message):
        """ERR_BADCHANNELKEY."""
        self._numeric(ERR_BADCHANNELKEY, message)
