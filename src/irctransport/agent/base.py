"""Interfaces between the agent, its transport and the host game."""

from __future__ import annotations

from typing import Protocol


class Player(Protocol):
    """Host-side player. send_message must be safe to call from the agent's loop thread."""

    name: str
    display_name: str

    def send_message(self, text: str) -> None: ...


class EventHandler(Protocol):
    """Callbacks the transport invokes on its event loop, one per parsed IRC event."""

    def on_connect(self) -> None: ...
    def on_disconnect(self, expected: bool) -> None: ...
    def on_action(self, sender: str, target: str, action: str) -> None: ...
    def on_join(self, channel: str, sender: str) -> None: ...
    def on_kick(self, channel: str, kicker: str, recipient: str, reason: str | None) -> None: ...
    def on_message(self, channel: str, sender: str, message: str) -> None: ...
    def on_nick_change(self, old_nick: str, new_nick: str) -> None: ...
    def on_part(self, channel: str, sender: str, reason: str | None) -> None: ...
    def on_private_message(self, sender: str, message: str) -> None: ...
    def on_quit(self, sender: str, reason: str | None) -> None: ...
    def on_server_response(self, code: int, response: str) -> None: ...
    def on_topic(self, channel: str, topic: str, setter: str | None, changed: bool) -> None: ...
    def on_user_list(self, channel: str, users: list[str]) -> None: ...
