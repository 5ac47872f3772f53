"""Agent settings record."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class AgentSettings:
    """Settings persisted per player, keyed by player name."""

    player_name: str
    irc_nick: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, player_name: str, data: dict[str, Any]) -> AgentSettings | None:
        """Build from a stored mapping; None if it has no usable nick."""
        nick = data.get("irc_nick")
        if not isinstance(nick, str) or not nick:
            return None
        return cls(player_name=player_name, irc_nick=nick)


def default_nick(player_name: str, prefix: str = "", suffix: str = "") -> str:
    """IRC nick for a player with no stored settings."""
    return f"{prefix}{player_name}{suffix}"
