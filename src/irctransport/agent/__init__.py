"""Per-player IRC agent, its transport and connection policy."""

from irctransport.agent.agent import IrcAgent
from irctransport.agent.base import EventHandler, Player
from irctransport.agent.connection import ConnectionManager
from irctransport.agent.transport import IRCTransport, numeric_payload

__all__ = [
    "ConnectionManager",
    "EventHandler",
    "IRCTransport",
    "IrcAgent",
    "Player",
    "numeric_payload",
]
