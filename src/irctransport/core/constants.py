"""IRC protocol constants."""

from __future__ import annotations

from typing import Final

ERR_NOSUCHNICK: Final = 401
ERR_NOSUCHCHANNEL: Final = 403
ERR_NICKNAMEINUSE: Final = 433
ERR_INVITEONLYCHAN: Final = 473
ERR_BADCHANNELKEY: Final = 475

# Numerics surfaced to the player as "[channel] message"
ERROR_NUMERICS: frozenset[int] = frozenset(
    {
        ERR_NOSUCHNICK,
        ERR_NOSUCHCHANNEL,
        ERR_NICKNAMEINUSE,
        ERR_INVITEONLYCHAN,
        ERR_BADCHANNELKEY,
    }
)

CHANNEL_PREFIXES: Final = ("#", "&", "+", "!")

DEFAULT_PORT: Final = 6667
DEFAULT_QUIT_MESSAGE: Final = "Leaving"
DISCONNECTED_NOTICE: Final = "ChatService Disconnected."
NO_ACTIVE_CHANNEL_NOTICE: Final = "§eNo active channel; join one first."

# A session that stays up this long resets the reconnect backoff
STABLE_SESSION_SECONDS: Final = 60.0
