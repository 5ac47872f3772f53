"""IRCTransport: per-player IRC agents for game chat."""

__version__ = "0.4.0"
