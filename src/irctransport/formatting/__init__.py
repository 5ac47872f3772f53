"""Colour translation between IRC and game chat."""

from irctransport.formatting.colors import YELLOW, from_irc, strip_game_colors, to_irc

__all__ = ["YELLOW", "from_irc", "strip_game_colors", "to_irc"]
