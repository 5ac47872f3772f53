"""Convert between IRC control codes and game chat colour tokens."""

from __future__ import annotations

import re

# IRC control codes
BOLD = "\x02"
COLOR = "\x03"
HEX_COLOR = "\x04"
RESET = "\x0F"
MONOSPACE = "\x11"
REVERSE = "\x16"
ITALIC = "\x1D"
STRIKETHROUGH = "\x1E"
UNDERLINE = "\x1F"

# Game chat tokens (section sign + code)
GAME_PREFIX = "§"
GAME_RESET = GAME_PREFIX + "r"
YELLOW = GAME_PREFIX + "e"

# mIRC palette 0-15 -> game colour code
_IRC_TO_GAME_COLOR: dict[int, str] = {
    0: "f",  # white
    1: "0",  # black
    2: "1",  # navy
    3: "2",  # green
    4: "c",  # red
    5: "4",  # maroon
    6: "5",  # purple
    7: "6",  # orange / gold
    8: "e",  # yellow
    9: "a",  # light green
    10: "3",  # teal
    11: "b",  # cyan
    12: "9",  # light blue
    13: "d",  # pink
    14: "8",  # grey
    15: "7",  # light grey
}
_GAME_TO_IRC_COLOR: dict[str, int] = {v: k for k, v in _IRC_TO_GAME_COLOR.items()}

# mIRC "default colour"
_IRC_DEFAULT_COLOR = 99

_IRC_TO_GAME_FORMAT: dict[str, str] = {
    BOLD: "l",
    ITALIC: "o",
    UNDERLINE: "n",
    STRIKETHROUGH: "m",
}
_GAME_TO_IRC_FORMAT: dict[str, str] = {v: k for k, v in _IRC_TO_GAME_FORMAT.items()}

# \x03[fg[,bg]] | \x04[RRGGBB[,RRGGBB]] | single-byte toggles
_IRC_CONTROL = re.compile(
    r"\x03(?:(\d{1,2})(?:,\d{1,2})?)?"
    r"|\x04(?:[0-9a-fA-F]{6}(?:,[0-9a-fA-F]{6})?)?"
    r"|[\x02\x0f\x11\x16\x1d\x1e\x1f]"
)
_GAME_TOKEN = re.compile(GAME_PREFIX + r"([0-9a-fk-or])", re.IGNORECASE)


def _tokens(codes: list[str]) -> list[str]:
    return [GAME_PREFIX + c for c in codes]


def from_irc(content: str) -> str:
    """Convert IRC colour/format codes to game tokens. Unsupported codes are stripped."""
    if not content:
        return content

    result: list[str] = []
    color: str | None = None
    formats: list[str] = []
    last_end = 0

    for m in _IRC_CONTROL.finditer(content):
        result.append(content[last_end : m.start()])
        last_end = m.end()
        code = m.group(0)[0]

        if code == COLOR:
            number = m.group(1)
            if number is None or int(number) == _IRC_DEFAULT_COLOR:
                if color is not None:
                    color = None
                    result.append(GAME_RESET)
                    result.extend(_tokens(formats))
                continue
            new_color = _IRC_TO_GAME_COLOR.get(int(number))
            if new_color is None:
                # Extended 16-98 palette; keep the current colour
                continue
            color = new_color
            # A game colour resets formats, so re-apply them
            result.append(GAME_PREFIX + color)
            result.extend(_tokens(formats))
        elif code in _IRC_TO_GAME_FORMAT:
            fmt = _IRC_TO_GAME_FORMAT[code]
            if fmt in formats:
                # Game formats only end on reset
                formats.remove(fmt)
                result.append(GAME_RESET)
                if color is not None:
                    result.append(GAME_PREFIX + color)
                result.extend(_tokens(formats))
            else:
                formats.append(fmt)
                result.append(GAME_PREFIX + fmt)
        elif code == RESET:
            color = None
            formats.clear()
            result.append(GAME_RESET)
        # HEX_COLOR, REVERSE and MONOSPACE have no game equivalent

    result.append(content[last_end:])
    return "".join(result)


def to_irc(content: str) -> str:
    """Convert game colour tokens to IRC control codes. Obfuscated text (k) is dropped."""
    if not content:
        return content

    result: list[str] = []
    formats: set[str] = set()
    last_end = 0

    for m in _GAME_TOKEN.finditer(content):
        result.append(content[last_end : m.start()])
        last_end = m.end()
        code = m.group(1).lower()

        if code in _GAME_TO_IRC_COLOR:
            if formats:
                result.append(RESET)
                formats.clear()
            result.append(f"{COLOR}{_GAME_TO_IRC_COLOR[code]:02d}")
            if content[last_end : last_end + 1] == ",":
                # Keep a following comma out of the colour code
                result.append(BOLD + BOLD)
        elif code in _GAME_TO_IRC_FORMAT:
            if code not in formats:
                formats.add(code)
                result.append(_GAME_TO_IRC_FORMAT[code])
        elif code == "r":
            formats.clear()
            result.append(RESET)

    result.append(content[last_end:])
    return "".join(result)


def strip_game_colors(content: str) -> str:
    """Remove game colour tokens, leaving plain text."""
    if not content:
        return content
    return _GAME_TOKEN.sub("", content)
