"""Console host: one player's IRC agent driven from stdin, notifications on stdout."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

from loguru import logger

from irctransport import __version__
from irctransport.config import Config, cfg, load_config_with_env
from irctransport.core.errors import IRCTransportError
from irctransport.formatting import strip_game_colors
from irctransport.service import ChatService
from irctransport.settings import YamlSettingsStore

if TYPE_CHECKING:
    from irctransport.agent import IrcAgent

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["pydle", "pydle.client", "pydle.connection", "pydle.features.ircv3.cap"]


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        msg = record.getMessage().replace("{", "{{").replace("}", "}}")
        logger.patch(
            lambda r: r.update(
                name=record.name,
                function=record.funcName,
                line=record.lineno,
            ),
        ).opt(exception=record.exc_info).log(level, msg)


def _intercept_logging(level: str) -> None:
    """Route pydle's logs to loguru at ``level``."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def _safe_message_filter(record: Any) -> bool:
    """Escape braces/angles in log messages to prevent format/tag errors."""
    if isinstance(record.get("message"), str):
        msg = record["message"]
        msg = msg.replace("{", "{{").replace("}", "}}").replace("<", "\\<")
        record["message"] = msg
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. Replace default logging.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO.
    pydle protocol chatter is only logged in verbose mode."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging("DEBUG" if verbose else "WARNING")


def reload_config(config_path: Path, overrides: dict[str, Any] | None = None) -> Config:
    """Load config from path and update global cfg."""
    data = load_config_with_env(config_path, overrides)
    cfg.reload(data)
    return cfg


class ConsolePlayer:
    """Player whose chat window is the terminal."""

    def __init__(self, name: str, out: TextIO | None = None) -> None:
        self.name = name
        self.display_name = name
        self._out = out

    def send_message(self, text: str) -> None:
        out = self._out or sys.stdout
        print(strip_game_colors(text), file=out, flush=True)


def handle_line(agent: IrcAgent, line: str) -> bool:
    """Run one line of console input. Returns False when the user asked to quit."""
    line = line.rstrip("\r\n")
    if not line:
        return True
    if not line.startswith("/"):
        agent.send_message(line)
        return True

    command, _, rest = line[1:].partition(" ")
    command = command.lower()
    rest = rest.strip()

    if command == "quit":
        return False
    if command == "me" and rest:
        agent.send_action(rest)
    elif command == "join" and rest:
        channel, _, key = rest.partition(" ")
        agent.join(channel, key or None)
    elif command == "part":
        channel, _, reason = rest.partition(" ")
        agent.part(channel or None, reason or None)
    elif command == "channel" and rest:
        agent.set_active_channel(rest)
        agent.player.send_message(f"Active channel is now {rest}")
    elif command == "topic":
        if rest:
            agent.set_topic(rest)
        else:
            agent.request_topic()
    elif command == "names":
        agent.request_names()
    elif command == "nick" and rest:
        agent.change_nick(rest)
    else:
        agent.player.send_message(f"Unknown command or missing argument: /{command}")
    return True


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="IRCTransport console host: chat on IRC as one player")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--player",
        "-p",
        default=os.environ.get("USER", "Player"),
        help="Player name to connect as (default: $USER)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging, including IRC protocol lines",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.config.exists():
        logger.error("Config file not found: {}", args.config)
        sys.exit(1)

    try:
        config = reload_config(args.config, {"verbose": True} if args.verbose else None)
    except IRCTransportError as exc:
        logger.error("Invalid config {}: {}", args.config, exc)
        sys.exit(1)
    if config.verbose and not args.verbose:
        setup_logging(True)
    logger.info("Config loaded from {}", args.config)

    store = YamlSettingsStore(config.settings_path)
    service = ChatService(config, store)
    service.start()

    def on_sigterm(*a: object) -> None:
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, on_sigterm)

    try:
        agent = service.get_or_create_agent(ConsolePlayer(args.player))
        for line in sys.stdin:
            if not handle_line(agent, line):
                break
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except IRCTransportError as exc:
        logger.error("{}", exc)
        sys.exit(1)
    finally:
        service.stop()


if __name__ == "__main__":
    main()
