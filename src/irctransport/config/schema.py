"""Config schema and accessor."""

from __future__ import annotations

import os
from typing import Any

from loguru import logger

from irctransport.core.constants import CHANNEL_PREFIXES, DEFAULT_PORT, DEFAULT_QUIT_MESSAGE
from irctransport.core.errors import ConfigurationError

# Env keys that override config (loaded once per reload)
_ENV_OVERRIDE_KEYS = (
    "IRCTRANSPORT_IRC_TLS_VERIFY",
    "IRCTRANSPORT_IRC_PASSWORD",
    "IRCTRANSPORT_VERBOSE",
)


def _load_env_overrides() -> dict[str, str]:
    """Load env overrides once per reload."""
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


def _parse_bool_env(val: str) -> bool | None:
    """Parse env string to bool; None if not a recognized bool."""
    v = val.lower()
    if v in ("1", "true", "yes"):
        return True
    if v in ("0", "false", "no"):
        return False
    return None


class Config:
    """Plugin-wide config accessor. Shared read-only by every agent."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data (e.g. on SIGHUP reload)."""
        self._data = data or {}
        self._env = _load_env_overrides()
        if validate:
            self._validate()
        logger.debug("Config reloaded: server={}:{}", self.irc_server, self.irc_port)

    def _validate(self) -> None:
        """Validate config structure; raise ConfigurationError on failure."""
        if not self.irc_server:
            raise ConfigurationError("irc_server is required", code="missing_irc_server")

        port = self._data.get("irc_port", DEFAULT_PORT)
        if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
            raise ConfigurationError(
                "irc_port must be an integer between 1 and 65535",
                code="invalid_irc_port",
                details={"value": port},
            )

        channels = self._data.get("irc_autojoin_channels")
        if channels is not None and not isinstance(channels, list):
            raise ConfigurationError(
                "irc_autojoin_channels must be a list",
                code="invalid_autojoin_channels",
                details={"type": type(channels).__name__},
            )
        for i, channel in enumerate(channels or []):
            if not isinstance(channel, str) or not channel.startswith(CHANNEL_PREFIXES):
                raise ConfigurationError(
                    f"irc_autojoin_channels[{i}] is not a channel name",
                    code="invalid_autojoin_channel",
                    details={"index": i, "value": channel},
                )

        if self.irc_reconnect_min_delay < 0 or self.irc_reconnect_max_delay < 0:
            raise ConfigurationError("reconnect delays must be non-negative", code="invalid_reconnect_delay")
        if self.irc_reconnect_min_delay > self.irc_reconnect_max_delay:
            raise ConfigurationError(
                "irc_reconnect_min_delay must not exceed irc_reconnect_max_delay",
                code="invalid_reconnect_delay",
                details={"min": self.irc_reconnect_min_delay, "max": self.irc_reconnect_max_delay},
            )

    @property
    def nick_prefix(self) -> str:
        """Prepended to the player name to build a default IRC nick."""
        return str(self._data.get("nick_prefix", ""))

    @property
    def nick_suffix(self) -> str:
        """Appended to the player name to build a default IRC nick."""
        return str(self._data.get("nick_suffix", ""))

    @property
    def verbose(self) -> bool:
        """Log IRC protocol traffic (env: IRCTRANSPORT_VERBOSE)."""
        parsed = _parse_bool_env(self._env.get("IRCTRANSPORT_VERBOSE", ""))
        if parsed is not None:
            return parsed
        return bool(self._data.get("verbose", False))

    @property
    def irc_server(self) -> str:
        """IRC server hostname."""
        return str(self._data.get("irc_server", "") or "")

    @property
    def irc_port(self) -> int:
        """IRC server port."""
        return int(self._data.get("irc_port", DEFAULT_PORT))

    @property
    def irc_tls(self) -> bool:
        """Connect with TLS."""
        return bool(self._data.get("irc_tls", False))

    @property
    def irc_tls_verify(self) -> bool:
        """Verify IRC TLS certificates. Set false for dev with self-signed certs."""
        parsed = _parse_bool_env(self._env.get("IRCTRANSPORT_IRC_TLS_VERIFY", ""))
        if parsed is not None:
            return parsed
        return bool(self._data.get("irc_tls_verify", True))

    @property
    def irc_password(self) -> str | None:
        """Server password (PASS); env IRCTRANSPORT_IRC_PASSWORD wins."""
        val = self._env.get("IRCTRANSPORT_IRC_PASSWORD") or self._data.get("irc_password")
        if val and isinstance(val, str) and val.strip():
            return val.strip()
        return None

    @property
    def irc_autojoin_channels(self) -> list[str]:
        """Channels every agent joins once registered."""
        val = self._data.get("irc_autojoin_channels")
        if isinstance(val, list):
            return [str(c) for c in val]
        return []

    @property
    def irc_quit_message(self) -> str:
        """QUIT message sent when an agent shuts down."""
        return str(self._data.get("irc_quit_message", DEFAULT_QUIT_MESSAGE))

    @property
    def irc_connect_timeout(self) -> float:
        """Seconds before a single connect attempt is abandoned."""
        return float(self._data.get("irc_connect_timeout", 30))

    @property
    def irc_reconnect_min_delay(self) -> float:
        """Initial backoff between connect attempts, in seconds."""
        return float(self._data.get("irc_reconnect_min_delay", 2))

    @property
    def irc_reconnect_max_delay(self) -> float:
        """Backoff ceiling between connect attempts, in seconds."""
        return float(self._data.get("irc_reconnect_max_delay", 60))

    @property
    def irc_reconnect_max_attempts(self) -> int:
        """Connect attempts before giving up. 0 retries until shutdown."""
        return int(self._data.get("irc_reconnect_max_attempts", 0))

    @property
    def settings_path(self) -> str:
        """YAML file holding persisted agent settings."""
        return str(self._data.get("settings_path", "agent_settings.yaml"))


# Global config instance (set by __main__)
cfg: Config = Config({})
