"""Settings store protocol and YAML file store."""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol

import yaml
from loguru import logger

from irctransport.core.errors import SettingsStoreError
from irctransport.settings.model import AgentSettings


class SettingsStore(Protocol):
    """Key-value lookup of AgentSettings by player name."""

    def find(self, player_name: str) -> AgentSettings | None:
        """Return stored settings, None when absent. Raise SettingsStoreError when unreadable."""
        ...

    def save(self, settings: AgentSettings) -> bool:
        """Persist settings. Return False on failure."""
        ...


class YamlSettingsStore:
    """SettingsStore backed by a single YAML file.

    Layout::

        players:
          Steve:
            irc_nick: mc_Steve

    The file is read once and cached; saves rewrite it atomically.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, dict[str, Any]]:
        """Load the players mapping. Caller holds the lock."""
        if self._records is not None:
            return self._records
        if not self._path.exists():
            logger.debug("Settings file {} not found; starting empty", self._path)
            self._records = {}
            return self._records
        try:
            with open(self._path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise SettingsStoreError(
                f"Failed to read settings from {self._path}",
                code="settings_unreadable",
                details={"path": str(self._path)},
                original_error=exc,
            ) from exc
        players = data.get("players") if isinstance(data, dict) else None
        if players is not None and not isinstance(players, dict):
            raise SettingsStoreError(
                f"Settings file {self._path} has invalid structure (players must be a mapping)",
                code="settings_invalid",
                details={"path": str(self._path), "type": type(players).__name__},
            )
        self._records = {str(k): v for k, v in (players or {}).items() if isinstance(v, dict)}
        return self._records

    def find(self, player_name: str) -> AgentSettings | None:
        with self._lock:
            records = self._load()
            data = records.get(player_name)
        if data is None:
            return None
        return AgentSettings.from_dict(player_name, data)

    def save(self, settings: AgentSettings) -> bool:
        with self._lock:
            try:
                records = dict(self._load())
            except SettingsStoreError as exc:
                logger.error("Not saving settings for {}: {}", settings.player_name, exc)
                return False
            records[settings.player_name] = {"irc_nick": settings.irc_nick}
            try:
                self._write({"players": records})
            except (OSError, yaml.YAMLError) as exc:
                logger.error("Failed to write settings {}: {}", self._path, exc)
                return False
            self._records = records
        logger.debug("Saved settings for {} (nick={})", settings.player_name, settings.irc_nick)
        return True

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
