"""In-memory settings store for dev hosts and tests."""

from __future__ import annotations

import threading
from dataclasses import replace

from irctransport.settings.model import AgentSettings


class MemorySettingsStore:
    """Dict-backed SettingsStore. Nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, AgentSettings] = {
            name: AgentSettings(player_name=name, irc_nick=nick) for name, nick in (initial or {}).items()
        }
        self.save_count = 0

    def find(self, player_name: str) -> AgentSettings | None:
        with self._lock:
            found = self._records.get(player_name)
            return replace(found) if found else None

    def save(self, settings: AgentSettings) -> bool:
        with self._lock:
            self._records[settings.player_name] = replace(settings)
            self.save_count += 1
        return True
