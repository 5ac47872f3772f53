"""Persisted per-player agent settings."""

from irctransport.settings.memory import MemorySettingsStore
from irctransport.settings.model import AgentSettings, default_nick
from irctransport.settings.store import SettingsStore, YamlSettingsStore

__all__ = ["AgentSettings", "MemorySettingsStore", "SettingsStore", "YamlSettingsStore", "default_nick"]
