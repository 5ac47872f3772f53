"""Config loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger


def load_config(path: str | Path) -> dict[str, Any]:
    """Load config from YAML file. Use SafeLoader. Returns raw dict."""
    path = Path(path)
    if not path.exists():
        logger.warning("Config file not found: {}", path)
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            logger.warning("Config file {} has invalid structure (expected dict)", path)
            return {}
        return data
    except yaml.YAMLError as exc:
        logger.error("Failed to parse config {}: {}", path, exc)
        raise


def load_config_with_env(path: str | Path, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Load config from YAML after loading .env, then apply explicit overrides (e.g. CLI flags)."""
    from dotenv import load_dotenv

    load_dotenv()
    data = load_config(path)
    if overrides:
        data.update(overrides)
    return data
