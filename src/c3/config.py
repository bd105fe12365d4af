"""
User configuration for c3.

Reads ~/.c3/config.yaml. A missing, unreadable, or malformed file behaves
like an empty config so the engine always starts with defaults.
"""

from pathlib import Path
from typing import Dict, Optional

import yaml

from .settings import EngineSettings, get_config_path


CONFIG_PATH = get_config_path()

NOTIFICATION_MODES = ("off", "sound", "banner", "both")

DEFAULT_SOUNDS = {
    "permission": "Glass",
    "input": "Ping",
    "complete": "Hero",
}


def load_config() -> dict:
    """Load config.yaml, returning {} when absent or invalid."""
    if not CONFIG_PATH.exists():
        return {}
    try:
        with open(CONFIG_PATH) as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError):
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def get_engine_settings(config: Optional[dict] = None) -> EngineSettings:
    """Engine tunables with config.yaml overrides applied."""
    if config is None:
        config = load_config()
    return EngineSettings.from_config(config)


def get_notification_config(config: Optional[dict] = None) -> Dict[str, object]:
    """Notification mode and per-kind sound names.

    Returns {"mode": str, "sounds": {kind: sound_name}}.
    """
    if config is None:
        config = load_config()
    section = config.get("notifications") or {}
    if not isinstance(section, dict):
        section = {}

    mode = section.get("mode", "both")
    if mode not in NOTIFICATION_MODES:
        mode = "both"

    sounds = dict(DEFAULT_SOUNDS)
    configured = section.get("sounds")
    if isinstance(configured, dict):
        for kind, name in configured.items():
            if kind in sounds and isinstance(name, str):
                sounds[kind] = name

    return {"mode": mode, "sounds": sounds}
