"""Preferences manager for Agent-ConnectToolkit.

Persistent user preferences live in the XDG Base Directory location:
~/.config/agent-connecttoolkit/preferences.json

Only non-secret settings belong here (currently the config file path).
"""
import json
from pathlib import Path
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

PREFERENCES_DIR = Path.home() / ".config" / "agent-connecttoolkit"
PREFERENCES_FILE = PREFERENCES_DIR / "preferences.json"


def _load_preferences() -> Dict[str, Any]:
    """
    Load preferences from JSON file.

    Returns:
        Dictionary of preferences, or empty dict if the file is missing or unreadable
    """
    if not PREFERENCES_FILE.exists():
        return {}

    try:
        with open(PREFERENCES_FILE, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read preferences file {PREFERENCES_FILE}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"Ignoring preferences file {PREFERENCES_FILE}: expected a JSON object")
        return {}
    return data


def _save_preferences(preferences: Dict[str, Any]) -> None:
    """Write preferences, creating the directory on first use."""
    try:
        PREFERENCES_DIR.mkdir(parents=True, exist_ok=True)
        with open(PREFERENCES_FILE, 'w') as f:
            json.dump(preferences, f, indent=2)
    except OSError as e:
        logger.error(f"Failed to save preferences to {PREFERENCES_FILE}: {e}")
        raise


def get_preference(key: str) -> Optional[str]:
    return _load_preferences().get(key)


def set_preference(key: str, value: str) -> None:
    preferences = _load_preferences()
    preferences[key] = value
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' set to: {value}")


def clear_preference(key: str) -> None:
    """Remove a preference. Missing keys are not an error."""
    preferences = _load_preferences()
    if key not in preferences:
        logger.debug(f"Preference '{key}' not found, nothing to clear")
        return
    del preferences[key]
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' cleared")
