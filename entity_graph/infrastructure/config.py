"""
ENTITY GRAPH CONFIG - Settings loaded once from TOML

Configuration lives in config/entity_graph.toml and is read once into typed
msgspec structs. Components ask get_settings() instead of reading files.

Usage:
    from entity_graph.infrastructure.config import get_settings

    delay = get_settings().notifier.debounce_delay

The file location can be overridden with the ENTITY_GRAPH_CONFIG
environment variable.
"""
import msgspec
import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Union


CONFIG_ENV_VAR = "ENTITY_GRAPH_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "entity_graph.toml"


# =============================================================================
# SETTINGS STRUCTS
# =============================================================================

class GraphSettings(msgspec.Struct, kw_only=True, frozen=True):
    """Graph manager settings."""
    event_source: str = "graph_manager"   # Stamped on every published GraphEvent


class NotifierSettings(msgspec.Struct, kw_only=True, frozen=True):
    """Change notifier settings."""
    debounce_delay: float = 0.1           # Seconds of quiet window for debounced nodes


class Settings(msgspec.Struct, kw_only=True, frozen=True):
    graph: GraphSettings = msgspec.field(default_factory=GraphSettings)
    notifier: NotifierSettings = msgspec.field(default_factory=NotifierSettings)


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load raw configuration from TOML.

    Args:
        path: Explicit file. Defaults to $ENTITY_GRAPH_CONFIG, then the
              bundled config/entity_graph.toml.

    Returns:
        Dict with all configuration sections, or {} if unreadable
    """
    if path is None:
        path = os.getenv(CONFIG_ENV_VAR)
    if path is None:
        # Bundled file is optional (absent in non-editable installs)
        if not DEFAULT_CONFIG_PATH.is_file():
            return {}
        path = DEFAULT_CONFIG_PATH

    try:
        import tomllib

        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load and validate settings.

    Unknown sections are ignored. Invalid values (wrong types) fall back to
    defaults with a warning rather than breaking graph construction.
    """
    raw = load_toml_config(path)
    try:
        return msgspec.convert(raw, type=Settings)
    except msgspec.ValidationError as e:
        warnings.warn(f"Invalid configuration, using defaults: {e}")
        return Settings()


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings (loaded on first use)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Replace (or with None, drop) the process-wide settings."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Force a reload on the next get_settings(). Primarily for testing."""
    set_settings(None)
