"""config — Settings, env loading, YAML config."""
from .settings import APISettings, OntimeSettings, OSCSettings, Settings, get_settings, reload_settings

__all__ = ["APISettings", "OntimeSettings", "OSCSettings", "Settings", "get_settings", "reload_settings"]
