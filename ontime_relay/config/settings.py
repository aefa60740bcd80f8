"""
config/settings.py — Central configuration via env vars + YAML override.

Priority: ENV > config.yaml > defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _yaml_below_env(model: type[BaseSettings], section: Optional[dict]) -> dict:
    """Drop YAML keys whose prefixed env var is set."""
    prefix = model.model_config.get("env_prefix", "")
    env = {k.upper() for k in os.environ}
    return {k: v for k, v in (section or {}).items() if f"{prefix}{k}".upper() not in env}


class OntimeSettings(BaseSettings):
    host: str = Field("localhost", description="ontime server host (http:// prefix is stripped)")
    port: int = Field(4001, description="ontime server port")
    reconnect_interval: float = Field(1.0, description="Seconds between reconnect attempts")

    model_config = SettingsConfigDict(env_prefix="ONTIME_")


class APISettings(BaseSettings):
    enabled: bool = Field(True, description="Serve the REST + WebSocket API")
    host: str = Field("0.0.0.0", description="API server bind host")
    port: int = Field(8080, description="API server port")
    api_key: Optional[str] = Field(None, description="Bearer token for API auth (optional)")
    cors_origins: list[str] = Field(["*"], description="CORS allowed origins")
    log_level: str = Field("info", description="Log level")

    model_config = SettingsConfigDict(env_prefix="API_")


class OSCSettings(BaseSettings):
    enabled: bool = Field(True, description="Enable TouchOSC/OSC listener")
    listen_host: str = Field("0.0.0.0", description="OSC UDP listen host")
    listen_port: int = Field(9000, description="OSC UDP listen port")
    reply_port: int = Field(9001, description="OSC UDP reply/feedback port")
    client_host: str = Field("255.255.255.255", description="OSC broadcast/client host")

    model_config = SettingsConfigDict(env_prefix="OSC_")


class Settings(BaseSettings):
    ontime: OntimeSettings = Field(default_factory=OntimeSettings)
    api: APISettings = Field(default_factory=APISettings)
    osc: OSCSettings = Field(default_factory=OSCSettings)
    config_file: Path = Field(Path("config.yaml"), description="Path to YAML config file")

    model_config = SettingsConfigDict(env_prefix="RELAY_")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings, merging YAML file if present."""
        path = config_path or Path(os.environ.get("RELAY_CONFIG_FILE", "config.yaml"))
        yaml_data: dict = {}

        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

        # Init kwargs outrank env vars in pydantic-settings, so YAML keys
        # already set in the environment are left for the env source
        ontime = OntimeSettings(**_yaml_below_env(OntimeSettings, yaml_data.get("ontime")))
        api = APISettings(**_yaml_below_env(APISettings, yaml_data.get("api")))
        osc = OSCSettings(**_yaml_below_env(OSCSettings, yaml_data.get("osc")))

        return cls(ontime=ontime, api=api, osc=osc, config_file=path)

    def to_yaml(self, path: Path) -> None:
        """Save current settings to YAML."""
        data = {
            "ontime": self.ontime.model_dump(),
            "api": self.api.model_dump(),
            "osc": self.osc.model_dump(),
        }
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Singleton accessor — call get_settings() anywhere in the app
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    global _settings
    _settings = Settings.load(config_path)
    return _settings
