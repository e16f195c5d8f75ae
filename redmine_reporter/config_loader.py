"""Handles loading the reporter's configuration.

Settings come from an optional JSON file (a `redmine` section) with
environment variables layered on top, so secrets such as the API key can stay
in `.env` and out of the repository. Invalid configuration never raises: the
notifier simply turns into a no-op and a warning is logged.
"""

import json
import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "config.json"
CONFIG_PATH_ENV = "REDMINE_REPORTER_CONFIG"

# Environment variable -> key in the `redmine` section
ENV_OVERRIDES = {
    "REDMINE_URL": "redmine_url",
    "REDMINE_API_KEY": "api_key",
    "REDMINE_PROJECT": "project_id",
    "REDMINE_TRACKER_ID": "tracker_id",
    "APP_NAME": "app_name",
    "REDMINE_DEFAULT_TAGS": "default_tags",
    "REDMINE_ENABLED": "enabled",
    "REDMINE_COOLDOWN": "cooldown",
}

_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in _FALSE_VALUES


def _parse_tags(value) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    return [str(tag) for tag in value]


@dataclass
class ReporterSettings:
    """Effective settings for one Notifier."""

    redmine_url: str | None = None
    api_key: str | None = None
    project_id: str = "bug-tracker"
    tracker_id: int = 1
    app_name: str = "unknown"
    default_tags: list[str] = field(default_factory=list)
    enabled: bool = True
    cooldown: float = 300
    # Set by load_config when a value could not be parsed
    config_error: str | None = None

    def is_valid(self) -> bool:
        """Both the Redmine URL and the API key must be present."""
        return bool(self.redmine_url) and bool(self.api_key)

    @classmethod
    def from_config(cls, config: dict | None) -> "ReporterSettings":
        section = (config or {}).get("redmine", {})
        defaults = cls()
        return cls(
            redmine_url=section.get("redmine_url") or None,
            api_key=section.get("api_key") or None,
            project_id=str(section.get("project_id") or defaults.project_id),
            tracker_id=int(section.get("tracker_id", defaults.tracker_id)),
            app_name=str(section.get("app_name") or defaults.app_name),
            default_tags=_parse_tags(section.get("default_tags")),
            enabled=_parse_bool(section.get("enabled", defaults.enabled)),
            cooldown=float(section.get("cooldown", defaults.cooldown)),
            config_error=section.get("config_error") or None,
        )


def _read_config_file(path: str) -> dict:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.error(f"Ignoring {path}: top level must be a JSON object")
        return {}
    return data


def load_config(path: str | None = None) -> dict:
    """Loads the reporter configuration.

    The JSON file is taken from `path`, else from $REDMINE_REPORTER_CONFIG,
    else `config.json` in the working directory; a missing file just means
    everything comes from the environment.

    Returns:
        The configuration dict with the effective `redmine` section.
    """
    load_dotenv()

    config_path = path or os.getenv(CONFIG_PATH_ENV) or os.path.join(os.getcwd(), DEFAULT_CONFIG_FILENAME)
    config = _read_config_file(config_path)
    section = dict(config.get("redmine") or {})

    for env_name, key in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        # Defined-but-empty variables count as unset
        if value is not None and value.strip():
            section[key] = value

    config["redmine"] = section

    try:
        settings = ReporterSettings.from_config(config)
    except (TypeError, ValueError) as e:
        error = f"invalid redmine settings ({e})"
        logger.warning(f"Config validation: {error}; reporting disabled")
        config["redmine"] = {
            "redmine_url": section.get("redmine_url"),
            "api_key": section.get("api_key"),
            "enabled": False,
            "config_error": error,
        }
        return config

    if not settings.is_valid():
        logger.warning("Config validation: redmine_url and api_key are required; reporting disabled")
    elif not settings.enabled:
        logger.info("Redmine reporting is disabled in config")
    return config
