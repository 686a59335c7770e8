"""Configuration loading and API key resolution."""

import logging
import os
from pathlib import Path
from typing import Optional, Sequence

import yaml

logger = logging.getLogger(__name__)

DEFAULT_FEEDS = [
    {"name": "The Hacker News", "url": "https://feeds.feedburner.com/TheHackersNews"},
    {"name": "NCSC", "url": "https://www.ncsc.gov.uk/api/1/services/v1/all-rss-feed.xml"},
]

NVD_KEY_ENV = ("NVD_API_KEY",)
GEMINI_KEY_ENV = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


class ConfigurationError(Exception):
    """A required setting is missing."""


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file, "r") as f:
        config = yaml.safe_load(f)

    return config or {}


def app_setting(config: dict, key: str, default):
    return (config.get("app") or {}).get(key, default)


def feed_configs(config: dict) -> list:
    feeds = (config.get("feeds") or {}).get("rss")
    return feeds if feeds else list(DEFAULT_FEEDS)


def get_api_key(config: dict, section: str, env_vars: Sequence[str]) -> Optional[str]:
    """
    Resolve an API key for a config section.

    Environment variables win over the ``api_key`` value in the YAML file.
    Blank values count as missing.
    """
    for name in env_vars:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    value = str((config.get(section) or {}).get("api_key") or "").strip()
    return value or None


def require_api_key(config: dict, section: str, env_vars: Sequence[str]) -> str:
    key = get_api_key(config, section, env_vars)
    if not key:
        # Never echo the variable names or values back to callers.
        raise ConfigurationError(f"API key for '{section}' is not configured")
    return key
