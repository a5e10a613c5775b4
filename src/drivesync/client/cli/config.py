"""Configuration utilities for the drivesync CLI.

Application settings live in ~/.drivesync/config.json:

    {
      "client_id": "...",
      "client_secret": "",
      "redirect_url": "https://login.microsoftonline.com/common/oauth2/nativeclient",
      "api_url": "https://graph.microsoft.com/v1.0"
    }
"""

from __future__ import annotations

import json
from pathlib import Path

from drivesync.client.api import DEFAULT_API_URL
from drivesync.client.auth import DEFAULT_REDIRECT_URL, AuthSettings
from drivesync.core.config import ConfigError


def get_config_dir() -> Path:
    """Get the configuration directory for drivesync.

    Returns:
        Path to ~/.drivesync.
    """
    return Path.home() / ".drivesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_default_keyfile() -> Path:
    """Key file used when --keyfile is not given."""
    return get_config_dir() / "keyfile.txt"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_auth_settings(config: dict[str, str], client_id: str | None = None) -> AuthSettings:
    """Build OAuth settings from the config file and CLI overrides.

    Raises:
        ConfigError: If no client id is configured.
    """
    client_id = client_id or config.get("client_id")
    if not client_id:
        raise ConfigError(
            "No client id configured. Pass --client-id or set 'client_id' in "
            f"{get_config_file()}"
        )
    return AuthSettings(
        client_id=client_id,
        client_secret=config.get("client_secret", ""),
        redirect_url=config.get("redirect_url", DEFAULT_REDIRECT_URL),
    )


def get_api_url(config: dict[str, str]) -> str:
    return config.get("api_url", DEFAULT_API_URL)
