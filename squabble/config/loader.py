"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

from loguru import logger

from squabble.config.schema import Config

# Flat keys from the earlier environment-variable deployment -> (section, key)
_LEGACY_KEYS: dict[str, tuple[str, str]] = {
    "openaiApiKey": ("agent", "apiKey"),
    "receiveAgentSecret": ("api", "secret"),
    "xmtpEnv": ("transport", "env"),
    "walletStorageDir": ("wallet", "storageDir"),
    "squabbleUrl": ("squabble", "url"),
}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".squabble" / "config.json"


def get_data_dir() -> Path:
    """Get the squabble data directory."""
    path = Path.home() / ".squabble"
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            data = _migrate_config(data)
            return Config(**data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(by_alias=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _migrate_config(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate old config formats to current."""
    # Move flat legacy keys into their sections, never overriding explicit values
    for legacy, (section, key) in _LEGACY_KEYS.items():
        if legacy not in data:
            continue
        value = data.pop(legacy)
        target = data.setdefault(section, {})
        if key not in target:
            target[key] = value

    # Older deployments used one agentSecret for both directions
    if "agentSecret" in data:
        value = data.pop("agentSecret")
        data.setdefault("api", {}).setdefault("secret", value)
        data.setdefault("squabble", {}).setdefault("agentSecret", value)

    # triggers used to be a bare list of keywords
    if isinstance(data.get("triggers"), list):
        data["triggers"] = {"keywords": data["triggers"]}
    return data
