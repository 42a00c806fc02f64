"""Configuration for the Council Chamber."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

# Gemini API key
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

# Gemini REST endpoint (models/{model}:generateContent is appended)
GEMINI_API_URL = os.getenv(
    "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta"
)

# Base data directory - configurable via environment
DATA_BASE_DIR = os.getenv("COUNCIL_DATA_DIR", "data")

# User config file path
USER_CONFIG_FILE = os.path.join(DATA_BASE_DIR, "user_config.json")

# HTTP service binding
HOST = os.getenv("COUNCIL_HOST", "0.0.0.0")
PORT = int(os.getenv("COUNCIL_PORT", "8001"))

# Probe model availability in the background when the service starts
PROBE_ON_STARTUP = os.getenv("COUNCIL_PROBE_ON_STARTUP", "true").lower() in ("1", "true", "yes")

# Council sizing
MIN_COUNCIL_SIZE = 2
MAX_COUNCIL_SIZE = 20
DEFAULT_COUNCIL_SIZE = 6
ROSTER_SIZE = MAX_COUNCIL_SIZE

# Lower bound of the turn cap, whatever the council size
MIN_TURN_CAP = 20

# Pause between turns so observers can follow along (0 disables)
TURN_DELAY_SECONDS = float(os.getenv("COUNCIL_TURN_DELAY", "0.6"))

# Sampling
AGENT_TEMPERATURE = 0.8
SYNTHESIS_TEMPERATURE = 0.2

# Models
FALLBACK_MODEL = "gemini-flash-lite-latest"
DEFAULT_AGENT_MODEL = FALLBACK_MODEL
DEFAULT_SYNTHESIS_MODEL = "gemini-3-pro-preview"
REFINEMENT_MODEL = "gemini-3-flash-preview"
SUGGESTION_MODEL = "gemini-3-flash-preview"


def _parse_model_list(value: str | None) -> list[str]:
    """Split a comma-separated model list, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


# Ordered synthesis candidates; empty means "use the single synthesis model"
DEFAULT_SYNTHESIS_PRIORITY = _parse_model_list(os.getenv("COUNCIL_SYNTHESIS_PRIORITY"))


def load_user_config() -> dict[str, Any]:
    """
    Load user configuration from file.

    Returns:
        Dict with user config or empty dict if not found
    """
    config_path = Path(USER_CONFIG_FILE)
    if config_path.exists():
        try:
            with open(config_path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable user config. Path: %s, Error: %s", config_path, e)
            return {}
    return {}


def save_user_config(config: dict[str, Any]) -> None:
    """
    Save user configuration to file.

    Args:
        config: Configuration dict to save
    """
    config_path = Path(USER_CONFIG_FILE)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def get_council_size() -> int:
    """
    Get effective council size (user config or default), clamped to the valid range.

    Returns:
        Number of active agents
    """
    user_config = load_user_config()
    size = user_config.get('council_size', DEFAULT_COUNCIL_SIZE)
    if not isinstance(size, int):
        return DEFAULT_COUNCIL_SIZE
    return max(MIN_COUNCIL_SIZE, min(MAX_COUNCIL_SIZE, size))


def get_agent_models() -> dict[str, str]:
    """
    Get per-agent model overrides keyed by agent id.

    Returns:
        Dict mapping agent id to model identifier
    """
    user_config = load_user_config()
    overrides = user_config.get('agent_models', {})
    if not isinstance(overrides, dict):
        logger.warning("Ignoring malformed agent_models in user config")
        return {}
    return {
        str(agent_id): model
        for agent_id, model in overrides.items()
        if isinstance(model, str) and model
    }


def get_synthesis_model() -> str:
    """
    Get effective synthesis model (user config or default).

    Returns:
        Model identifier string
    """
    user_config = load_user_config()
    model = user_config.get('synthesis_model', DEFAULT_SYNTHESIS_MODEL)
    if not isinstance(model, str) or not model:
        logger.warning("Ignoring malformed synthesis_model in user config")
        return DEFAULT_SYNTHESIS_MODEL
    return model


def get_synthesis_priority() -> list[str]:
    """
    Get the ordered synthesis model list (user config or environment).

    Returns:
        List of model identifiers, possibly empty
    """
    user_config = load_user_config()
    priority = user_config.get('synthesis_priority', DEFAULT_SYNTHESIS_PRIORITY)
    if not isinstance(priority, list) or not all(isinstance(m, str) and m for m in priority):
        logger.warning("Ignoring malformed synthesis_priority in user config")
        return list(DEFAULT_SYNTHESIS_PRIORITY)
    return list(priority)


def update_council_config(
    council_size: int | None = None,
    agent_models: dict[str, str] | None = None,
    synthesis_model: str | None = None,
    synthesis_priority: list[str] | None = None,
) -> dict[str, Any]:
    """
    Update persisted council configuration.

    Args:
        council_size: New council size (None to keep current)
        agent_models: Agent model overrides to merge in (None to keep current)
        synthesis_model: New synthesis model (None to keep current)
        synthesis_priority: New synthesis priority list (None to keep current)

    Returns:
        Updated config dict
    """
    config = load_user_config()

    if council_size is not None:
        config['council_size'] = council_size
    if agent_models is not None:
        merged = dict(config.get('agent_models', {}))
        merged.update(agent_models)
        config['agent_models'] = merged
    if synthesis_model is not None:
        config['synthesis_model'] = synthesis_model
    if synthesis_priority is not None:
        config['synthesis_priority'] = synthesis_priority

    save_user_config(config)
    return config


def reload_config() -> dict[str, Any]:
    """
    Reload configuration from .env and the user config file.

    This allows updating the API key without restarting the server.

    Returns:
        Dict with reload status and current config
    """
    global GEMINI_API_KEY, GEMINI_API_URL

    load_dotenv(override=True)

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_API_URL = os.getenv(
        "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta"
    )

    logger.info("Configuration reloaded")

    return {
        "status": "reloaded",
        "gemini_configured": bool(GEMINI_API_KEY),
        "council_size": get_council_size(),
        "synthesis_model": get_synthesis_model(),
        "synthesis_priority": get_synthesis_priority(),
    }
