"""Gemini model catalog and connectivity probing."""

import logging
from typing import Any

from . import config
from .gemini import invoke_model, is_model_error

logger = logging.getLogger(__name__)

GEMINI_MODELS = [
    {"id": "gemini-3-flash-preview", "name": "Gemini 3 Flash"},
    {"id": "gemini-3-pro-preview", "name": "Gemini 3 Pro"},
    {"id": "gemini-2.5-pro", "name": "Gemini 2.5 Pro"},
    {"id": "gemini-flash-latest", "name": "Gemini 2.5 Flash"},
    {"id": "gemini-flash-lite-latest", "name": "Gemini Flash Lite"},
    {"id": "gemini-2.0-flash-exp", "name": "Gemini 2.0 Flash"},
]

PROBE_PROMPT = "Hello"
PROBE_MAX_OUTPUT_TOKENS = 5

# Last known status per model id: "online" | "offline"
_probe_cache: dict[str, str] = {}


def is_known_model(model_id: str) -> bool:
    """Check whether a model id is in the catalog."""
    return any(m["id"] == model_id for m in GEMINI_MODELS)


def model_display_name(model_id: str) -> str:
    """Catalog name for a model id, or the id itself when unknown."""
    for m in GEMINI_MODELS:
        if m["id"] == model_id:
            return m["name"]
    return model_id


async def probe_model(model_id: str) -> str:
    """
    Check whether a model answers a trivial prompt.

    Args:
        model_id: Model identifier to probe

    Returns:
        "online" if the model returned text, otherwise "offline"
    """
    if not config.GEMINI_API_KEY:
        logger.error("GEMINI_API_KEY is missing. Model: %s reported offline", model_id)
        status = "offline"
    else:
        result = await invoke_model(
            model_id, PROBE_PROMPT, max_output_tokens=PROBE_MAX_OUTPUT_TOKENS, timeout=30.0
        )
        if is_model_error(result):
            logger.warning("Availability check failed. Model: %s, Error: %s", model_id, result.message)
            status = "offline"
        elif not result.text:
            logger.warning("Availability check failed. Model: %s, Error: empty response", model_id)
            status = "offline"
        else:
            status = "online"

    _probe_cache[model_id] = status
    return status


async def probe_models(model_ids: list[str] | None = None) -> dict[str, str]:
    """
    Probe models one at a time.

    Args:
        model_ids: Models to probe (defaults to the whole catalog)

    Returns:
        Dict mapping model id to status
    """
    ids = model_ids if model_ids is not None else [m["id"] for m in GEMINI_MODELS]
    results = {}
    for model_id in ids:
        results[model_id] = await probe_model(model_id)

    offline = [m for m, status in results.items() if status == "offline"]
    if offline:
        logger.warning("Models offline. Count: %d, Models: %s", len(offline), ",".join(offline))
    return results


def get_probe_results() -> dict[str, str]:
    """Cached probe results from earlier checks."""
    return dict(_probe_cache)


def list_models() -> list[dict[str, Any]]:
    """Catalog entries annotated with their last known status (None if never probed)."""
    return [
        {**m, "status": _probe_cache.get(m["id"])}
        for m in GEMINI_MODELS
    ]


def invalidate_probe_cache() -> None:
    """Forget all probe results."""
    _probe_cache.clear()
