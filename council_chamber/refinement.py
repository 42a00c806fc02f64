"""Topic refinement: turn a raw user topic into a deliberation objective."""

import logging

from .config import REFINEMENT_MODEL
from .gemini import invoke_model, is_model_error
from .prompts import build_refinement_prompt

logger = logging.getLogger(__name__)


async def refine_topic(raw_topic: str, model: str = REFINEMENT_MODEL) -> str:
    """
    Rewrite a raw topic into a structured objective.

    Any failure falls back to the raw topic unmodified.
    """
    result = await invoke_model(model, build_refinement_prompt(raw_topic))

    if is_model_error(result):
        logger.warning("Topic refinement failed, using raw topic. Error: %s", result.message)
        return raw_topic

    refined = result.text.strip()
    if not refined:
        logger.warning("Topic refinement returned no text, using raw topic")
        return raw_topic
    return refined
