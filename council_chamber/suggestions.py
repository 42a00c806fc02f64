"""Starter topic suggestions."""

import logging

from pydantic import BaseModel, TypeAdapter, ValidationError

from .config import SUGGESTION_MODEL
from .gemini import invoke_model, is_model_error
from .prompts import build_suggestions_prompt

logger = logging.getLogger(__name__)


class Suggestion(BaseModel):
    """A suggested deliberation topic."""
    category: str
    text: str


_suggestion_list = TypeAdapter(list[Suggestion])

FALLBACK_SUGGESTIONS = [
    Suggestion(category="Logistics", text="Design an automated global supply chain for medical essentials."),
    Suggestion(category="Energy", text="Evaluate the feasibility of a thorium-based modular nuclear grid."),
    Suggestion(category="Economy", text="Develop a post-inflationary model for digital decentralized currencies."),
    Suggestion(category="Ethics", text="Establish universal protocols for neural-interface privacy rights."),
]


def parse_suggestions(text: str) -> list[Suggestion]:
    """
    Validate a JSON array of suggestions.

    Raises:
        ValidationError: If the text is not a JSON array of {category, text}
    """
    return _suggestion_list.validate_json(text)


async def fetch_suggestions(count: int = 4) -> list[Suggestion]:
    """
    Ask the suggestion model for starter topics.

    Returns:
        Suggestions from the model, or FALLBACK_SUGGESTIONS on any failure
    """
    result = await invoke_model(
        SUGGESTION_MODEL,
        build_suggestions_prompt(count),
        response_mime_type="application/json",
    )
    if is_model_error(result):
        logger.warning("Using fallback suggestions. Error: %s", result.message)
        return list(FALLBACK_SUGGESTIONS)

    try:
        suggestions = parse_suggestions(result.text or "[]")
    except ValidationError as e:
        logger.warning("Using fallback suggestions, malformed response. Errors: %d", e.error_count())
        return list(FALLBACK_SUGGESTIONS)

    if not suggestions:
        logger.warning("Using fallback suggestions, empty response")
        return list(FALLBACK_SUGGESTIONS)
    return suggestions
