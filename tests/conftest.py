"""Shared test fixtures and configuration.

Sets environment variables before any council_chamber modules are imported,
so tests never touch a real API key or the working directory's data folder.
"""

import os
import tempfile
from contextlib import contextmanager
from unittest.mock import AsyncMock, patch

# Set required env vars BEFORE any council_chamber imports happen.
# pytest loads conftest.py before test modules, so this runs first.
os.environ.setdefault("GEMINI_API_KEY", "test-key-not-real")
os.environ["COUNCIL_DATA_DIR"] = tempfile.mkdtemp(prefix="council-test-")
os.environ["COUNCIL_TURN_DELAY"] = "0"
os.environ["COUNCIL_PROBE_ON_STARTUP"] = "false"

from pathlib import Path  # noqa: E402

import pytest  # noqa: E402

from council_chamber import config  # noqa: E402
from council_chamber.deliberation import Agent  # noqa: E402
from council_chamber.gemini import ModelError, ModelReply  # noqa: E402
from council_chamber.models import invalidate_probe_cache  # noqa: E402
from council_chamber.prompts import TERMINATION_TOKEN  # noqa: E402


def make_reply(text: str = "A considered point.", model: str = "model-a", **kwargs) -> ModelReply:
    """Factory for successful gateway results."""
    return ModelReply(model=model, text=text, **kwargs)


def make_error(model: str = "model-a", category: str = "unknown", status_code: int | None = 500) -> ModelError:
    """Factory for failed gateway results."""
    return ModelError(model=model, status_code=status_code, category=category, message=f"{category} failure")


def make_agents(count: int, model: str = "model-a") -> list[Agent]:
    """Agents with ids "1".."count"."""
    return [
        Agent(id=str(i + 1), name=f"INSTANCE_{i + 1:02d}", accent="red", model=model)
        for i in range(count)
    ]


@contextmanager
def patched_models(turns=None, synthesis=None, refined="Refined objective"):
    """Patch refinement, turn and synthesis model calls."""
    if turns is None:
        turns = [make_reply("Opening."), make_reply(f"Agreed. {TERMINATION_TOKEN}")]
    if synthesis is None:
        synthesis = [make_reply("FINAL VERDICT: Proceed.", model="pro")]

    with patch("council_chamber.controller.refine_topic", new_callable=AsyncMock) as mock_refine, \
         patch("council_chamber.scheduler.invoke_model", new_callable=AsyncMock) as mock_turns, \
         patch("council_chamber.synthesis.invoke_model", new_callable=AsyncMock) as mock_synthesis:
        mock_refine.return_value = refined
        mock_turns.side_effect = turns
        mock_synthesis.side_effect = synthesis
        yield mock_refine, mock_turns, mock_synthesis


@pytest.fixture(autouse=True)
def _clean_user_config():
    """Start every test without persisted user config or probe results."""
    Path(config.USER_CONFIG_FILE).unlink(missing_ok=True)
    invalidate_probe_cache()
    yield
    Path(config.USER_CONFIG_FILE).unlink(missing_ok=True)
    invalidate_probe_cache()
