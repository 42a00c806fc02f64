"""Tests for topic refinement."""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_error, make_reply
from council_chamber.config import REFINEMENT_MODEL
from council_chamber.refinement import refine_topic


@pytest.mark.asyncio
async def test_returns_refined_text():
    with patch("council_chamber.refinement.invoke_model", new_callable=AsyncMock) as mock_invoke:
        mock_invoke.return_value = make_reply("  Determine the optimal storage mix.  ")
        refined = await refine_topic("energy storage")

    assert refined == "Determine the optimal storage mix."
    assert mock_invoke.call_args.args[0] == REFINEMENT_MODEL
    assert '"energy storage"' in mock_invoke.call_args.args[1]


@pytest.mark.asyncio
async def test_error_falls_back_to_raw_topic():
    with patch("council_chamber.refinement.invoke_model", new_callable=AsyncMock) as mock_invoke:
        mock_invoke.return_value = make_error(REFINEMENT_MODEL, category="timeout", status_code=None)
        refined = await refine_topic("energy storage")

    assert refined == "energy storage"


@pytest.mark.asyncio
async def test_empty_text_falls_back_to_raw_topic():
    with patch("council_chamber.refinement.invoke_model", new_callable=AsyncMock) as mock_invoke:
        mock_invoke.return_value = make_reply("   ")
        refined = await refine_topic("energy storage")

    assert refined == "energy storage"
