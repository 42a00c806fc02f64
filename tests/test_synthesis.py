"""Tests for verdict synthesis."""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_error, make_reply
from council_chamber.config import SYNTHESIS_TEMPERATURE
from council_chamber.deliberation import Citation, TranscriptEntry
from council_chamber.synthesis import STALEMATE_VERDICT, synthesis_candidates, synthesize_verdict

TRANSCRIPT = (
    TranscriptEntry(author_id="1", author_name="INSTANCE_01", content="Build storage."),
    TranscriptEntry(author_id="2", author_name="INSTANCE_02", content="Agreed."),
)


class TestSynthesisCandidates:
    """Tests for synthesis_candidates."""

    def test_single_model_without_priority(self):
        assert synthesis_candidates("pro", []) == ["pro"]
        assert synthesis_candidates("pro", None) == ["pro"]

    def test_priority_list_replaces_single_model(self):
        assert synthesis_candidates("pro", ["a", "b"]) == ["a", "b"]


class TestSynthesizeVerdict:
    """Tests for synthesize_verdict."""

    @pytest.mark.asyncio
    async def test_first_model_succeeds(self):
        reply = make_reply(
            "  FINAL VERDICT: Build storage.  ",
            model="pro",
            citations=[Citation(uri="https://example.com", title="Example")],
        )

        with patch("council_chamber.synthesis.invoke_model", new_callable=AsyncMock) as mock_invoke:
            mock_invoke.return_value = reply
            result = await synthesize_verdict("Objective", TRANSCRIPT, ["pro", "flash"])

        assert result.verdict == "FINAL VERDICT: Build storage."
        assert result.model == "pro"
        assert not result.failed
        assert result.citations == [Citation(uri="https://example.com", title="Example")]
        assert mock_invoke.call_count == 1
        assert mock_invoke.call_args.kwargs["temperature"] == SYNTHESIS_TEMPERATURE
        assert mock_invoke.call_args.kwargs["enable_search_tool"] is True
        assert "INSTANCE_01: Build storage.\n\nINSTANCE_02: Agreed." in mock_invoke.call_args.args[1]

    @pytest.mark.asyncio
    async def test_falls_through_priority_list(self):
        with patch("council_chamber.synthesis.invoke_model", new_callable=AsyncMock) as mock_invoke:
            mock_invoke.side_effect = [
                make_error("a", category="rate_limit", status_code=429),
                make_reply("", model="b"),
                make_reply("FINAL VERDICT: C wins.", model="c"),
            ]
            result = await synthesize_verdict("Objective", TRANSCRIPT, ["a", "b", "c"])

        assert result.model == "c"
        assert not result.failed
        assert [e.category for e in result.errors] == ["rate_limit", "empty"]
        assert [call.args[0] for call in mock_invoke.call_args_list] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_all_fail_gives_stalemate(self, caplog):
        with patch("council_chamber.synthesis.invoke_model", new_callable=AsyncMock) as mock_invoke, \
             caplog.at_level("ERROR", logger="council_chamber.synthesis"):
            mock_invoke.side_effect = [make_error("a"), make_error("b", category="timeout")]
            result = await synthesize_verdict("Objective", TRANSCRIPT, ["a", "b"])

        assert result.failed
        assert result.verdict == STALEMATE_VERDICT
        assert result.model is None
        assert len(result.errors) == 2
        assert "LastError: timeout failure" in caplog.text

    def test_result_to_dict(self):
        from council_chamber.synthesis import SynthesisResult

        result = SynthesisResult(verdict="v", model="m", errors=[make_error("x")])
        data = result.to_dict()
        assert data["verdict"] == "v"
        assert data["failed"] is False
        assert data["errors"][0]["model"] == "x"
        assert "citations" not in data
