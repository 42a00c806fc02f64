"""Final verdict synthesis over a finished deliberation."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .attempts import attempt_in_order, is_exhausted
from .config import SYNTHESIS_TEMPERATURE
from .deliberation import Citation, TranscriptEntry
from .gemini import ModelError, invoke_model
from .prompts import build_synthesis_prompt
from .telemetry import mark_span_error, trace_span

logger = logging.getLogger(__name__)

STALEMATE_VERDICT = "The Council has reached a stalemate. Synthesis engine unavailable."


@dataclass
class SynthesisResult:
    """Outcome of the synthesis stage. Failure still carries a verdict."""

    verdict: str
    model: str | None = None
    failed: bool = False
    citations: list[Citation] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    errors: list[ModelError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "verdict": self.verdict,
            "model": self.model,
            "failed": self.failed,
        }
        if self.citations:
            result["citations"] = [c.to_dict() for c in self.citations]
        if self.metrics:
            result["metrics"] = self.metrics
        if self.errors:
            result["errors"] = [e.to_dict() for e in self.errors]
        return result


def synthesis_candidates(synthesis_model: str, priority: Sequence[str] | None = None) -> list[str]:
    """The priority list when one is configured, otherwise the single model."""
    if priority:
        return list(priority)
    return [synthesis_model]


async def synthesize_verdict(
    topic: str,
    transcript: Sequence[TranscriptEntry],
    models: Sequence[str],
) -> SynthesisResult:
    """
    Produce the final verdict from the full transcript.

    Args:
        topic: The refined topic
        transcript: Every entry of the finished deliberation
        models: Candidate models in priority order

    Returns:
        SynthesisResult from the first model returning non-empty text, or a
        failed result with the stalemate verdict
    """
    span_attributes = {
        "synthesis.candidate_count": len(models),
        "synthesis.candidates": ",".join(models),
        "synthesis.transcript_length": len(transcript),
    }

    with trace_span("deliberation.synthesis", span_attributes) as span:
        prompt = build_synthesis_prompt(topic, transcript)

        async def call(model: str):
            return await invoke_model(
                model,
                prompt,
                temperature=SYNTHESIS_TEMPERATURE,
                enable_search_tool=True,
            )

        outcome = await attempt_in_order(
            list(models), call, accept=lambda reply: bool(reply.text.strip())
        )

        if is_exhausted(outcome):
            last_error = outcome.last_error
            logger.error(
                "Synthesis failed on every candidate. Candidates: %s, LastError: %s",
                ",".join(models), last_error.message if last_error else None,
            )
            mark_span_error(span, "All synthesis candidates failed")
            return SynthesisResult(
                verdict=STALEMATE_VERDICT,
                failed=True,
                errors=outcome.failures,
            )

        reply = outcome.reply
        logger.info(
            "Synthesis complete. Model: %s, FailedCandidates: %d",
            reply.model, len(outcome.failures),
        )
        return SynthesisResult(
            verdict=reply.text.strip(),
            model=reply.model,
            citations=list(reply.citations),
            metrics=reply.metrics,
            errors=outcome.failures,
        )
