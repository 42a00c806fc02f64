"""Ordered model attempts: the first acceptable reply wins."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .gemini import ModelError, ModelReply, is_model_error

logger = logging.getLogger(__name__)

C = TypeVar("C")


@dataclass
class AttemptSuccess(Generic[C]):
    """The candidate that produced an accepted reply, plus earlier failures."""

    candidate: C
    reply: ModelReply
    failures: list[ModelError] = field(default_factory=list)


@dataclass
class AttemptsExhausted:
    """Every candidate failed."""

    failures: list[ModelError] = field(default_factory=list)

    @property
    def last_error(self) -> ModelError | None:
        return self.failures[-1] if self.failures else None


def is_exhausted(outcome: Any) -> bool:
    """Check whether an attempt outcome is a failure."""
    return isinstance(outcome, AttemptsExhausted)


async def attempt_in_order(
    candidates: Sequence[C],
    call: Callable[[C], Awaitable[ModelReply | ModelError]],
    accept: Callable[[ModelReply], bool] | None = None,
) -> AttemptSuccess[C] | AttemptsExhausted:
    """
    Try candidates in order until one yields an acceptable reply.

    Args:
        candidates: Ordered candidates (model ids, or richer call descriptions)
        call: Invokes the gateway for one candidate
        accept: Optional check on a reply; rejected replies count as failures

    Returns:
        AttemptSuccess for the first accepted reply, AttemptsExhausted otherwise
    """
    failures: list[ModelError] = []
    for index, candidate in enumerate(candidates, start=1):
        result = await call(candidate)

        if not is_model_error(result) and accept is not None and not accept(result):
            result = ModelError(
                model=result.model, status_code=None, category="empty",
                message="Reply rejected: empty response",
            )

        if is_model_error(result):
            failures.append(result)
            logger.warning(
                "Attempt failed. Candidate: %d/%d, Model: %s, Category: %s",
                index, len(candidates), result.model, result.category,
            )
            continue

        return AttemptSuccess(candidate=candidate, reply=result, failures=failures)

    return AttemptsExhausted(failures=failures)
