"""Turn scheduling for a council deliberation.

Agents speak one at a time in round-robin order. Each turn's prompt carries
the whole transcript so far, so turns can never overlap. The loop ends when
an agent emits the termination token or the turn cap is reached.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .attempts import attempt_in_order, is_exhausted
from .config import AGENT_TEMPERATURE, FALLBACK_MODEL, MIN_TURN_CAP, TURN_DELAY_SECONDS
from .deliberation import Agent, DeliberationSession, SessionStateError, TranscriptEntry
from .gemini import invoke_model
from .prompts import TERMINATION_TOKEN, build_system_instruction, build_turn_prompt
from .telemetry import trace_span

logger = logging.getLogger(__name__)

NULL_RESPONSE_TEXT = "Error: Null response."
FAILURE_MARKER = "[NODE FAILURE]"


@dataclass(frozen=True)
class TurnCall:
    """One way of asking a model for an agent's turn."""

    model: str
    enable_search_tool: bool


@dataclass(frozen=True)
class TurnOutcome:
    """Result of a single turn."""

    entry: TranscriptEntry
    terminated: bool


@dataclass(frozen=True)
class LoopOutcome:
    """How a deliberation loop ended."""

    turns: int
    terminated: bool  # Termination token seen
    cancelled: bool  # Session was superseded mid-loop


def compute_turn_cap(council_size: int) -> int:
    """Hard upper bound on turns for a council of the given size."""
    return max(council_size * 2, MIN_TURN_CAP)


def select_agent(agents: Sequence[Agent], turn: int) -> Agent:
    """Round-robin choice of the acting agent for a zero-based turn."""
    return agents[turn % len(agents)]


def has_termination_signal(text: str) -> bool:
    """Check raw model output for the termination token."""
    return TERMINATION_TOKEN in text


def strip_termination_token(text: str) -> str:
    """Remove every occurrence of the termination token and trim."""
    return text.replace(TERMINATION_TOKEN, "").strip()


def failure_text(agent_name: str) -> str:
    """Transcript content recorded when every attempt for a turn failed."""
    return f"{FAILURE_MARKER} Communication link severed for node {agent_name}."


def turn_candidates(agent: Agent, fallback_model: str = FALLBACK_MODEL) -> list[TurnCall]:
    """
    Calls to try for an agent's turn, in order.

    The assigned model runs with the search tool; an agent not already on
    the fallback model gets one retry there without the tool.
    """
    candidates = [TurnCall(model=agent.model, enable_search_tool=True)]
    if agent.model != fallback_model:
        candidates.append(TurnCall(model=fallback_model, enable_search_tool=False))
    return candidates


async def run_turn(
    agent: Agent,
    refined_topic: str,
    transcript: Sequence[TranscriptEntry],
    council_size: int,
    *,
    fallback_model: str = FALLBACK_MODEL,
) -> TurnOutcome:
    """
    Run one agent's turn. Never raises for model failures.

    Args:
        agent: The acting agent
        refined_topic: Deliberation objective
        transcript: Entries so far
        council_size: Number of agents in the council
        fallback_model: Low-cost model used when the assigned one fails

    Returns:
        TurnOutcome with the entry to append and whether the token was seen
    """
    prompt = build_turn_prompt(agent, refined_topic, transcript, council_size)
    system_instruction = build_system_instruction(agent.name, council_size)

    async def call(candidate: TurnCall):
        return await invoke_model(
            candidate.model,
            prompt,
            system_instruction=system_instruction,
            temperature=AGENT_TEMPERATURE,
            enable_search_tool=candidate.enable_search_tool,
        )

    outcome = await attempt_in_order(turn_candidates(agent, fallback_model), call)

    if is_exhausted(outcome):
        logger.warning(
            "Node failed. Agent: %s, Model: %s, Attempts: %d, LastError: %s",
            agent.name, agent.model, len(outcome.failures), outcome.last_error.message,
        )
        entry = TranscriptEntry(
            author_id=agent.id,
            author_name=agent.name,
            content=failure_text(agent.name),
            failed=True,
        )
        return TurnOutcome(entry=entry, terminated=False)

    reply = outcome.reply
    raw_text = reply.text or NULL_RESPONSE_TEXT
    if outcome.failures:
        logger.info("Turn answered by fallback. Agent: %s, Model: %s", agent.name, reply.model)

    entry = TranscriptEntry(
        author_id=agent.id,
        author_name=agent.name,
        content=strip_termination_token(raw_text),
        citations=tuple(reply.citations),
        model=reply.model,
        metrics=reply.metrics,
    )
    return TurnOutcome(entry=entry, terminated=has_termination_signal(raw_text))


class TurnScheduler:
    """Drives the turn loop for one session over a fixed list of agents."""

    def __init__(
        self,
        agents: Sequence[Agent],
        *,
        turn_delay: float = TURN_DELAY_SECONDS,
        fallback_model: str = FALLBACK_MODEL,
    ) -> None:
        if not agents:
            raise ValueError("No agents to schedule")
        self._agents = list(agents)
        self._turn_delay = turn_delay
        self._fallback_model = fallback_model

    @property
    def agents(self) -> list[Agent]:
        return list(self._agents)

    @property
    def council_size(self) -> int:
        return len(self._agents)

    @property
    def turn_cap(self) -> int:
        return compute_turn_cap(self.council_size)

    async def run(
        self,
        session: DeliberationSession,
        *,
        is_current: Callable[[], bool] = lambda: True,
        on_turn_start: Callable[[int, Agent], None] | None = None,
        on_turn_complete: Callable[[TranscriptEntry], None] | None = None,
    ) -> LoopOutcome:
        """
        Run turns until the termination token appears or the cap is reached.

        Args:
            session: Session whose transcript this loop appends to
            is_current: Returns False once the session has been superseded;
                checked at every iteration boundary and after each call
            on_turn_start: Called with (turn, agent) before the model call
            on_turn_complete: Called with each appended entry

        Returns:
            LoopOutcome describing how the loop ended
        """
        if session.refined_topic is None:
            raise SessionStateError("Turn loop started before topic refinement")

        cap = self.turn_cap
        logger.info(
            "Beginning turn loop. Agents: %d, TurnCap: %d", self.council_size, cap,
        )

        while session.turn_count < cap:
            if not is_current():
                return LoopOutcome(turns=session.turn_count, terminated=False, cancelled=True)

            turn = session.turn_count
            agent = select_agent(self._agents, turn)
            if on_turn_start is not None:
                on_turn_start(turn, agent)

            span_attributes = {
                "deliberation.turn": turn,
                "deliberation.agent_id": agent.id,
                "deliberation.model": agent.model,
            }
            with trace_span("deliberation.turn", span_attributes):
                outcome = await run_turn(
                    agent,
                    session.refined_topic,
                    session.history(),
                    self.council_size,
                    fallback_model=self._fallback_model,
                )

            if not is_current():
                logger.info("Discarding turn for superseded session. Turn: %d", turn)
                return LoopOutcome(turns=session.turn_count, terminated=False, cancelled=True)

            session.record_turn(outcome.entry)
            if on_turn_complete is not None:
                on_turn_complete(outcome.entry)

            if outcome.terminated:
                logger.info(
                    "Termination signal received. Agent: %s, Turns: %d",
                    agent.name, session.turn_count,
                )
                return LoopOutcome(turns=session.turn_count, terminated=True, cancelled=False)

            if self._turn_delay > 0 and session.turn_count < cap:
                await asyncio.sleep(self._turn_delay)

        logger.info("Turn cap reached. Turns: %d", session.turn_count)
        return LoopOutcome(turns=session.turn_count, terminated=False, cancelled=False)
