"""Deliberation state machine.

The controller owns every piece of long-lived mutable state: the roster, the
council settings and the current session. Status moves

    idle -> running -> concluded

with reset returning to idle from anywhere. While running, the
``is_refining`` flag tells topic refinement apart from the turn loop.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import Any

from . import config
from .deliberation import Agent, DeliberationSession, Phase, SessionStateError, TranscriptEntry
from .logging_config import set_agent_id, set_session_id
from .refinement import refine_topic
from .roster import build_roster
from .scheduler import TurnScheduler
from .synthesis import SynthesisResult, synthesis_candidates, synthesize_verdict
from .telemetry import trace_span

logger = logging.getLogger(__name__)

# Active-agent id reported while the verdict is being synthesized
SYNTHESIS_NODE_ID = "SYNT"

LOOP_ERROR_VERDICT = "Critical error during deliberation."

_TRANSITIONS: dict[Phase, set[Phase]] = {
    Phase.IDLE: {Phase.RUNNING, Phase.IDLE},
    Phase.RUNNING: {Phase.CONCLUDED, Phase.IDLE},
    Phase.CONCLUDED: {Phase.RUNNING, Phase.IDLE},
    Phase.PAUSED: set(),
    Phase.AWAITING_APPROVAL: set(),
}


class DeliberationController:
    """Runs one deliberation at a time and exposes its progress."""

    def __init__(
        self,
        *,
        roster: Sequence[Agent] | None = None,
        council_size: int = config.DEFAULT_COUNCIL_SIZE,
        synthesis_model: str = config.DEFAULT_SYNTHESIS_MODEL,
        synthesis_priority: Sequence[str] | None = None,
        turn_delay: float = config.TURN_DELAY_SECONDS,
        fallback_model: str = config.FALLBACK_MODEL,
    ) -> None:
        self._roster = list(roster) if roster is not None else build_roster()
        self._council_size = config.DEFAULT_COUNCIL_SIZE
        self.set_council_size(council_size)
        self._synthesis_model = synthesis_model
        self._synthesis_priority = list(synthesis_priority or [])
        self._turn_delay = turn_delay
        self._fallback_model = fallback_model

        self._phase = Phase.IDLE
        self._session: DeliberationSession | None = None
        self._subscribers: set[asyncio.Queue] = set()

    @classmethod
    def from_config(cls) -> "DeliberationController":
        """Build a controller from persisted user configuration."""
        roster = build_roster()
        overrides = config.get_agent_models()
        for agent in roster:
            if agent.id in overrides:
                agent.model = overrides[agent.id]

        return cls(
            roster=roster,
            council_size=config.get_council_size(),
            synthesis_model=config.get_synthesis_model(),
            synthesis_priority=config.get_synthesis_priority(),
        )

    # ---- Observability ------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def session(self) -> DeliberationSession | None:
        return self._session

    @property
    def is_refining(self) -> bool:
        return self._session is not None and self._session.is_refining

    @property
    def active_agent_id(self) -> str | None:
        return self._session.active_agent_id if self._session else None

    @property
    def transcript(self) -> tuple[TranscriptEntry, ...]:
        return self._session.history() if self._session else ()

    @property
    def turn_count(self) -> int:
        return self._session.turn_count if self._session else 0

    @property
    def verdict(self) -> str | None:
        return self._session.verdict if self._session else None

    @property
    def roster(self) -> list[Agent]:
        return list(self._roster)

    @property
    def agents(self) -> list[Agent]:
        """Agents taking part at the current council size."""
        return self._roster[:self._council_size]

    @property
    def council_size(self) -> int:
        return self._council_size

    @property
    def synthesis_model(self) -> str:
        return self._synthesis_model

    @property
    def synthesis_priority(self) -> list[str]:
        return list(self._synthesis_priority)

    @property
    def can_start(self) -> bool:
        return self._phase in (Phase.IDLE, Phase.CONCLUDED)

    def snapshot(self) -> dict[str, Any]:
        """Everything the presentation layer needs to render the council."""
        session = self._session
        return {
            "phase": self._phase.value,
            "is_refining": self.is_refining,
            "active_agent_id": self.active_agent_id,
            "council_size": self._council_size,
            "synthesis_model": self._synthesis_model,
            "synthesis_priority": list(self._synthesis_priority),
            "agents": [agent.to_dict() for agent in self.agents],
            "topic": session.raw_topic if session else None,
            "refined_topic": session.refined_topic if session else None,
            "session_id": session.session_id if session else None,
            "turn_count": self.turn_count,
            "transcript": [entry.to_dict() for entry in self.transcript],
            "verdict": self.verdict,
            "verdict_model": session.verdict_model if session else None,
        }

    # ---- Event stream -------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        """Register for controller events."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        """Stop delivering events to a queue."""
        self._subscribers.discard(queue)

    def _publish(self, event_type: str, **data: Any) -> None:
        event = {"type": event_type, "timestamp": time.time(), **data}
        for queue in self._subscribers:
            queue.put_nowait(event)

    # ---- Control surface ----------------------------------------------------

    def set_council_size(self, size: int) -> None:
        """Set the number of agents for the next deliberation."""
        if not config.MIN_COUNCIL_SIZE <= size <= min(config.MAX_COUNCIL_SIZE, len(self._roster)):
            raise ValueError(
                f"Council size must be between {config.MIN_COUNCIL_SIZE} and "
                f"{min(config.MAX_COUNCIL_SIZE, len(self._roster))}, got {size}"
            )
        self._council_size = size

    def set_agent_model(self, agent_id: str, model_id: str) -> Agent:
        """Assign a model to an agent. Takes effect from its next turn."""
        for agent in self._roster:
            if agent.id == agent_id:
                agent.model = model_id
                logger.info("Agent model updated. Agent: %s, Model: %s", agent.name, model_id)
                return agent
        raise KeyError(f"Unknown agent: {agent_id}")

    def set_synthesis_model(self, model_id: str) -> None:
        """Set the single synthesis model."""
        self._synthesis_model = model_id

    def set_synthesis_priority(self, models: Sequence[str]) -> None:
        """Set the ordered synthesis candidates. Empty means use the single model."""
        self._synthesis_priority = list(models)

    def reset(self) -> None:
        """Discard the current session and return to idle. Always permitted."""
        self._session = None
        self._transition(Phase.IDLE)
        set_session_id(None)
        set_agent_id(None)
        logger.info("Deliberation reset")
        self._publish("reset")

    def begin(self, topic: str) -> DeliberationSession | None:
        """
        Claim the controller for a new deliberation without awaiting.

        The phase is RUNNING when this returns, so a second caller is
        refused even before ``run`` gets scheduled.

        Returns:
            The new session, or None for a blank topic or while one is running
        """
        raw_topic = (topic or "").strip()
        if not raw_topic:
            return None
        if not self.can_start:
            logger.info("Ignoring start while deliberation is running")
            return None

        session = DeliberationSession(raw_topic=raw_topic, council_size=self._council_size)
        self._session = session
        self._transition(Phase.RUNNING)
        self._publish("session_start", session_id=session.session_id, topic=raw_topic)
        return session

    async def run(self, session: DeliberationSession) -> None:
        """
        Refine, deliberate and synthesize for a session claimed by ``begin``.

        Any failure concludes the session with an error verdict. A session
        discarded by reset finishes silently.
        """
        set_session_id(session.session_id)

        def is_current() -> bool:
            return self._session is session

        agents = self._roster[:session.council_size]
        started = time.monotonic()

        with trace_span("deliberation.session", {"deliberation.council_size": session.council_size}):
            try:
                result = await self._deliberate(session, agents, is_current)
            except Exception as e:
                logger.exception("Deliberation error. Turns: %d, Error: %s", session.turn_count, e)
                result = SynthesisResult(verdict=LOOP_ERROR_VERDICT, failed=True)
            finally:
                set_agent_id(None)

            if result is None or not is_current():
                logger.info("Discarding superseded deliberation. Turns: %d", session.turn_count)
                return

            session.is_refining = False
            session.set_verdict(result.verdict, result.model)
            session.active_agent_id = None
            self._transition(Phase.CONCLUDED)

        logger.info(
            "Deliberation concluded. Turns: %d, SynthesisFailed: %s, Duration: %.2fs",
            session.turn_count, result.failed, time.monotonic() - started,
        )
        self._publish(
            "concluded", verdict=result.verdict, verdict_model=result.model, failed=result.failed,
        )

    async def start(self, topic: str) -> bool:
        """
        Run a full deliberation: refinement, turn loop, synthesis.

        Returns:
            False if nothing was started (blank topic or one already running)
        """
        session = self.begin(topic)
        if session is None:
            return False
        await self.run(session)
        return True

    # ---- Internals ----------------------------------------------------------

    def _transition(self, target: Phase) -> None:
        if target not in _TRANSITIONS[self._phase]:
            raise SessionStateError(f"Illegal transition {self._phase.value} -> {target.value}")
        self._phase = target

    async def _deliberate(
        self, session: DeliberationSession, agents: list[Agent], is_current
    ) -> SynthesisResult | None:
        """Returns None once the session has been superseded."""
        logger.info(
            "Beginning deliberation. CouncilSize: %d, SynthesisCandidates: %s",
            session.council_size,
            ",".join(synthesis_candidates(self._synthesis_model, self._synthesis_priority)),
        )

        session.is_refining = True
        self._publish("refinement_start")
        refined = await refine_topic(session.raw_topic)
        if not is_current():
            return None
        session.set_refined_topic(refined)
        session.is_refining = False
        self._publish("refinement_complete", refined_topic=refined)

        try:
            await self._run_loop(session, agents, is_current)
        except Exception as e:
            logger.exception("Deliberation loop error. Turns: %d, Error: %s", session.turn_count, e)
            return SynthesisResult(verdict=LOOP_ERROR_VERDICT, failed=True)
        if not is_current():
            return None

        result = await self._synthesize(session)
        if is_current():
            self._publish("synthesis_complete", synthesis=result.to_dict())
        return result

    async def _run_loop(self, session: DeliberationSession, agents: list[Agent], is_current) -> None:
        scheduler = TurnScheduler(
            agents, turn_delay=self._turn_delay, fallback_model=self._fallback_model
        )

        def on_turn_start(turn: int, agent: Agent) -> None:
            session.active_agent_id = agent.id
            set_agent_id(agent.id)
            self._publish("turn_start", turn=turn, agent_id=agent.id, model=agent.model)

        def on_turn_complete(entry: TranscriptEntry) -> None:
            self._publish("turn_complete", entry=entry.to_dict(), turn_count=session.turn_count)

        outcome = await scheduler.run(
            session,
            is_current=is_current,
            on_turn_start=on_turn_start,
            on_turn_complete=on_turn_complete,
        )
        logger.info(
            "Turn loop finished. Turns: %d, Terminated: %s, Cancelled: %s",
            outcome.turns, outcome.terminated, outcome.cancelled,
        )

    async def _synthesize(self, session: DeliberationSession) -> SynthesisResult:
        session.active_agent_id = SYNTHESIS_NODE_ID
        set_agent_id(SYNTHESIS_NODE_ID)
        candidates = synthesis_candidates(self._synthesis_model, self._synthesis_priority)
        self._publish("synthesis_start", candidates=candidates)
        return await synthesize_verdict(session.refined_topic, session.history(), candidates)
