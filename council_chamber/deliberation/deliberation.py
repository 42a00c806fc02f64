"""Deliberation data models: agents, transcript entries and sessions."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SessionStateError(RuntimeError):
    """Raised when a session mutation would break a lifecycle invariant."""


class Phase(str, Enum):
    """Overall deliberation status."""

    IDLE = "idle"
    RUNNING = "running"  # Topic refinement and the turn loop
    CONCLUDED = "concluded"

    # Reserved, no transitions lead here yet
    PAUSED = "paused"
    AWAITING_APPROVAL = "awaiting_approval"


@dataclass
class Agent:
    """A council member.

    Identity (id, name, accent) is fixed for the life of the process; the
    assigned model can be changed between turns.
    """

    id: str
    name: str
    accent: str
    model: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "accent": self.accent,
            "model": self.model,
        }


@dataclass(frozen=True)
class Citation:
    """A grounding source returned alongside a model reply."""

    uri: str
    title: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"uri": self.uri, "title": self.title}


@dataclass(frozen=True)
class TranscriptEntry:
    """One turn's contribution. Never mutated once appended."""

    author_id: str
    author_name: str  # Denormalized at write time
    content: str  # Termination token already stripped
    timestamp: float = field(default_factory=time.time)
    citations: tuple[Citation, ...] = ()
    model: str | None = None  # Model that actually produced the content
    failed: bool = False
    metrics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "author_id": self.author_id,
            "author_name": self.author_name,
            "content": self.content,
            "timestamp": self.timestamp,
            "failed": self.failed,
        }
        if self.citations:
            result["citations"] = [c.to_dict() for c in self.citations]
        if self.model:
            result["model"] = self.model
        if self.metrics:
            result["metrics"] = self.metrics
        return result


@dataclass
class DeliberationSession:
    """State of one deliberation, from topic submission to verdict.

    Mutations go through the methods below so the lifecycle invariants hold:
    the refined topic is set once before any turn, the transcript and turn
    counter move together, and the verdict is set at most once after the
    loop has finished.
    """

    raw_topic: str
    council_size: int
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    refined_topic: str | None = None
    transcript: list[TranscriptEntry] = field(default_factory=list)
    turn_count: int = 0
    verdict: str | None = None
    verdict_model: str | None = None
    active_agent_id: str | None = None
    is_refining: bool = False

    def set_refined_topic(self, topic: str) -> None:
        """Record the refined topic. Allowed exactly once, before any turn."""
        if self.refined_topic is not None:
            raise SessionStateError("Refined topic already set for this session")
        if self.turn_count:
            raise SessionStateError("Refined topic must be set before the first turn")
        self.refined_topic = topic

    def record_turn(self, entry: TranscriptEntry) -> None:
        """Append a transcript entry and advance the turn counter."""
        if self.refined_topic is None:
            raise SessionStateError("Cannot record a turn before topic refinement")
        if self.verdict is not None:
            raise SessionStateError("Cannot record a turn after the verdict")
        self.transcript.append(entry)
        self.turn_count += 1

    def set_verdict(self, verdict: str, model: str | None = None) -> None:
        """Record the final verdict. Allowed at most once."""
        if self.verdict is not None:
            raise SessionStateError("Verdict already set for this session")
        self.verdict = verdict
        self.verdict_model = model

    def history(self) -> tuple[TranscriptEntry, ...]:
        """Immutable snapshot of the transcript so far."""
        return tuple(self.transcript)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the API."""
        return {
            "session_id": self.session_id,
            "created_at": self.created_at,
            "raw_topic": self.raw_topic,
            "refined_topic": self.refined_topic,
            "council_size": self.council_size,
            "turn_count": self.turn_count,
            "transcript": [entry.to_dict() for entry in self.transcript],
            "verdict": self.verdict,
            "verdict_model": self.verdict_model,
            "active_agent_id": self.active_agent_id,
            "is_refining": self.is_refining,
        }
