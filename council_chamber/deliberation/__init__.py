"""Deliberation data models shared by the scheduler, synthesis and controller."""

from .deliberation import (
    Agent,
    Citation,
    DeliberationSession,
    Phase,
    SessionStateError,
    TranscriptEntry,
)

__all__ = [
    "Agent",
    "Citation",
    "DeliberationSession",
    "Phase",
    "SessionStateError",
    "TranscriptEntry",
]
