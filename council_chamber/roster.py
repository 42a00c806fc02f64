"""The fixed roster of council agents."""

from .config import DEFAULT_AGENT_MODEL, ROSTER_SIZE
from .deliberation import Agent

ACCENTS = [
    "red", "orange", "yellow", "green", "blue", "purple", "pink", "cyan",
    "emerald", "amber", "indigo", "lime", "rose", "teal", "violet", "fuchsia",
    "sky",
]


def agent_name(index: int) -> str:
    """Display name for the agent at a zero-based roster index."""
    return f"INSTANCE_{index + 1:02d}"


def build_roster(size: int = ROSTER_SIZE, model: str = DEFAULT_AGENT_MODEL) -> list[Agent]:
    """
    Create the roster of agents, all assigned to the same starting model.

    Args:
        size: Number of agents to create
        model: Model identifier every agent starts on

    Returns:
        Agents with ids "1".."size" and cycling accent colours
    """
    return [
        Agent(
            id=str(i + 1),
            name=agent_name(i),
            accent=ACCENTS[i % len(ACCENTS)],
            model=model,
        )
        for i in range(size)
    ]
