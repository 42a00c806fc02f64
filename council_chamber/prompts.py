"""Prompt templates for refinement, agent turns, synthesis and suggestions."""

from collections.abc import Sequence

from .deliberation import Agent, TranscriptEntry

TERMINATION_TOKEN = "[TERMINATE_DELIBERATION]"

OPENING_THESIS_INSTRUCTION = (
    "The deliberation session is just beginning. "
    "Provide an opening thesis for the objective."
)

SYSTEM_INSTRUCTION_TEMPLATE = """You are {name}, one of {total} AI instances participating in a high-speed deliberation experiment.
Your goal: Analyze the input topic, build upon or challenge the thoughts of other instances, and move toward the most logical and optimized conclusion.

RULES:
1. NO ROLEPLAY. Do not adopt a persona. You are a raw large language model.
2. BE CONCISE. Maximum 2 sentences per turn.
3. CONTEXTUAL AWARENESS. Read the history carefully. Address specific points made by previous instances.
4. TERMINATION LOGIC: If you believe the council has reached a definitive and optimized consensus, append '{token}' to the end of your message. If more refinement is needed, do not include this tag.
5. EVOLVE. Identify logical flaws or gaps in the current consensus and fix them.
6. TOOL USAGE: If a fact, product, or specific data point is missing from your internal knowledge, or if you are performing product finding or market analysis, you MUST use the search tool to retrieve accurate, real-time information."""

TURN_PROMPT_TEMPLATE = """Strategic Objective: {topic}
Council History:
{history}

Instruction: Provide your analytical contribution as {name}. If you believe a logical consensus has been reached, add {token}."""

REFINEMENT_PROMPT_TEMPLATE = """You are a professional Prompt Engineer for an AI Governance Council.
The user provided a raw objective: "{raw_topic}"

Your task is to rewrite this objective into a highly structured, objective, and analytically clear deliberation target for the Council.
Make it precise, identify key constraints, and set a clear objective for multi-agent reasoning.
Keep the output concise (max 3 sentences).
Output ONLY the engineered prompt text."""

SYNTHESIS_PROMPT_TEMPLATE = """Topic: {topic}
History: {history}

As the final supervisor instance, synthesize the entire deliberation above into the "Best Possible Response".
Be definitive, objective, and comprehensive. Ensure the final result represents the peak of the collective reasoning provided by the instances.
Format: Start with "FINAL VERDICT:" followed by the synthesized conclusion."""

SUGGESTIONS_PROMPT_TEMPLATE = """Generate {count} unique, professional "Strategic Objectives" for an AI Research Council.
Categories should be: Global Logistics, Renewable Energy, Economic Stability, or Scientific Ethics.
Output as JSON array of objects with "category" and "text" fields."""


def format_history(transcript: Sequence[TranscriptEntry], separator: str = "\n") -> str:
    """Render transcript entries as `name: content` lines in order."""
    return separator.join(f"{entry.author_name}: {entry.content}" for entry in transcript)


def build_system_instruction(agent_name: str, council_size: int) -> str:
    """System instruction for one agent in a council of the given size."""
    return SYSTEM_INSTRUCTION_TEMPLATE.format(
        name=agent_name, total=council_size, token=TERMINATION_TOKEN
    )


def build_turn_prompt(
    agent: Agent,
    refined_topic: str,
    transcript: Sequence[TranscriptEntry],
    council_size: int,
) -> str:
    """
    Per-turn prompt for the acting agent.

    An empty transcript is rendered as an explicit request for an opening
    thesis. Council size is carried by the system instruction, not here.
    """
    history = format_history(transcript) if transcript else OPENING_THESIS_INSTRUCTION
    return TURN_PROMPT_TEMPLATE.format(
        topic=refined_topic,
        history=history,
        name=agent.name,
        token=TERMINATION_TOKEN,
    )


def build_refinement_prompt(raw_topic: str) -> str:
    """Prompt that rewrites a raw topic into a deliberation objective."""
    return REFINEMENT_PROMPT_TEMPLATE.format(raw_topic=raw_topic)


def build_synthesis_prompt(topic: str, transcript: Sequence[TranscriptEntry]) -> str:
    """Prompt for the final verdict over the full transcript."""
    return SYNTHESIS_PROMPT_TEMPLATE.format(
        topic=topic, history=format_history(transcript, separator="\n\n")
    )


def build_suggestions_prompt(count: int = 4) -> str:
    """Prompt asking for starter topics as a JSON array."""
    return SUGGESTIONS_PROMPT_TEMPLATE.format(count=count)
