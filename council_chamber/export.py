"""Export the current deliberation to Markdown or JSON."""

from datetime import datetime
from typing import Any

from .models import model_display_name


def export_to_markdown(snapshot: dict[str, Any]) -> str:
    """Export a controller snapshot to Markdown format.

    Args:
        snapshot: Dict returned by DeliberationController.snapshot()

    Returns:
        Markdown-formatted string
    """
    lines: list[str] = []

    topic = snapshot.get("topic") or "Untitled Deliberation"
    lines.append(f"# {topic}")
    lines.append("")
    lines.append(f"*Exported from Council Chamber on {datetime.now().strftime('%Y-%m-%d %H:%M')}*")
    lines.append("")

    lines.append("## Council Configuration")
    lines.append("")
    lines.append(f"**Status:** {snapshot.get('phase', 'idle')}")
    lines.append(f"**Nodes:** {snapshot.get('council_size', 0)}")
    synthesis_model = snapshot.get("synthesis_model")
    if synthesis_model:
        lines.append(f"**Synthesis:** {model_display_name(synthesis_model)}")
    lines.append("")

    refined = snapshot.get("refined_topic")
    if refined:
        lines.append("## Objective")
        lines.append("")
        lines.append(refined)
        lines.append("")

    lines.append("---")
    lines.append("")

    transcript = snapshot.get("transcript", [])
    if transcript:
        lines.append("## Deliberation")
        lines.append("")
    for entry in transcript:
        heading = entry.get("author_name", "Unknown")
        if entry.get("model"):
            heading += f" ({model_display_name(entry['model'])})"
        lines.append(f"### {heading}")
        lines.append("")
        content = entry.get("content", "")
        lines.append(f"> {content}" if entry.get("failed") else content)
        lines.append("")

        citations = entry.get("citations", [])
        if citations:
            lines.append("**Sources:**")
            for citation in citations:
                title = citation.get("title") or citation.get("uri", "")
                lines.append(f"- [{title}]({citation.get('uri', '')})")
            lines.append("")

    verdict = snapshot.get("verdict")
    if verdict:
        lines.append("---")
        lines.append("")
        lines.append("## Final Verdict")
        lines.append("")
        verdict_model = snapshot.get("verdict_model")
        if verdict_model:
            lines.append(f"*Synthesized by {model_display_name(verdict_model)}*")
            lines.append("")
        lines.append(verdict)
        lines.append("")

    return "\n".join(lines)


def export_to_json(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Export a controller snapshot to clean JSON format.

    Args:
        snapshot: Dict returned by DeliberationController.snapshot()

    Returns:
        JSON-serializable dict
    """
    return {
        "session_id": snapshot.get("session_id"),
        "phase": snapshot.get("phase"),
        "topic": snapshot.get("topic"),
        "refined_topic": snapshot.get("refined_topic"),
        "council_size": snapshot.get("council_size"),
        "agents": snapshot.get("agents", []),
        "transcript": snapshot.get("transcript", []),
        "verdict": snapshot.get("verdict"),
        "verdict_model": snapshot.get("verdict_model"),
    }
