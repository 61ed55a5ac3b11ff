"""Human-readable rendering of optimization results."""

from __future__ import annotations

from grammarly_optimizer.types import OptimizationResult


def _pct(value: float | None) -> str:
    return "n/a" if value is None else f"{value:g}%"


def render_markdown(result: OptimizationResult) -> str:
    lines = [
        "# Grammarly optimization result",
        "",
        f"- **Thresholds met:** {'yes' if result.thresholds_met else 'no'}",
        f"- **AI detection:** {_pct(result.scores.ai_percent)}",
        f"- **Plagiarism:** {_pct(result.scores.plagiarism_percent)}",
        f"- **Iterations used:** {result.iterations_used}",
    ]
    if result.provider:
        lines.append(f"- **Provider:** {result.provider}")
    if result.live_url:
        lines.append(f"- **Live session:** {result.live_url}")

    lines += ["", "## History", "", "| Iteration | AI | Plagiarism | Note |", "| --- | --- | --- | --- |"]
    for record in result.history:
        note = " ".join(record.note.split()).replace("|", "\\|")
        lines.append(
            f"| {record.iteration} | {_pct(record.scores.ai_percent)} "
            f"| {_pct(record.scores.plagiarism_percent)} | {note} |"
        )

    lines += ["", "## Notes", "", result.notes or "_none_", "", "## Final text", "", result.final_text]
    return "\n".join(lines) + "\n"
