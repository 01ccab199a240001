"""Rich console rendering of turns and outcomes, and markdown transcript save."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from deliberation.models import REQUESTER_ROLE, OutcomeStatus, Request, RunOutcome, Turn

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_STATUS_STYLE = {
    OutcomeStatus.APPROVED: "bold green",
    OutcomeStatus.EXHAUSTED_RETRIES: "bold yellow",
    OutcomeStatus.CANCELLED: "bold red",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def print_turn(turn: Turn, color: str = "white") -> None:
    """Print one turn as 'role : text' in the role's colour."""
    line = Text(f"{turn.role} : ", style=f"bold {color}")
    line.append(turn.text, style=color)
    if turn.text != turn.raw_text:
        line.append(f"  (normalized from {turn.raw_text[:40]!r})", style="dim")
    console.print(line)


def print_outcome(outcome: RunOutcome) -> None:
    console.print(Rule(f"[{_STATUS_STYLE[outcome.status]}]{outcome.status.value}[/]"))
    console.print(
        Text(
            f"Turns: {outcome.turn_count} | Duration: {outcome.duration_sec:.1f}s",
            style="dim",
        )
    )
    console.print(f"Conversation completed: {outcome.approved}")


def save_to_file(
    outcome: RunOutcome,
    request: Request,
    topology: str,
    output_dir: Path,
    slug_override: str | None = None,
) -> Path:
    """Save the full transcript as a markdown file and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(request.text)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    lines: list[str] = [
        f"# Deliberation: {request.text[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Topology:** {topology}",
        f"**Outcome:** {outcome.status.value}",
        f"**Turns:** {outcome.turn_count}",
        f"**Duration:** {outcome.duration_sec:.1f}s",
        f"**Source:** {request.source}",
        "",
        "---",
        "",
    ]

    for turn in outcome.turns:
        heading = "Request" if turn.role == REQUESTER_ROLE else f"Turn {turn.sequence}: {turn.role}"
        lines += [f"## {heading}", "", turn.text, ""]
        if turn.text != turn.raw_text:
            lines += [f"*Normalized from:* `{' '.join(turn.raw_text.split())[:200]}`", ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Transcript saved to: %s", filepath)
    return filepath
