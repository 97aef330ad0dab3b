"""Text rendering for commands, progress and summaries.

Output is markdown-flavoured plain text meant for a human or an assistant
relaying it to one.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

from .active import ActiveProtocol
from .models import ProtocolStep

PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")
TODAY_PLACEHOLDER = "today"
PROGRESS_BAR_WIDTH = 20


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def render_command(
    template: str | None, context: Mapping[str, Any], *, today: date | None = None
) -> str:
    """Fill ``${name}`` placeholders from ``context``.

    ``${today}`` always becomes the current UTC date. Placeholders with no
    (or a None) context value are left verbatim.
    """

    if not template:
        return ""
    today_text = (today or datetime.now(tz=UTC).date()).isoformat()

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name == TODAY_PLACEHOLDER:
            return today_text
        value = context.get(name)
        if value is None:
            return match.group(0)
        return _stringify(value)

    return PLACEHOLDER_RE.sub(_replace, template)


def progress_bar(completed: int, total: int) -> str:
    ratio = completed / total if total else 1.0
    filled = round(ratio * PROGRESS_BAR_WIDTH)
    return f"[{'█' * filled}{'░' * (PROGRESS_BAR_WIDTH - filled)}] {round(ratio * 100)}%"


def format_step(step: ProtocolStep, context: Mapping[str, Any]) -> str:
    lines = [f"🎯 **Next Step: {step.name}**"]
    if step.description:
        lines.append(f"📝 {step.description}")
    if step.command:
        lines += ["", "**Command to execute:**", "```", render_command(step.command, context), "```"]
    if step.validation:
        lines += ["", f"✔️ **Validation:** {step.validation}"]
    return "\n".join(lines) + "\n"


def format_status(active: ActiveProtocol) -> str:
    progress = active.get_progress()
    lines = [
        f"📋 **{active.protocol.name}**",
        progress_bar(progress.completed, progress.total),
        f"Progress: {progress.completed}/{progress.total} steps",
        "",
    ]
    for index, step in enumerate(active.protocol.steps):
        if active.is_step_complete(step.id):
            glyph = "✅"
        elif index == progress.current_index:
            glyph = "🔄"
        else:
            glyph = "⏳"
        lines.append(f"{glyph} Step {index + 1}: {step.name}")

        if index == progress.current_index:
            if step.description:
                lines.append(f"   📝 {step.description}")
            if step.command:
                lines.append(f"   > {render_command(step.command, active.context)}")
    return "\n".join(lines) + "\n"


def format_summary(active: ActiveProtocol, *, now: datetime | None = None) -> str:
    elapsed = (now or datetime.now(tz=UTC)) - active.started_at
    minutes = round(elapsed.total_seconds() / 60)
    lines = [
        "## Protocol Execution Summary",
        "",
        f"**Protocol:** {active.protocol.name}",
        f"**Duration:** {minutes} minutes",
        f"**Steps Completed:** {len(active.completed_steps)}/{len(active.protocol.steps)}",
    ]

    results = [
        (step, active.step_results[step.id])
        for step in active.protocol.steps
        if step.id in active.step_results
    ]
    if results:
        lines += ["", "### Results"]
        for step, result in results:
            lines.append(f"- **{step.name}:** {json.dumps(result, ensure_ascii=False)}")
    return "\n".join(lines) + "\n"
