"""Unit tests for command templating and text rendering."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from protocol_engine.engine.protocols.active import ActiveProtocol
from protocol_engine.engine.protocols.models import ProtocolDefinition, ProtocolStep
from protocol_engine.engine.protocols.rendering import (
    format_step,
    format_summary,
    progress_bar,
    render_command,
)


def test_render_substitutes_context_values() -> None:
    rendered = render_command('git:git_commit(message="${commit_message}")', {"commit_message": "x"})
    assert rendered == 'git:git_commit(message="x")'


def test_render_leaves_missing_and_null_values() -> None:
    template = "run ${a} ${b}"
    assert render_command(template, {"b": None}) == template


def test_render_today_wins_over_context() -> None:
    rendered = render_command(
        "log ${today}", {"today": "ignored"}, today=date(2024, 2, 29)
    )
    assert rendered == "log 2024-02-29"


def test_render_serializes_non_string_values() -> None:
    rendered = render_command("set(${data}, ${n}, ${flag})", {"data": {"k": [1]}, "n": 3, "flag": True})
    assert rendered == 'set({"k": [1]}, 3, true)'


def test_render_empty_template() -> None:
    assert render_command(None, {}) == ""
    assert render_command("", {"a": 1}) == ""


def test_progress_bar() -> None:
    assert progress_bar(0, 4) == "[" + "░" * 20 + "] 0%"
    assert progress_bar(1, 4) == "[" + "█" * 5 + "░" * 15 + "] 25%"
    assert progress_bar(0, 0) == "[" + "█" * 20 + "] 100%"


def test_format_step_sections() -> None:
    step = ProtocolStep(
        id="s",
        name="Say hi",
        description="Greets",
        command="echo ${who}",
        validation="Greeting printed",
    )

    text = format_step(step, {"who": "world"})

    assert text.startswith("🎯 **Next Step: Say hi**")
    assert "📝 Greets" in text
    assert "echo world" in text
    assert "✔️ **Validation:** Greeting printed" in text


def test_format_step_without_optional_parts() -> None:
    assert format_step(ProtocolStep(id="s", name="Bare"), {}) == "🎯 **Next Step: Bare**\n"


def test_format_summary(abc_protocol: ProtocolDefinition) -> None:
    started = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)
    active = ActiveProtocol(abc_protocol, started_at=started)
    active.complete_step("a", {"exit": 0})

    text = format_summary(active, now=started + timedelta(minutes=12, seconds=20))

    assert "**Protocol:** ABC Protocol" in text
    assert "**Duration:** 12 minutes" in text
    assert "**Steps Completed:** 1/3" in text
    assert '- **Step A:** {"exit": 0}' in text


def test_format_summary_without_results(abc_protocol: ProtocolDefinition) -> None:
    active = ActiveProtocol(abc_protocol)

    assert "### Results" not in format_summary(active)
