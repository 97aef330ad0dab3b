"""Unit tests for protocol definitions, triggers and conditionals."""

from __future__ import annotations

import logging
import re

import pytest

from protocol_engine.engine.errors import CatalogError
from protocol_engine.engine.protocols.models import (
    ContextKey,
    CustomCondition,
    ErrorTrigger,
    EventTrigger,
    FileExists,
    PhraseTrigger,
    Priority,
    ProtocolDefinition,
    ProtocolMetadata,
    ProtocolStep,
    StateTrigger,
    UnknownTrigger,
    describe_trigger,
    parse_conditional,
    trigger_from_json,
)


def test_phrase_trigger_is_case_insensitive_substring() -> None:
    trigger = PhraseTrigger("Update Repo")
    assert trigger.matches("please update repo now", {})
    assert not trigger.matches("update the repo", {})


def test_phrase_trigger_is_containment_not_whole_word() -> None:
    assert PhraseTrigger("update repo").matches("update report", {})


def test_phrase_trigger_expression_uses_its_own_flags() -> None:
    strict = PhraseTrigger(re.compile(r"^deploy\b"))
    assert strict.matches("deploy now", {})
    assert not strict.matches("please deploy", {})

    # Input is lowercased before matching, so an uppercase-only expression misses.
    assert not PhraseTrigger(re.compile("DEPLOY")).matches("deploy", {})
    assert PhraseTrigger(re.compile("DEPLOY", re.IGNORECASE)).matches("deploy", {})


def test_event_and_state_triggers_use_exact_equality() -> None:
    assert EventTrigger("new_conversation").matches("", {"event": "new_conversation"})
    assert not EventTrigger("new_conversation").matches("", {"event": "new_conversation_2"})
    assert StateTrigger("idle").matches("", {"state": "idle"})
    assert not StateTrigger("idle").matches("idle", {})


def test_error_trigger_substring_and_absent_error() -> None:
    trigger = ErrorTrigger("not found")
    assert trigger.matches("", {"error": "ENOENT: file not found"})
    assert not trigger.matches("", {})
    assert not trigger.matches("not found", {"error": "timeout"})


def test_unknown_trigger_never_matches() -> None:
    trigger = trigger_from_json({"type": "webhook", "pattern": "anything"})
    assert isinstance(trigger, UnknownTrigger)
    assert not trigger.matches("anything", {"event": "anything"})


def test_trigger_from_json_variants() -> None:
    assert trigger_from_json({"type": "phrase", "pattern": "hi"}) == PhraseTrigger("hi")
    assert trigger_from_json({"type": "event", "pattern": "e", "context": "k"}) == EventTrigger(
        "e", context="k"
    )
    regex = trigger_from_json({"type": "phrase", "pattern": "^go", "regex": True})
    assert isinstance(regex, PhraseTrigger)
    assert describe_trigger(regex) == "custom pattern"

    with pytest.raises(CatalogError):
        trigger_from_json({"type": "phrase", "pattern": "(", "regex": True})
    with pytest.raises(CatalogError):
        trigger_from_json({"type": "phrase"})


def test_parse_conditional() -> None:
    assert parse_conditional(None) is None
    assert parse_conditional("") is None
    assert parse_conditional("file_exists") == FileExists()
    assert parse_conditional("context.includeTests") == ContextKey("includeTests")
    assert parse_conditional("weather.sunny") == CustomCondition("weather.sunny")
    assert ContextKey("x").expression == "context.x"


def test_priority_rank_order() -> None:
    ranks = [p.rank for p in (Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW)]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 4


def test_definition_rejects_duplicate_step_ids() -> None:
    with pytest.raises(CatalogError):
        ProtocolDefinition(
            id="dup",
            name="Dup",
            description="",
            triggers=(),
            steps=(ProtocolStep(id="s", name="One"), ProtocolStep(id="s", name="Two")),
            metadata=ProtocolMetadata(priority=Priority.LOW, category="test"),
        )


def test_definition_from_json() -> None:
    definition = ProtocolDefinition.from_json(
        {
            "id": "deploy",
            "name": "Deploy",
            "description": "Ship it",
            "triggers": [
                {"type": "phrase", "pattern": "deploy"},
                {"type": "error", "pattern": "rollback"},
            ],
            "steps": [
                {"id": "build", "name": "Build", "command": "make ${target}"},
                {
                    "id": "notify",
                    "name": "Notify",
                    "conditional": "context.notify",
                    "substeps": [{"id": "email", "name": "Email"}],
                },
            ],
            "metadata": {"priority": "high", "category": "ops", "tags": ["ci", "cd"]},
        }
    )

    assert definition.priority is Priority.HIGH
    assert definition.metadata.tags == frozenset({"ci", "cd"})
    assert [s.id for s in definition.steps] == ["build", "notify"]
    assert definition.steps[1].conditional == ContextKey("notify")
    assert definition.steps[1].substeps[0].id == "email"
    assert definition.has_step("build")
    assert definition.get_step("missing") is None

    dumped = definition.to_json()
    assert dumped["metadata"] == {"priority": "high", "category": "ops", "tags": ["cd", "ci"]}
    assert dumped["steps"][1]["conditional"] == "context.notify"


def test_definition_from_json_unknown_priority_falls_back_to_medium(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING):
        definition = ProtocolDefinition.from_json(
            {"id": "x", "name": "X", "steps": [], "metadata": {"priority": "urgent"}}
        )

    assert definition.priority is Priority.MEDIUM
    assert "Unknown protocol priority" in caplog.text
