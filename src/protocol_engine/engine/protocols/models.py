"""Protocol definitions: triggers, steps, conditionals and metadata.

Definitions are immutable once built. Triggers and conditionals are small
sum types so that matching and evaluation stay total: every variant is handled
explicitly, and unknown trigger kinds from externally authored data become an
``UnknownTrigger`` that never matches.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeAlias

from protocol_engine.engine.errors import CatalogError

logger = logging.getLogger(__name__)

JsonValue: TypeAlias = "str | int | float | bool | None | list[JsonValue] | dict[str, JsonValue]"
Context: TypeAlias = "dict[str, JsonValue]"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Severity rank; lower sorts first."""

        return _PRIORITY_RANK[self]


_PRIORITY_RANK: dict[Priority, int] = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PhraseTrigger:
    """Matches free-text input.

    A string pattern is a case-insensitive substring test. A compiled
    expression is searched against the lowercased input as-is, so case
    sensitivity depends on the expression's own flags.
    """

    pattern: str | re.Pattern[str]
    context: str | None = None

    kind = "phrase"

    def matches(self, text: str, context: Mapping[str, Any]) -> bool:
        if isinstance(self.pattern, str):
            return self.pattern.lower() in text
        return self.pattern.search(text) is not None


@dataclass(frozen=True, slots=True)
class EventTrigger:
    pattern: str
    context: str | None = None

    kind = "event"

    def matches(self, text: str, context: Mapping[str, Any]) -> bool:
        return context.get("event") == self.pattern


@dataclass(frozen=True, slots=True)
class StateTrigger:
    pattern: str
    context: str | None = None

    kind = "state"

    def matches(self, text: str, context: Mapping[str, Any]) -> bool:
        return context.get("state") == self.pattern


@dataclass(frozen=True, slots=True)
class ErrorTrigger:
    """Matches when ``context["error"]`` contains the pattern."""

    pattern: str
    context: str | None = None

    kind = "error"

    def matches(self, text: str, context: Mapping[str, Any]) -> bool:
        error = context.get("error")
        if error is None:
            return False
        return str(self.pattern) in str(error)


@dataclass(frozen=True, slots=True)
class UnknownTrigger:
    """A trigger kind this engine does not understand. Never matches."""

    kind: str
    pattern: str
    context: str | None = None

    def matches(self, text: str, context: Mapping[str, Any]) -> bool:
        return False


Trigger: TypeAlias = PhraseTrigger | EventTrigger | StateTrigger | ErrorTrigger | UnknownTrigger

_TRIGGER_TYPES: dict[str, type[EventTrigger] | type[StateTrigger] | type[ErrorTrigger]] = {
    "event": EventTrigger,
    "state": StateTrigger,
    "error": ErrorTrigger,
}


def describe_trigger(trigger: Trigger) -> str:
    """Human-readable pattern for listings; expressions are not spelled out."""

    if isinstance(trigger.pattern, str):
        return trigger.pattern
    return "custom pattern"


def trigger_to_json(trigger: Trigger) -> dict[str, object]:
    out: dict[str, object] = {"type": trigger.kind}
    if isinstance(trigger.pattern, str):
        out["pattern"] = trigger.pattern
    else:
        out["pattern"] = trigger.pattern.pattern
        out["regex"] = True
    if trigger.context is not None:
        out["context"] = trigger.context
    return out


def trigger_from_json(obj: Mapping[str, Any]) -> Trigger:
    kind = obj.get("type")
    pattern = obj.get("pattern")
    if not isinstance(kind, str) or not isinstance(pattern, str):
        raise CatalogError(f"Trigger needs string 'type' and 'pattern': {dict(obj)!r}")
    context_raw = obj.get("context")
    context = context_raw if isinstance(context_raw, str) else None

    if kind == "phrase":
        if obj.get("regex"):
            try:
                return PhraseTrigger(pattern=re.compile(pattern), context=context)
            except re.error as e:
                raise CatalogError(f"Invalid trigger expression {pattern!r}: {e}") from e
        return PhraseTrigger(pattern=pattern, context=context)

    trigger_type = _TRIGGER_TYPES.get(kind)
    if trigger_type is None:
        return UnknownTrigger(kind=kind, pattern=pattern, context=context)
    return trigger_type(pattern=pattern, context=context)


# ---------------------------------------------------------------------------
# Conditionals
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileExists:
    """Stand-in for a file check; resolved by a caller-supplied predicate."""

    @property
    def expression(self) -> str:
        return "file_exists"


@dataclass(frozen=True, slots=True)
class ContextKey:
    """True when the named context value is truthy."""

    name: str

    @property
    def expression(self) -> str:
        return f"context.{self.name}"


@dataclass(frozen=True, slots=True)
class CustomCondition:
    """Any other expression. Always evaluates to true."""

    tag: str

    @property
    def expression(self) -> str:
        return self.tag


Conditional: TypeAlias = FileExists | ContextKey | CustomCondition

CONTEXT_PREFIX = "context."


def parse_conditional(expression: str | None) -> Conditional | None:
    if expression is None or expression == "":
        return None
    if expression == "file_exists":
        return FileExists()
    if expression.startswith(CONTEXT_PREFIX):
        return ContextKey(name=expression[len(CONTEXT_PREFIX) :])
    return CustomCondition(tag=expression)


# ---------------------------------------------------------------------------
# Steps and definitions
# ---------------------------------------------------------------------------


def _optional_str(obj: Mapping[str, Any], key: str) -> str | None:
    value = obj.get(key)
    return value if isinstance(value, str) else None


@dataclass(frozen=True, slots=True)
class ProtocolStep:
    """One unit of work within a protocol.

    ``substeps`` are carried for definitions that declare them but are not
    expanded by the engine.
    """

    id: str
    name: str
    description: str | None = None
    command: str | None = None
    validation: str | None = None
    conditional: Conditional | None = None
    substeps: tuple[ProtocolStep, ...] = ()

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"id": self.id, "name": self.name}
        if self.description is not None:
            out["description"] = self.description
        if self.command is not None:
            out["command"] = self.command
        if self.validation is not None:
            out["validation"] = self.validation
        if self.conditional is not None:
            out["conditional"] = self.conditional.expression
        if self.substeps:
            out["substeps"] = [s.to_json() for s in self.substeps]
        return out

    @staticmethod
    def from_json(obj: Mapping[str, Any]) -> ProtocolStep:
        step_id = obj.get("id")
        name = obj.get("name")
        if not isinstance(step_id, str) or not step_id or not isinstance(name, str):
            raise CatalogError(f"Step needs string 'id' and 'name': {dict(obj)!r}")
        substeps_raw = obj.get("substeps") or []
        if not isinstance(substeps_raw, list):
            raise CatalogError(f"Step {step_id!r} has non-list 'substeps'")
        return ProtocolStep(
            id=step_id,
            name=name,
            description=_optional_str(obj, "description"),
            command=_optional_str(obj, "command"),
            validation=_optional_str(obj, "validation"),
            conditional=parse_conditional(_optional_str(obj, "conditional")),
            substeps=tuple(ProtocolStep.from_json(s) for s in substeps_raw),
        )


@dataclass(frozen=True, slots=True)
class ProtocolMetadata:
    priority: Priority
    category: str
    tags: frozenset[str] = field(default_factory=frozenset)

    def to_json(self) -> dict[str, object]:
        return {
            "priority": self.priority.value,
            "category": self.category,
            "tags": sorted(self.tags),
        }


@dataclass(frozen=True, slots=True)
class ProtocolDefinition:
    """A named, ordered procedure and the triggers that select it."""

    id: str
    name: str
    description: str
    triggers: tuple[Trigger, ...]
    steps: tuple[ProtocolStep, ...]
    metadata: ProtocolMetadata

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise CatalogError(f"Protocol {self.id} declares step {step.id!r} twice")
            seen.add(step.id)

    @property
    def priority(self) -> Priority:
        return self.metadata.priority

    def has_step(self, step_id: str) -> bool:
        return any(step.id == step_id for step in self.steps)

    def get_step(self, step_id: str) -> ProtocolStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "triggers": [trigger_to_json(t) for t in self.triggers],
            "steps": [s.to_json() for s in self.steps],
            "metadata": self.metadata.to_json(),
        }

    @staticmethod
    def from_json(obj: Mapping[str, Any]) -> ProtocolDefinition:
        protocol_id = obj.get("id")
        name = obj.get("name")
        if not isinstance(protocol_id, str) or not protocol_id or not isinstance(name, str):
            raise CatalogError(f"Protocol needs string 'id' and 'name': {obj.get('id')!r}")

        triggers_raw = obj.get("triggers") or []
        steps_raw = obj.get("steps") or []
        if not isinstance(triggers_raw, list) or not isinstance(steps_raw, list):
            raise CatalogError(f"Protocol {protocol_id} needs list 'triggers' and 'steps'")

        meta_raw = obj.get("metadata") or {}
        if not isinstance(meta_raw, Mapping):
            raise CatalogError(f"Protocol {protocol_id} has non-object 'metadata'")
        priority_raw = meta_raw.get("priority", Priority.MEDIUM.value)
        try:
            priority = Priority(priority_raw)
        except ValueError:
            logger.warning(
                "Unknown protocol priority; using medium",
                extra={"protocol_id": protocol_id, "priority": priority_raw},
            )
            priority = Priority.MEDIUM
        tags_raw = meta_raw.get("tags") or []
        metadata = ProtocolMetadata(
            priority=priority,
            category=str(meta_raw.get("category", "general")),
            tags=frozenset(str(t) for t in tags_raw),
        )

        return ProtocolDefinition(
            id=protocol_id,
            name=name,
            description=str(obj.get("description", "")),
            triggers=tuple(trigger_from_json(t) for t in triggers_raw),
            steps=tuple(ProtocolStep.from_json(s) for s in steps_raw),
            metadata=metadata,
        )
