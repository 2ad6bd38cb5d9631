"""
Schedule domain value types.

Plain, immutable dataclasses exchanged between the schedule engine, the
validator, the differ and the persistence layer. Storage-side JSON text
(dependency lists, artifact descriptors) is decoded into these typed tuples
at the model boundary, never inside the engine.

Usage:
    from caseflow.services.schedule_types import Basis, StepDefinition

    step = StepDefinition(id=1, seq=1, name="Kickoff", basis=Basis.GOAL, offset_days=-30)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from caseflow.core.exceptions import ValidationError

MAX_OFFSET_DAYS = 365

# Year floor below which a computed date is treated as an unset/epoch-zero bug.
MIN_VALID_YEAR = 2000


# ═════════════════════════════════════════════════════════════════════════════
# Enums
# ═════════════════════════════════════════════════════════════════════════════


class Basis(str, Enum):
    """Anchor of a step's due date."""
    GOAL = "goal"
    PREVIOUS = "prev"

    @classmethod
    def parse(cls, value: Basis | str) -> Basis:
        """Accept an enum member or "goal" / "prev" / "previous" (any case)."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower()
        if raw == "previous":
            raw = cls.PREVIOUS.value
        try:
            return cls(raw)
        except ValueError:
            raise ValidationError(
                f"basis must be one of: goal, prev (got {value!r})",
                details={"basis": value},
            ) from None


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


class FallbackKind(str, Enum):
    """Degraded-mode substitutions the propagator can make."""
    MISSING_PREDECESSOR_SCHEDULE = "missing_predecessor_schedule"
    INVALID_PREDECESSOR_DATE = "invalid_predecessor_date"
    SEQUENCE_PREDECESSOR = "sequence_predecessor"
    GOAL_DATE = "goal_date"


# ═════════════════════════════════════════════════════════════════════════════
# Template-side types
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RequiredArtifact:
    """Artifact a step must produce. Opaque to scheduling."""
    kind: str
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> RequiredArtifact:
        kind = (data.get("kind") or "").strip() if isinstance(data, dict) else ""
        if not kind:
            raise ValidationError("required artifact kind is required", details={"artifact": data})
        return cls(kind=kind, description=data.get("description"))

    def to_dict(self) -> dict:
        return {"kind": self.kind, "description": self.description}


@dataclass(frozen=True)
class StepDefinition:
    """Template-level step. Immutable once created."""
    id: int
    seq: int
    name: str
    basis: Basis
    offset_days: int
    depends_on: tuple[int, ...] = ()
    required_artifacts: tuple[RequiredArtifact, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "basis", Basis.parse(self.basis))
        if isinstance(self.offset_days, bool) or not isinstance(self.offset_days, int):
            raise ValidationError(
                f"offset_days must be an integer (got {self.offset_days!r})",
                details={"step_id": self.id, "offset_days": repr(self.offset_days)},
            )
        if abs(self.offset_days) > MAX_OFFSET_DAYS:
            raise ValidationError(
                f"offset_days must be within ±{MAX_OFFSET_DAYS} (got {self.offset_days})",
                details={"step_id": self.id, "offset_days": self.offset_days},
            )
        object.__setattr__(self, "depends_on", tuple(self.depends_on))
        object.__setattr__(self, "required_artifacts", tuple(self.required_artifacts))

    @property
    def abs_offset(self) -> int:
        # Sign is informational; the basis decides the direction.
        return abs(self.offset_days)

    @property
    def duration(self) -> int:
        """Working-day duration proxy used to derive start from due."""
        return max(self.abs_offset, 1)

    @property
    def is_goal_based(self) -> bool:
        return self.basis is Basis.GOAL


@dataclass(frozen=True)
class ProcessTemplateGraph:
    """Ordered step definitions of one process template."""
    template_id: int | None
    name: str
    steps: tuple[StepDefinition, ...]
    is_active: bool = True

    def __post_init__(self):
        object.__setattr__(self, "steps", tuple(self.steps))
        seen = set()
        for step in self.steps:
            if step.id in seen:
                raise ValidationError(
                    f"Duplicate step id {step.id} in template {self.name!r}",
                    details={"step_id": step.id},
                )
            seen.add(step.id)

    def step_map(self) -> dict[int, StepDefinition]:
        return {s.id: s for s in self.steps}


# ═════════════════════════════════════════════════════════════════════════════
# Computation results
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ComputedStepSchedule:
    step_id: int
    name: str
    start_date: date
    due_date: date
    dependencies: tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "dependencies": list(self.dependencies),
        }


@dataclass(frozen=True)
class ScheduleFallback:
    """Recorded degraded-mode substitution (computation continued)."""
    step_id: int
    kind: FallbackKind
    substitute_date: date
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "kind": self.kind.value,
            "substitute_date": self.substitute_date.isoformat(),
            "detail": self.detail,
        }


@dataclass(frozen=True)
class SchedulePlan:
    """Result of one computation. Never mutated; each replan builds a new one."""
    goal_date: date
    steps: tuple[ComputedStepSchedule, ...]
    country_code: str = "JP"
    fallbacks: tuple[ScheduleFallback, ...] = ()

    def by_step_id(self) -> dict[int, ComputedStepSchedule]:
        return {s.step_id: s for s in self.steps}

    def step(self, step_id: int) -> ComputedStepSchedule | None:
        for s in self.steps:
            if s.step_id == step_id:
                return s
        return None

    def to_dict(self) -> dict:
        return {
            "goal_date": self.goal_date.isoformat(),
            "country_code": self.country_code,
            "steps": [s.to_dict() for s in self.steps],
            "fallbacks": [f.to_dict() for f in self.fallbacks],
        }


# ═════════════════════════════════════════════════════════════════════════════
# Replanning
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LockedStepSnapshot:
    """Persisted step state handed to replanning."""
    definition_id: int
    due_date: date | None
    locked: bool = False
    start_date: date | None = None
    instance_id: int | None = None
    name: str = ""


@dataclass(frozen=True)
class ScheduleDelta:
    step_id: int
    instance_id: int | None
    name: str
    old_start_date: date | None
    new_start_date: date
    old_due_date: date | None
    new_due_date: date

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "instance_id": self.instance_id,
            "name": self.name,
            "old_start_date": self.old_start_date.isoformat() if self.old_start_date else None,
            "new_start_date": self.new_start_date.isoformat(),
            "old_due_date": self.old_due_date.isoformat() if self.old_due_date else None,
            "new_due_date": self.new_due_date.isoformat(),
        }


@dataclass(frozen=True)
class ScheduleViolation:
    """Single invariant failure found by the validator."""
    code: str
    step_id: int | None
    message: str
    details: dict = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "step_id": self.step_id,
            "message": self.message,
            "details": self.details,
        }
