"""
Schedule validator - post-computation invariant checks.

Runs once after the whole plan is computed and collects every violation
before raising, so a single error reports all of them.

Checks per step definition:
    schedule_incomplete   no schedule was produced
    date_floor            start or due year below 2000 (unset/epoch-zero dates)
    start_after_due       start date later than due date
    goal_exceeded         due date after the goal date
    dependency_ordering   a predecessor is due after the step
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Mapping

from caseflow.core.exceptions import (
    DependencyOrderingViolationError,
    GoalDateExceededError,
    ScheduleIncompleteError,
)
from caseflow.services.schedule_types import (
    MIN_VALID_YEAR,
    ComputedStepSchedule,
    ProcessTemplateGraph,
    ScheduleViolation,
)

logger = logging.getLogger(__name__)

SCHEDULE_INCOMPLETE = "schedule_incomplete"
DATE_FLOOR = "date_floor"
START_AFTER_DUE = "start_after_due"
GOAL_EXCEEDED = "goal_exceeded"
DEPENDENCY_ORDERING = "dependency_ordering"

# Most severe first; the raised exception follows the first kind present.
_SEVERITY = (
    (SCHEDULE_INCOMPLETE, ScheduleIncompleteError),
    (DATE_FLOOR, ScheduleIncompleteError),
    (START_AFTER_DUE, ScheduleIncompleteError),
    (GOAL_EXCEEDED, GoalDateExceededError),
    (DEPENDENCY_ORDERING, DependencyOrderingViolationError),
)


def collect_violations(
    template: ProcessTemplateGraph,
    schedules: Mapping[int, ComputedStepSchedule],
    goal_date: date,
) -> list[ScheduleViolation]:
    """Return every invariant violation, in template order."""
    violations: list[ScheduleViolation] = []

    for step in template.steps:
        sched = schedules.get(step.id)
        if sched is None:
            violations.append(ScheduleViolation(
                SCHEDULE_INCOMPLETE, step.id,
                f"Date not calculated for step {step.id}:{step.name}",
            ))
            continue

        if sched.start_date.year < MIN_VALID_YEAR or sched.due_date.year < MIN_VALID_YEAR:
            violations.append(ScheduleViolation(
                DATE_FLOOR, step.id,
                f"Invalid date calculated for step {step.id}:{step.name}: "
                f"start={sched.start_date.isoformat()}, due={sched.due_date.isoformat()}",
                {"start_date": sched.start_date.isoformat(), "due_date": sched.due_date.isoformat()},
            ))

        if sched.start_date > sched.due_date:
            violations.append(ScheduleViolation(
                START_AFTER_DUE, step.id,
                f"Step {step.id}:{step.name} starts after it is due",
                {"start_date": sched.start_date.isoformat(), "due_date": sched.due_date.isoformat()},
            ))

        if sched.due_date > goal_date:
            violations.append(ScheduleViolation(
                GOAL_EXCEEDED, step.id,
                f"Step {step.id}:{step.name} is due {sched.due_date.isoformat()}, "
                f"after the goal date {goal_date.isoformat()}",
                {"due_date": sched.due_date.isoformat(), "goal_date": goal_date.isoformat()},
            ))

        for dep_id in step.depends_on:
            dep = schedules.get(dep_id)
            if dep is not None and dep.due_date > sched.due_date:
                violations.append(ScheduleViolation(
                    DEPENDENCY_ORDERING, step.id,
                    f"Predecessor {dep_id} is due {dep.due_date.isoformat()}, "
                    f"after step {step.id}:{step.name} ({sched.due_date.isoformat()})",
                    {
                        "predecessor_id": dep_id,
                        "predecessor_due_date": dep.due_date.isoformat(),
                        "due_date": sched.due_date.isoformat(),
                    },
                ))

    return violations


def validate_schedule(
    template: ProcessTemplateGraph,
    schedules: Mapping[int, ComputedStepSchedule],
    goal_date: date,
) -> None:
    """Raise the most severe ScheduleValidationError if any invariant fails."""
    violations = collect_violations(template, schedules, goal_date)
    if not violations:
        return

    kinds = {v.code for v in violations}
    for kind, exc_class in _SEVERITY:
        if kind in kinds:
            logger.error(
                "Schedule validation failed template=%s violations=%d first=%s",
                template.template_id, len(violations), violations[0].message,
            )
            raise exc_class(
                f"Schedule validation failed with {len(violations)} violation(s): "
                f"{violations[0].message}",
                violations,
            )
