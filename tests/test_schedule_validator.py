"""
tests/test_schedule_validator.py - post-computation invariant checks.

Covers:
    1. Clean schedule has no violations
    2. Each violation kind is detected
    3. Every violation is collected before raising
    4. The raised class follows the most severe violation
"""

from datetime import date

import pytest

from caseflow.core.exceptions import (
    DependencyOrderingViolationError,
    GoalDateExceededError,
    ScheduleIncompleteError,
)
from caseflow.services.schedule_types import ComputedStepSchedule, ProcessTemplateGraph, StepDefinition
from caseflow.services.schedule_validator import collect_violations, validate_schedule

GOAL = date(2025, 12, 31)


def _template():
    return ProcessTemplateGraph(
        template_id=7,
        name="Validation",
        steps=(
            StepDefinition(id=1, seq=1, name="A", basis="goal", offset_days=-10),
            StepDefinition(id=2, seq=2, name="B", basis="prev", offset_days=2, depends_on=(1,)),
        ),
    )


def _sched(step_id, start, due, *deps):
    return ComputedStepSchedule(step_id, f"S{step_id}", start, due, deps)


def test_clean_schedule():
    schedules = {
        1: _sched(1, date(2025, 12, 4), date(2025, 12, 17)),
        2: _sched(2, date(2025, 12, 18), date(2025, 12, 19), 1),
    }
    assert collect_violations(_template(), schedules, GOAL) == []
    validate_schedule(_template(), schedules, GOAL)


def test_missing_schedule():
    schedules = {1: _sched(1, date(2025, 12, 4), date(2025, 12, 17))}
    with pytest.raises(ScheduleIncompleteError) as exc_info:
        validate_schedule(_template(), schedules, GOAL)
    assert [(v.code, v.step_id) for v in exc_info.value.violations] == [("schedule_incomplete", 2)]


def test_date_floor():
    schedules = {
        1: _sched(1, date(1970, 1, 1), date(1970, 1, 1)),
        2: _sched(2, date(2025, 12, 18), date(2025, 12, 19), 1),
    }
    violations = collect_violations(_template(), schedules, GOAL)
    assert [v.code for v in violations] == ["date_floor"]


def test_start_after_due():
    schedules = {
        1: _sched(1, date(2025, 12, 18), date(2025, 12, 17)),
        2: _sched(2, date(2025, 12, 18), date(2025, 12, 19), 1),
    }
    with pytest.raises(ScheduleIncompleteError):
        validate_schedule(_template(), schedules, GOAL)


def test_goal_exceeded_and_ordering_collected_together():
    schedules = {
        1: _sched(1, date(2026, 1, 5), date(2026, 1, 9)),
        2: _sched(2, date(2025, 12, 18), date(2025, 12, 19), 1),
    }
    with pytest.raises(GoalDateExceededError) as exc_info:
        validate_schedule(_template(), schedules, GOAL)
    codes = [v.code for v in exc_info.value.violations]
    assert codes == ["goal_exceeded", "dependency_ordering"]
    assert exc_info.value.details["violations"][1]["details"]["predecessor_id"] == 1


def test_ordering_only():
    schedules = {
        1: _sched(1, date(2025, 12, 22), date(2025, 12, 23)),
        2: _sched(2, date(2025, 12, 18), date(2025, 12, 19), 1),
    }
    with pytest.raises(DependencyOrderingViolationError):
        validate_schedule(_template(), schedules, GOAL)


def test_equal_due_dates_satisfy_ordering():
    schedules = {
        1: _sched(1, date(2025, 12, 19), date(2025, 12, 19)),
        2: _sched(2, date(2025, 12, 19), date(2025, 12, 19), 1),
    }
    assert collect_violations(_template(), schedules, GOAL) == []
