"""
tests/test_schedule_engine.py - ScheduleEngine.compute_schedule.

Covers:
    1.  Simple chain (goal 2025-12-31, empty calendar)
    2.  Holiday shifts a goal-anchored due date
    3.  Diamond dependency takes the latest predecessor
    4.  Determinism across runs
    5.  No computed date falls on a weekend or holiday
    6.  Locked steps keep their due date
    7.  Steps without predecessors fall back to seq order or the goal
    8.  Offset 0 on a prev-anchored step clamps start to due
    9.  Dangling / circular / invalid goal errors
    10. Validation failures carry every violation
    11. One holiday lookup per computation
"""

import logging
from datetime import date, datetime

import pytest

from caseflow.core.exceptions import (
    CircularDependencyError,
    DanglingDependencyError,
    DependencyOrderingViolationError,
    GoalDateExceededError,
    InvalidGoalDateError,
    ScheduleIncompleteError,
)
from caseflow.services.holiday_service import (
    HolidayLookup,
    StaticHolidayLookup,
    japanese_holidays_for_year,
)
from caseflow.services.business_day import BusinessDayCalculator
from caseflow.services.schedule_engine import ScheduleEngine
from caseflow.services.schedule_types import (
    FallbackKind,
    LockedStepSnapshot,
    ProcessTemplateGraph,
    StepDefinition,
)

GOAL = date(2025, 12, 31)


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


class CountingLookup(HolidayLookup):
    def __init__(self, days=()):
        self._inner = StaticHolidayLookup({"JP": days})
        self.calls = 0

    def holidays_between(self, country_code, start, end):
        self.calls += 1
        return self._inner.holidays_between(country_code, start, end)


def _engine(*holidays):
    return ScheduleEngine(StaticHolidayLookup({"JP": holidays}))


def _step(step_id, basis, offset, *deps, seq=None):
    return StepDefinition(
        id=step_id, seq=seq if seq is not None else step_id, name=f"Step{step_id}",
        basis=basis, offset_days=offset, depends_on=deps,
    )


def _graph(*steps):
    return ProcessTemplateGraph(template_id=1, name="T", steps=steps)


def _simple_chain():
    return _graph(
        _step(1, "goal", -30),
        _step(2, "prev", 2, 1),
        _step(3, "prev", 3, 2),
    )


def _dates(plan, step_id):
    s = plan.step(step_id)
    return s.start_date, s.due_date


# ═════════════════════════════════════════════════════════════════════════════
# Scenarios
# ═════════════════════════════════════════════════════════════════════════════


class TestScenarios:
    def test_simple_chain(self):
        plan = _engine().compute_schedule(_simple_chain(), GOAL)
        assert _dates(plan, 1) == (date(2025, 10, 9), date(2025, 11, 19))
        assert _dates(plan, 2) == (date(2025, 11, 20), date(2025, 11, 21))
        assert _dates(plan, 3) == (date(2025, 11, 24), date(2025, 11, 26))
        assert plan.goal_date == GOAL
        assert plan.country_code == "JP"
        assert plan.fallbacks == ()

    def test_plan_follows_template_order(self):
        graph = _graph(_step(3, "prev", 3, 2), _step(2, "prev", 2, 1), _step(1, "goal", -30))
        plan = _engine().compute_schedule(graph, GOAL)
        assert [s.step_id for s in plan.steps] == [3, 2, 1]

    def test_holiday_shifts_goal_anchored_due(self):
        plan = _engine(date(2025, 11, 24)).compute_schedule(_simple_chain(), GOAL)
        assert plan.step(1).due_date == date(2025, 11, 18)

    def test_diamond_takes_latest_predecessor(self):
        graph = _graph(
            _step(1, "goal", -20),
            _step(2, "prev", 3, 1),
            _step(3, "prev", 5, 1),
            _step(4, "prev", 2, 2, 3),
        )
        plan = _engine().compute_schedule(graph, GOAL)
        assert plan.step(1).due_date == date(2025, 12, 3)
        assert plan.step(2).due_date == date(2025, 12, 8)
        assert plan.step(3).due_date == date(2025, 12, 10)
        assert _dates(plan, 4) == (date(2025, 12, 11), date(2025, 12, 12))

    def test_datetime_goal_accepted(self):
        plan = _engine().compute_schedule(_simple_chain(), datetime(2025, 12, 31, 9, 0))
        assert plan.goal_date == GOAL

    def test_country_code_override(self):
        engine = ScheduleEngine(StaticHolidayLookup({"US": [date(2025, 11, 24)]}))
        assert engine.compute_schedule(_simple_chain(), GOAL).step(1).due_date == date(2025, 11, 19)
        plan = engine.compute_schedule(_simple_chain(), GOAL, country_code="US")
        assert plan.country_code == "US"
        assert plan.step(1).due_date == date(2025, 11, 18)


# ═════════════════════════════════════════════════════════════════════════════
# Properties
# ═════════════════════════════════════════════════════════════════════════════


class TestProperties:
    def _rich_graph(self):
        return _graph(
            _step(1, "goal", -60),
            _step(2, "goal", -45, 1),
            _step(3, "prev", 5, 2),
            _step(4, "prev", 0, 3),
            _step(5, "prev", 7, 1),
            _step(6, "prev", 4, 4, 5),
            _step(7, "goal", -1, 6),
        )

    def test_deterministic(self):
        holidays = [d for d, _ in japanese_holidays_for_year(2025)]
        first = _engine(*holidays).compute_schedule(self._rich_graph(), GOAL)
        second = _engine(*holidays).compute_schedule(self._rich_graph(), GOAL)
        assert first == second

    def test_no_weekend_or_holiday_dates(self):
        holidays = {d for d, _ in japanese_holidays_for_year(2025)}
        plan = _engine(*holidays).compute_schedule(self._rich_graph(), GOAL)
        for s in plan.steps:
            for d in (s.start_date, s.due_date):
                assert d.weekday() < 5, s
                assert d not in holidays, s

    def test_goal_bound_and_ordering(self):
        plan = _engine().compute_schedule(self._rich_graph(), GOAL)
        by_id = plan.by_step_id()
        for s in plan.steps:
            assert s.start_date <= s.due_date <= GOAL
            for dep in s.dependencies:
                assert by_id[dep].due_date <= s.due_date

    def test_zero_offset_clamps_start_to_due(self):
        plan = _engine().compute_schedule(self._rich_graph(), GOAL)
        step4 = plan.step(4)
        assert step4.due_date == plan.step(3).due_date
        assert step4.start_date == step4.due_date


# ═════════════════════════════════════════════════════════════════════════════
# Locked steps
# ═════════════════════════════════════════════════════════════════════════════


class TestLockedSteps:
    def test_locked_due_is_kept(self):
        locked = LockedStepSnapshot(definition_id=1, due_date=date(2025, 11, 3), locked=True)
        plan = _engine().compute_schedule(_simple_chain(), GOAL, existing_locked=[locked])
        assert plan.step(1).due_date == date(2025, 11, 3)
        # start = due - (30 - 1) business days
        assert plan.step(1).start_date == date(2025, 9, 23)
        # Dependents follow the locked date.
        assert plan.step(2).due_date == date(2025, 11, 5)

    def test_unlocked_snapshot_is_recomputed(self):
        snap = LockedStepSnapshot(definition_id=1, due_date=date(2025, 11, 3), locked=False)
        plan = _engine().compute_schedule(_simple_chain(), GOAL, existing_locked=[snap])
        assert plan.step(1).due_date == date(2025, 11, 19)

    def test_snapshot_for_unknown_step_ignored(self):
        snap = LockedStepSnapshot(definition_id=42, due_date=date(2025, 11, 3), locked=True)
        plan = _engine().compute_schedule(_simple_chain(), GOAL, existing_locked=[snap])
        assert plan.step(1).due_date == date(2025, 11, 19)

    def test_locked_prev_step_not_recomputed(self):
        locked = LockedStepSnapshot(definition_id=2, due_date=date(2025, 12, 1), locked=True)
        plan = _engine().compute_schedule(_simple_chain(), GOAL, existing_locked=[locked])
        assert plan.step(2).due_date == date(2025, 12, 1)
        assert plan.step(3).due_date == date(2025, 12, 4)


# ═════════════════════════════════════════════════════════════════════════════
# Fallbacks
# ═════════════════════════════════════════════════════════════════════════════


class TestFallbacks:
    def test_sequence_predecessor_fallback(self, caplog):
        graph = _graph(_step(1, "goal", -10), _step(2, "prev", 3))
        with caplog.at_level(logging.WARNING, logger="caseflow.services.schedule_engine"):
            plan = _engine().compute_schedule(graph, GOAL)

        assert _dates(plan, 2) == (date(2025, 12, 18), date(2025, 12, 22))
        assert len(plan.fallbacks) == 1
        fb = plan.fallbacks[0]
        assert fb.step_id == 2
        assert fb.kind is FallbackKind.SEQUENCE_PREDECESSOR
        assert fb.substitute_date == date(2025, 12, 17)
        assert any(getattr(r, "event_type", None) == "schedule_fallback" for r in caplog.records)

    def test_goal_date_fallback(self):
        plan = _engine().compute_schedule(_graph(_step(1, "prev", 3)), GOAL)
        assert _dates(plan, 1) == (date(2025, 12, 24), date(2025, 12, 26))
        assert plan.fallbacks[0].kind is FallbackKind.GOAL_DATE

    def test_invalid_predecessor_date_falls_back_then_fails_validation(self, caplog):
        locked = LockedStepSnapshot(definition_id=1, due_date=date(1999, 12, 31), locked=True)
        with caplog.at_level(logging.WARNING, logger="caseflow.services.schedule_engine"):
            with pytest.raises(ScheduleIncompleteError) as exc_info:
                _engine().compute_schedule(_simple_chain(), GOAL, existing_locked=[locked])

        codes = {v.code for v in exc_info.value.violations}
        assert "date_floor" in codes
        fallback_logs = [r for r in caplog.records if getattr(r, "event_type", None) == "schedule_fallback"]
        assert fallback_logs
        assert "invalid_predecessor_date" in fallback_logs[0].getMessage()

    def test_missing_predecessor_schedule_anchors_before_goal(self, caplog):
        step = _step(2, "prev", 3, 1)
        calc = BusinessDayCalculator(StaticHolidayLookup({"JP": ()}))
        fallbacks = []
        with caplog.at_level(logging.WARNING, logger="caseflow.services.schedule_engine"):
            start, due = _engine()._from_predecessors(step, calc, GOAL, {}, fallbacks, {})

        # Distance floor is 30 business days before the goal.
        assert fallbacks[0].kind is FallbackKind.MISSING_PREDECESSOR_SCHEDULE
        assert fallbacks[0].substitute_date == date(2025, 11, 19)
        assert due == date(2025, 11, 24)
        assert start == date(2025, 11, 20)
        records = [r for r in caplog.records if getattr(r, "event_type", None) == "schedule_fallback"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].step_id == 2

    def test_missing_predecessor_distance_doubles_large_offsets(self):
        step = _step(2, "prev", 20, 1)
        calc = BusinessDayCalculator(StaticHolidayLookup({"JP": ()}))
        fallbacks = []
        start, due = _engine()._from_predecessors(step, calc, GOAL, {}, fallbacks, {})

        assert fallbacks[0].substitute_date == date(2025, 11, 5)
        assert (start, due) == (date(2025, 11, 6), date(2025, 12, 3))


# ═════════════════════════════════════════════════════════════════════════════
# Errors
# ═════════════════════════════════════════════════════════════════════════════


class TestErrors:
    def test_dangling_dependency(self):
        graph = _graph(_step(1, "goal", -5), _step(2, "prev", 1, 99))
        with pytest.raises(DanglingDependencyError) as exc_info:
            _engine().compute_schedule(graph, GOAL)
        assert exc_info.value.step_id == 2
        assert exc_info.value.missing_id == 99

    def test_dangling_checked_before_goal_date_math(self):
        lookup = CountingLookup()
        graph = _graph(_step(1, "prev", 1, 99))
        with pytest.raises(DanglingDependencyError):
            ScheduleEngine(lookup).compute_schedule(graph, GOAL)
        assert lookup.calls == 0

    def test_cycle(self):
        graph = _graph(_step(1, "prev", 1, 2), _step(2, "prev", 1, 1))
        with pytest.raises(CircularDependencyError) as exc_info:
            _engine().compute_schedule(graph, GOAL)
        assert exc_info.value.unresolved_ids == [1, 2]

    @pytest.mark.parametrize("goal", [None, "2025-12-31", 0, date(1999, 12, 31)])
    def test_invalid_goal_date(self, goal):
        with pytest.raises(InvalidGoalDateError):
            _engine().compute_schedule(_simple_chain(), goal)

    def test_goal_exceeded(self):
        graph = _graph(_step(1, "goal", -5), _step(2, "prev", 30, 1))
        with pytest.raises(GoalDateExceededError) as exc_info:
            _engine().compute_schedule(graph, GOAL)
        assert [v.code for v in exc_info.value.violations] == ["goal_exceeded"]
        assert exc_info.value.violations[0].step_id == 2

    def test_dependency_ordering_violation(self):
        graph = _graph(_step(1, "goal", -5), _step(2, "goal", -10, 1))
        with pytest.raises(DependencyOrderingViolationError) as exc_info:
            _engine().compute_schedule(graph, GOAL)
        assert exc_info.value.violations[0].code == "dependency_ordering"

    def test_all_violations_reported_most_severe_raised(self):
        graph = _graph(
            _step(1, "goal", -5),
            _step(2, "goal", -10, 1),
            _step(3, "prev", 30, 1),
        )
        with pytest.raises(GoalDateExceededError) as exc_info:
            _engine().compute_schedule(graph, GOAL)
        codes = [v.code for v in exc_info.value.violations]
        assert codes == ["dependency_ordering", "goal_exceeded"]
        assert len(exc_info.value.details["violations"]) == 2


# ═════════════════════════════════════════════════════════════════════════════
# Holiday lookups
# ═════════════════════════════════════════════════════════════════════════════


class TestHolidayPrefetch:
    def test_one_lookup_per_computation(self):
        lookup = CountingLookup([date(2025, 11, 24)])
        plan = ScheduleEngine(lookup).compute_schedule(_simple_chain(), GOAL)
        assert lookup.calls == 1
        assert plan.step(1).due_date == date(2025, 11, 18)

    def test_each_computation_fetches_again(self):
        lookup = CountingLookup()
        engine = ScheduleEngine(lookup)
        engine.compute_schedule(_simple_chain(), GOAL)
        engine.compute_schedule(_simple_chain(), GOAL)
        assert lookup.calls == 2
