"""
tests/test_critical_path.py - slack and critical path.

Covers:
    1. A chain ending on the goal date is fully critical
    2. Slack propagates from dependents to predecessors
    3. Independent early steps keep their own slack
    4. Result follows plan order
"""

from datetime import date

from caseflow.services.business_day import BusinessDayCalculator
from caseflow.services.critical_path import compute_slack, critical_path
from caseflow.services.holiday_service import StaticHolidayLookup
from caseflow.services.schedule_engine import ScheduleEngine
from caseflow.services.schedule_types import ProcessTemplateGraph, StepDefinition

GOAL = date(2025, 12, 31)


def _plan(*steps):
    engine = ScheduleEngine(StaticHolidayLookup())
    return engine.compute_schedule(ProcessTemplateGraph(1, "CP", steps), GOAL), engine.calculator


def test_chain_ending_on_goal_is_critical():
    plan, calc = _plan(
        StepDefinition(id=1, seq=1, name="X", basis="goal", offset_days=-5),
        StepDefinition(id=2, seq=2, name="Y", basis="prev", offset_days=5, depends_on=(1,)),
        StepDefinition(id=3, seq=3, name="Z", basis="goal", offset_days=-10),
    )
    assert plan.step(2).due_date == GOAL
    slack = compute_slack(plan, calc)
    assert slack == {1: 0, 2: 0, 3: 10}
    assert critical_path(plan, calc) == [1, 2]


def test_slack_takes_minimum_over_dependents():
    plan, calc = _plan(
        StepDefinition(id=1, seq=1, name="A", basis="goal", offset_days=-20),
        StepDefinition(id=2, seq=2, name="B", basis="prev", offset_days=3, depends_on=(1,)),
        StepDefinition(id=3, seq=3, name="C", basis="prev", offset_days=5, depends_on=(1,)),
        StepDefinition(id=4, seq=4, name="D", basis="prev", offset_days=2, depends_on=(2, 3)),
    )
    slack = compute_slack(plan, calc)
    assert slack == {1: 13, 2: 13, 3: 13, 4: 13}
    assert critical_path(plan, calc) == []


def test_holidays_reduce_slack():
    plan, _ = _plan(StepDefinition(id=1, seq=1, name="A", basis="goal", offset_days=-3))
    calc = BusinessDayCalculator(StaticHolidayLookup({"JP": [date(2025, 12, 30)]}))
    # due 2025-12-26; business days after it up to the goal: 29, 31
    assert compute_slack(plan, calc) == {1: 2}


def test_precomputed_slack_is_used_as_given():
    plan, calc = _plan(
        StepDefinition(id=1, seq=1, name="X", basis="goal", offset_days=-5),
        StepDefinition(id=2, seq=2, name="Y", basis="goal", offset_days=-10),
    )
    assert critical_path(plan, calc) == []
    assert critical_path(plan, calc, slack={1: 4, 2: 0}) == [2]
