"""
Slack and critical path over a computed plan.

Own slack of a step is the number of business days strictly after its due
date up to and including the goal date. A step can never have more slack
than any of its dependents, so slack is propagated backward through the
dependency graph. Steps with zero slack form the critical path.
"""

from __future__ import annotations

from caseflow.services.business_day import BusinessDayCalculator
from caseflow.services.dependency_resolver import kahn_order
from caseflow.services.schedule_types import SchedulePlan


def compute_slack(plan: SchedulePlan, calculator: BusinessDayCalculator) -> dict[int, int]:
    """Return {step_id: slack in business days} for every step in ``plan``."""
    slack: dict[int, int] = {}
    dependents: dict[int, list[int]] = {s.step_id: [] for s in plan.steps}

    for sched in plan.steps:
        days = calculator.count_business_days_between(
            sched.due_date, plan.goal_date, plan.country_code,
        )
        slack[sched.step_id] = max(days - 1, 0)
        for dep_id in sched.dependencies:
            if dep_id in dependents:
                dependents[dep_id].append(sched.step_id)

    order = kahn_order([(s.step_id, s.dependencies) for s in plan.steps])
    for step_id in reversed(order):
        for child in dependents[step_id]:
            slack[step_id] = min(slack[step_id], slack[child])
    return slack


def critical_path(
    plan: SchedulePlan,
    calculator: BusinessDayCalculator,
    slack: dict[int, int] | None = None,
) -> list[int]:
    """Step ids with zero slack, in plan order.

    ``slack`` is a result of ``compute_slack`` for the same plan; it is
    computed when omitted.
    """
    if slack is None:
        slack = compute_slack(plan, calculator)
    return [s.step_id for s in plan.steps if slack[s.step_id] == 0]
