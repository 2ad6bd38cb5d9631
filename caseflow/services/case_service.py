"""
Case service layer.

Creating cases from templates, step locking, and replanning a case when its
goal date moves.

Rules:
  - db.session.commit() happens only in this file for case writes.
  - The schedule engine is built per call from app config (build_engine);
    nothing engine-related is cached at module level.
  - Replan requests name steps by StepInstance id; they are translated to
    step-definition ids before reaching the engine and the differ.
  - preview_replan never writes; apply_replan writes deltas and the new goal
    date in one commit.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import select

from caseflow.core.exceptions import NotFoundError, ValidationError
from caseflow.models import db
from caseflow.models.case import CASE_STATUSES, Case, StepInstance
from caseflow.services.critical_path import compute_slack, critical_path
from caseflow.services.holiday_service import DbHolidayLookup, normalize_country_code
from caseflow.services.schedule_engine import ScheduleEngine
from caseflow.services.schedule_types import ComputedStepSchedule, SchedulePlan
from caseflow.services.template_service import get_template, load_template_graph, parse_goal_date

logger = logging.getLogger(__name__)


def build_engine() -> ScheduleEngine:
    """Schedule engine over the holiday table, configured from the current app."""
    return ScheduleEngine(
        DbHolidayLookup(),
        default_country_code=current_app.config.get("DEFAULT_COUNTRY_CODE", "JP"),
        fallback_min_days=current_app.config.get("SCHEDULE_FALLBACK_MIN_DAYS", 30),
    )


# ═════════════════════════════════════════════════════════════════════════════
# Cases
# ═════════════════════════════════════════════════════════════════════════════


def create_case(data: dict, created_by: int | None = None) -> Case:
    """Instantiate a template as a case with computed step dates.

    Args:
        data: ``process_id``, ``title``, ``goal_date`` (required) and
              optional ``country_code``.

    Raises:
        ValidationError: missing fields or inactive template.
        NotFoundError: unknown template.
        InvalidGoalDateError / ScheduleError: the schedule cannot be computed.
    """
    title = str(data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required")
    process_id = data.get("process_id")
    if process_id is None:
        raise ValidationError("process_id is required")

    template = get_template(process_id)
    if not template.is_active:
        raise ValidationError(
            f"Process template {template.id} is inactive",
            details={"process_id": template.id},
        )

    goal = parse_goal_date(data.get("goal_date"))
    country = normalize_country_code(
        data.get("country_code") or current_app.config.get("DEFAULT_COUNTRY_CODE", "JP")
    )

    plan = build_engine().compute_schedule(load_template_graph(template), goal, country_code=country)

    case = Case(
        process_id=template.id,
        title=title,
        goal_date=plan.goal_date,
        country_code=country,
        created_by=created_by,
    )
    for sched in plan.steps:
        case.step_instances.append(StepInstance(
            template_id=sched.step_id,
            name=sched.name,
            start_date=sched.start_date,
            due_date=sched.due_date,
        ))
    db.session.add(case)
    db.session.commit()

    logger.info(
        "Case created id=%s template=%s goal=%s steps=%d fallbacks=%d",
        case.id, template.id, goal, len(plan.steps), len(plan.fallbacks),
        extra={"case_id": case.id, "template_id": template.id},
    )
    return case


def get_case(case_id: int) -> Case:
    case = db.session.get(Case, case_id)
    if case is None:
        raise NotFoundError(resource="Case", resource_id=case_id)
    return case


def list_cases(status: str | None = None, process_id: int | None = None) -> list[Case]:
    stmt = select(Case)
    if status:
        if status not in CASE_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(sorted(CASE_STATUSES))}",
                details={"status": status},
            )
        stmt = stmt.where(Case.status == status)
    if process_id is not None:
        stmt = stmt.where(Case.process_id == process_id)
    return list(db.session.execute(stmt.order_by(Case.id)).scalars().all())


def set_step_lock(step_id: int, locked: bool) -> StepInstance:
    step = db.session.get(StepInstance, step_id)
    if step is None:
        raise NotFoundError(resource="StepInstance", resource_id=step_id)
    step.locked = bool(locked)
    db.session.commit()
    logger.info(
        "Step %s %s", step_id, "locked" if locked else "unlocked",
        extra={"case_id": step.case_id, "step_id": step_id},
    )
    return step


# ═════════════════════════════════════════════════════════════════════════════
# Replanning
# ═════════════════════════════════════════════════════════════════════════════


def _replan(case: Case, goal_date, locked_step_ids) -> tuple[SchedulePlan, list, dict]:
    """Compute the new plan and deltas for ``case``; no writes."""
    goal = parse_goal_date(goal_date)

    requested = set(locked_step_ids or [])
    known = {si.id for si in case.step_instances}
    unknown = sorted(requested - known)
    if unknown:
        raise ValidationError(
            f"Steps {unknown} do not belong to case {case.id}",
            details={"locked_step_ids": unknown},
        )

    snapshots = [si.to_snapshot(locked_override=si.id in requested) for si in case.step_instances]
    locked_definition_ids = {
        s.definition_id for s in snapshots if s.locked and s.definition_id is not None
    }

    engine = build_engine()
    plan = engine.compute_schedule(
        load_template_graph(case.process_template),
        goal,
        existing_locked=snapshots,
        country_code=case.country_code,
    )
    deltas = engine.diff_schedule(plan, snapshots, locked_definition_ids)
    slack = compute_slack(plan, engine.calculator)

    result = {
        "case_id": case.id,
        "old_goal_date": case.goal_date.isoformat() if case.goal_date else None,
        "new_goal_date": plan.goal_date.isoformat(),
        "locked_step_ids": sorted(
            si.id for si in case.step_instances if si.locked or si.id in requested
        ),
        "deltas": [d.to_dict() for d in deltas],
        "fallbacks": [f.to_dict() for f in plan.fallbacks],
        "critical_path": critical_path(plan, engine.calculator, slack),
        "slack": {str(k): v for k, v in slack.items()},
    }
    return plan, deltas, result


def preview_replan(case_id: int, goal_date, locked_step_ids=()) -> dict:
    """What a goal-date change would do to ``case_id``. Read-only."""
    case = get_case(case_id)
    _, deltas, result = _replan(case, goal_date, locked_step_ids)
    logger.info(
        "Replan preview case=%s goal=%s deltas=%d",
        case_id, result["new_goal_date"], len(deltas), extra={"case_id": case_id},
    )
    return result


def apply_replan(case_id: int, goal_date, locked_step_ids=()) -> dict:
    """Apply a goal-date change: update unlocked step dates and the case goal."""
    case = get_case(case_id)
    plan, deltas, result = _replan(case, goal_date, locked_step_ids)

    by_id = {si.id: si for si in case.step_instances}
    for delta in deltas:
        step = by_id.get(delta.instance_id)
        if step is None:
            continue
        step.start_date = delta.new_start_date
        step.due_date = delta.new_due_date

    case.goal_date = plan.goal_date
    db.session.commit()

    logger.info(
        "Replan applied case=%s goal=%s->%s updated=%d",
        case_id, result["old_goal_date"], result["new_goal_date"], len(deltas),
        extra={"case_id": case_id},
    )
    result["applied"] = len(deltas)
    return result


def case_critical_path(case_id: int) -> dict:
    """Slack per persisted step against the case's current goal date."""
    case = get_case(case_id)
    graph = load_template_graph(case.process_template)
    definitions = graph.step_map()

    scheduled = [
        si for si in case.step_instances
        if si.template_id in definitions and si.due_date is not None
    ]
    plan = SchedulePlan(
        goal_date=case.goal_date,
        country_code=case.country_code,
        steps=tuple(
            ComputedStepSchedule(
                step_id=si.template_id,
                name=si.name,
                start_date=si.start_date or si.due_date,
                due_date=si.due_date,
                dependencies=definitions[si.template_id].depends_on,
            )
            for si in scheduled
        ),
    )
    calculator = build_engine().calculator
    slack = compute_slack(plan, calculator)

    steps = [
        {
            "step_id": si.template_id,
            "instance_id": si.id,
            "name": si.name,
            "due_date": si.due_date.isoformat(),
            "slack": slack[si.template_id],
            "critical": slack[si.template_id] == 0,
        }
        for si in scheduled
    ]
    return {
        "case_id": case.id,
        "goal_date": case.goal_date.isoformat(),
        "critical_path": critical_path(plan, calculator, slack),
        "steps": steps,
    }
