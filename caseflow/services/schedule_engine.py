"""
Schedule engine - computes start/due dates for every step of a template.

Pipeline for one computation:
    1. goal date check            → InvalidGoalDateError
    2. referential integrity      → DanglingDependencyError
    3. topological order          → CircularDependencyError
    4. one holiday prefetch for the reachable window
    5. seed locked steps          (never recomputed)
    6. phase A: goal-anchored steps
    7. phase B: prev-anchored steps (with recorded fallbacks)
    8. validation                 → ScheduleValidationError subclasses
    9. new SchedulePlan in template order

Rules:
  - No partial plan is ever returned: a computation either yields a complete,
    validated plan or raises a ScheduleError.
  - The engine holds no per-computation state on ``self``; the prefetched
    holiday window and the calculator over it are built inside each call.
  - Output depends only on the inputs and the holiday calendar; iteration
    follows the template order or the topological order.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from caseflow.core.exceptions import DanglingDependencyError, InvalidGoalDateError
from caseflow.services.business_day import (
    DEFAULT_COUNTRY_CODE,
    WINDOW_PADDING_DAYS,
    BusinessDayCalculator,
    as_calendar_date,
    search_window_days,
)
from caseflow.services.dependency_resolver import find_dangling_dependencies, topological_order
from caseflow.services.holiday_service import HolidayLookup, PrefetchedHolidayLookup
from caseflow.services.schedule_diff import diff_schedule
from caseflow.services.schedule_types import (
    MIN_VALID_YEAR,
    ComputedStepSchedule,
    Direction,
    FallbackKind,
    LockedStepSnapshot,
    ProcessTemplateGraph,
    ScheduleDelta,
    ScheduleFallback,
    SchedulePlan,
    StepDefinition,
)
from caseflow.services.schedule_validator import validate_schedule

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MIN_DAYS = 30


def as_goal_date(value) -> date:
    """Normalise a goal date or raise InvalidGoalDateError."""
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date) or value.year < MIN_VALID_YEAR:
        raise InvalidGoalDateError(value)
    return value


class ScheduleEngine:
    """Schedule computation bound to a holiday source and a default country.

    Args:
        holiday_lookup: Calendar provider; wrapped per computation in a
            PrefetchedHolidayLookup.
        default_country_code: Used when ``compute_schedule`` gets none.
        fallback_min_days: Floor of the business-day distance used when a
            predecessor has no usable due date.
    """

    def __init__(
        self,
        holiday_lookup: HolidayLookup,
        default_country_code: str = DEFAULT_COUNTRY_CODE,
        fallback_min_days: int = DEFAULT_FALLBACK_MIN_DAYS,
    ):
        self.holiday_lookup = holiday_lookup
        self.default_country_code = default_country_code
        self.fallback_min_days = fallback_min_days
        # Unscoped calculator for callers that need plain date math (slack).
        self.calculator = BusinessDayCalculator(holiday_lookup, default_country_code)

    # ── Public API ───────────────────────────────────────────────────────

    def compute_schedule(
        self,
        template: ProcessTemplateGraph,
        goal_date,
        existing_locked: Iterable[LockedStepSnapshot] = (),
        country_code: str | None = None,
    ) -> SchedulePlan:
        """Compute a complete, validated plan for ``template`` ending at ``goal_date``.

        Raises:
            InvalidGoalDateError: goal date missing, not a date, or before 2000.
            DanglingDependencyError: a step references an unknown predecessor.
            CircularDependencyError: the step graph has a cycle.
            ScheduleValidationError: a computed plan breaks an invariant.
        """
        goal = as_goal_date(goal_date)
        country = country_code or self.default_country_code
        step_map = template.step_map()
        log_extra = {"template_id": template.template_id, "country_code": country}

        logger.info(
            "Schedule computation started template=%s goal=%s steps=%d",
            template.template_id, goal, len(template.steps), extra=log_extra,
        )

        dangling = find_dangling_dependencies(template.steps)
        if dangling:
            step_id, missing_id = dangling[0]
            logger.error(
                "Dangling dependency step=%s missing=%s", step_id, missing_id,
                extra={**log_extra, "step_id": step_id},
            )
            raise DanglingDependencyError(step_id, missing_id, step_map[step_id].name)

        order = topological_order(template.steps)
        locked = self._usable_locked(existing_locked, step_map)

        lo, hi = self._prefetch_window(template.steps, goal, locked.values())
        prefetched = PrefetchedHolidayLookup(self.holiday_lookup, country, lo, hi)
        calc = BusinessDayCalculator(prefetched, country)

        schedules: dict[int, ComputedStepSchedule] = {}
        fallbacks: list[ScheduleFallback] = []

        # Locked steps keep their persisted due date.
        for step_id, snapshot in locked.items():
            step = step_map[step_id]
            due = as_calendar_date(snapshot.due_date, "due_date")
            start = calc.subtract_business_days(due, step.duration - 1)
            self._record(schedules, step, start, due)

        # Phase A: goal-anchored.
        for step_id in order:
            step = step_map[step_id]
            if step_id in schedules or not step.is_goal_based:
                continue
            due = calc.adjust_to_business_day(
                calc.subtract_business_days(goal, step.abs_offset), Direction.BACKWARD,
            )
            start = calc.subtract_business_days(due, step.duration - 1)
            self._record(schedules, step, start, due)

        # Phase B: prev-anchored.
        for step_id in order:
            if step_id in schedules:
                continue
            step = step_map[step_id]
            if step.depends_on:
                start, due = self._from_predecessors(step, calc, goal, schedules, fallbacks, log_extra)
            else:
                start, due = self._from_sequence(step, template.steps, calc, goal, schedules, fallbacks, log_extra)
            self._record(schedules, step, start, due)

        validate_schedule(template, schedules, goal)

        plan = SchedulePlan(
            goal_date=goal,
            steps=tuple(schedules[s.id] for s in template.steps),
            country_code=country,
            fallbacks=tuple(fallbacks),
        )
        logger.info(
            "Schedule computation finished template=%s steps=%d locked=%d fallbacks=%d window_misses=%d",
            template.template_id, len(plan.steps), len(locked), len(fallbacks),
            prefetched.delegated_calls, extra=log_extra,
        )
        return plan

    def diff_schedule(
        self,
        new_plan: SchedulePlan,
        existing_steps: Sequence[LockedStepSnapshot],
        locked_ids: Iterable[int] = (),
    ) -> list[ScheduleDelta]:
        return diff_schedule(new_plan, existing_steps, locked_ids)

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _usable_locked(
        snapshots: Iterable[LockedStepSnapshot],
        step_map: dict[int, StepDefinition],
    ) -> dict[int, LockedStepSnapshot]:
        usable: dict[int, LockedStepSnapshot] = {}
        for snapshot in snapshots:
            if not snapshot.locked:
                continue
            if snapshot.definition_id not in step_map:
                logger.debug("Ignoring locked snapshot for unknown step %s", snapshot.definition_id)
                continue
            if snapshot.due_date is None:
                logger.warning(
                    "Locked step %s has no due date; it will be recomputed",
                    snapshot.definition_id, extra={"step_id": snapshot.definition_id},
                )
                continue
            usable[snapshot.definition_id] = snapshot
        return usable

    def _prefetch_window(
        self,
        steps: Sequence[StepDefinition],
        goal: date,
        locked: Iterable[LockedStepSnapshot],
    ) -> tuple[date, date]:
        """Calendar range every date operation of this computation can touch.

        Backward reach covers goal offsets, start-from-due walks and the
        fallback distance; forward reach covers a full chain of prev-anchored
        additions. Anything outside is served by the delegate lookup.
        """
        anchors = [goal] + [as_calendar_date(s.due_date, "due_date") for s in locked]
        max_offset = max((s.abs_offset for s in steps), default=0)
        fallback_days = max(self.fallback_min_days, max_offset * 2)

        back = (
            2 * search_window_days(max_offset)
            + search_window_days(fallback_days)
            + WINDOW_PADDING_DAYS
        )
        forward = sum(search_window_days(s.duration) for s in steps) + WINDOW_PADDING_DAYS
        return min(anchors) - timedelta(days=back), max(anchors) + timedelta(days=forward)

    @staticmethod
    def _record(schedules, step: StepDefinition, start: date, due: date) -> None:
        schedules[step.id] = ComputedStepSchedule(
            step_id=step.id,
            name=step.name,
            start_date=start,
            due_date=due,
            dependencies=step.depends_on,
        )
        logger.debug(
            "Step %s:%s start=%s due=%s", step.id, step.name, start, due,
            extra={"step_id": step.id},
        )

    @staticmethod
    def _fallback(fallbacks, log_extra, step: StepDefinition, kind: FallbackKind, substitute: date, detail: str):
        fallbacks.append(ScheduleFallback(step.id, kind, substitute, detail))
        logger.warning(
            "Schedule fallback step=%s:%s kind=%s substitute=%s (%s)",
            step.id, step.name, kind.value, substitute, detail,
            extra={**log_extra, "step_id": step.id, "event_type": "schedule_fallback"},
        )

    def _from_predecessors(self, step, calc, goal, schedules, fallbacks, log_extra) -> tuple[date, date]:
        candidates: list[date] = []
        latest_computed: date | None = None

        for dep_id in step.depends_on:
            dep = schedules.get(dep_id)
            if dep is not None and dep.due_date.year >= MIN_VALID_YEAR:
                candidates.append(dep.due_date)
                if latest_computed is None or dep.due_date > latest_computed:
                    latest_computed = dep.due_date
                continue

            distance = max(self.fallback_min_days, step.abs_offset * 2)
            substitute = calc.subtract_business_days(goal, distance)
            if dep is None:
                kind = FallbackKind.MISSING_PREDECESSOR_SCHEDULE
                detail = f"predecessor {dep_id} has no schedule"
            else:
                kind = FallbackKind.INVALID_PREDECESSOR_DATE
                detail = f"predecessor {dep_id} due date {dep.due_date.isoformat()} is invalid"
            self._fallback(fallbacks, log_extra, step, kind, substitute, detail)
            candidates.append(substitute)

        due = calc.adjust_to_business_day(
            calc.add_business_days(max(candidates), step.abs_offset), Direction.BACKWARD,
        )
        if latest_computed is not None:
            start = calc.add_business_days(latest_computed, 1)
        else:
            start = calc.subtract_business_days(due, step.duration - 1)
        return min(start, due), due

    def _from_sequence(self, step, steps, calc, goal, schedules, fallbacks, log_extra) -> tuple[date, date]:
        prior = None
        for candidate in steps:
            if candidate.seq < step.seq and (prior is None or candidate.seq > prior.seq):
                prior = candidate

        if prior is not None and prior.id in schedules:
            base = schedules[prior.id].due_date
            self._fallback(
                fallbacks, log_extra, step, FallbackKind.SEQUENCE_PREDECESSOR, base,
                f"no dependencies; anchored to step {prior.id} (seq {prior.seq})",
            )
            due = calc.adjust_to_business_day(
                calc.add_business_days(base, step.abs_offset), Direction.BACKWARD,
            )
        else:
            base = calc.subtract_business_days(goal, step.abs_offset)
            self._fallback(
                fallbacks, log_extra, step, FallbackKind.GOAL_DATE, base,
                "no dependencies and no computed sequence predecessor; anchored to goal",
            )
            due = calc.adjust_to_business_day(base, Direction.BACKWARD)

        start = calc.subtract_business_days(due, step.duration - 1)
        return min(start, due), due
