"""
Schedule differ - compares a freshly computed plan with persisted steps.

Produces one ScheduleDelta per unlocked persisted step whose start or due
date differs from the new plan. Locked steps never produce a delta; steps
whose definition is no longer in the plan are skipped.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from caseflow.services.schedule_types import LockedStepSnapshot, ScheduleDelta, SchedulePlan


def diff_schedule(
    new_plan: SchedulePlan,
    existing_steps: Sequence[LockedStepSnapshot],
    locked_ids: Iterable[int] = (),
) -> list[ScheduleDelta]:
    """Return deltas in the order of ``existing_steps``.

    ``locked_ids`` are step-definition ids treated as locked on top of the
    snapshots' own ``locked`` flag.
    """
    locked = set(locked_ids)
    planned = new_plan.by_step_id()
    deltas: list[ScheduleDelta] = []

    for snapshot in existing_steps:
        if snapshot.locked or snapshot.definition_id in locked:
            continue
        new = planned.get(snapshot.definition_id)
        if new is None:
            continue
        if snapshot.start_date == new.start_date and snapshot.due_date == new.due_date:
            continue
        deltas.append(ScheduleDelta(
            step_id=snapshot.definition_id,
            instance_id=snapshot.instance_id,
            name=snapshot.name or new.name,
            old_start_date=snapshot.start_date,
            new_start_date=new.start_date,
            old_due_date=snapshot.due_date,
            new_due_date=new.due_date,
        ))

    return deltas
