"""
Process template service layer.

Authoring and reading process templates, and schedule previews for a
template without creating a case.

Rules:
  - db.session.commit() happens only in this file for template writes.
  - Step ``depends_on`` in create payloads refers to sibling steps by ``seq``;
    it is translated to StepTemplate ids after the rows are flushed.
  - A template whose steps reference unknown seqs or form a cycle is rejected
    before anything is committed.
"""

from __future__ import annotations

import json
import logging
from datetime import date

from sqlalchemy import select

from caseflow.core.exceptions import (
    ConflictError,
    DanglingDependencyError,
    InvalidGoalDateError,
    NotFoundError,
    ValidationError,
)
from caseflow.models import db
from caseflow.models.process import ProcessTemplate, StepTemplate
from caseflow.services.dependency_resolver import find_dangling_dependencies, topological_order
from caseflow.services.schedule_types import (
    ProcessTemplateGraph,
    RequiredArtifact,
    SchedulePlan,
    StepDefinition,
)

logger = logging.getLogger(__name__)


def parse_goal_date(value) -> date:
    """Goal date from a request payload (date or YYYY-MM-DD / DD.MM.YYYY string)."""
    from caseflow.utils.helpers import parse_date

    parsed = parse_date(value)
    if parsed is None:
        raise InvalidGoalDateError(value)
    return parsed


# ═════════════════════════════════════════════════════════════════════════════
# Authoring
# ═════════════════════════════════════════════════════════════════════════════


def _parse_step_payload(raw: dict, index: int) -> StepDefinition:
    """Validate one step payload into a definition keyed by its seq."""
    if not isinstance(raw, dict):
        raise ValidationError(f"steps[{index}] must be an object")

    name = str(raw.get("name") or "").strip()
    if not name:
        raise ValidationError(f"steps[{index}].name is required")

    seq = raw.get("seq", index + 1)
    if isinstance(seq, bool) or not isinstance(seq, int):
        raise ValidationError(f"steps[{index}].seq must be an integer", details={"seq": seq})

    depends_on = raw.get("depends_on") or []
    if not isinstance(depends_on, list) or not all(
        isinstance(d, int) and not isinstance(d, bool) for d in depends_on
    ):
        raise ValidationError(
            f"steps[{index}].depends_on must be a list of step seq numbers",
            details={"depends_on": depends_on},
        )

    artifacts = raw.get("required_artifacts") or []
    if not isinstance(artifacts, list):
        raise ValidationError(f"steps[{index}].required_artifacts must be a list")

    return StepDefinition(
        id=seq,
        seq=seq,
        name=name,
        basis=raw.get("basis", "goal"),
        offset_days=raw.get("offset_days", 0),
        depends_on=tuple(depends_on),
        required_artifacts=tuple(RequiredArtifact.from_dict(a) for a in artifacts),
    )


def create_template(data: dict) -> ProcessTemplate:
    """Create a template with its steps.

    Args:
        data: ``name`` (required, unique), ``description``, ``version`` and
              ``steps``: list of {seq, name, basis, offset_days, depends_on
              (sibling seqs), required_artifacts}.

    Raises:
        ValidationError: missing fields, bad basis/offset, duplicate seq.
        ConflictError: a template with the same name exists.
        DanglingDependencyError: depends_on names a seq that is not in the payload.
        CircularDependencyError: the steps form a cycle.
    """
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    raw_steps = data.get("steps") or []
    if not isinstance(raw_steps, list):
        raise ValidationError("steps must be a list")

    drafts = [_parse_step_payload(raw, i) for i, raw in enumerate(raw_steps)]
    seqs = [d.seq for d in drafts]
    if len(set(seqs)) != len(seqs):
        raise ValidationError("step seq values must be unique", details={"seq": seqs})

    # Graph checks on the seq-keyed drafts, before any row exists.
    dangling = find_dangling_dependencies(drafts)
    if dangling:
        step_seq, missing_seq = dangling[0]
        raise DanglingDependencyError(step_seq, missing_seq)
    topological_order(drafts)

    existing = db.session.execute(
        select(ProcessTemplate.id).where(ProcessTemplate.name == name)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("ProcessTemplate", "name", name)

    template = ProcessTemplate(
        name=name,
        description=data.get("description") or "",
        version=data.get("version") or 1,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(template)

    rows: dict[int, StepTemplate] = {}
    for draft in sorted(drafts, key=lambda d: d.seq):
        row = StepTemplate(
            seq=draft.seq,
            name=draft.name,
            basis=draft.basis.value,
            offset_days=draft.offset_days,
            required_artifacts=json.dumps([a.to_dict() for a in draft.required_artifacts]),
            depends_on="[]",
        )
        template.step_templates.append(row)
        rows[draft.seq] = row

    db.session.flush()
    for draft in drafts:
        rows[draft.seq].depends_on = json.dumps([rows[s].id for s in draft.depends_on])

    db.session.commit()
    logger.info(
        "Process template created id=%s name=%s steps=%d",
        template.id, name, len(drafts), extra={"template_id": template.id},
    )
    return template


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def get_template(template_id: int) -> ProcessTemplate:
    template = db.session.get(ProcessTemplate, template_id)
    if template is None:
        raise NotFoundError(resource="ProcessTemplate", resource_id=template_id)
    return template


def list_templates(active_only: bool = False) -> list[ProcessTemplate]:
    stmt = select(ProcessTemplate)
    if active_only:
        stmt = stmt.where(ProcessTemplate.is_active.is_(True))
    return list(db.session.execute(stmt.order_by(ProcessTemplate.id)).scalars().all())


def set_template_active(template_id: int, active: bool) -> ProcessTemplate:
    template = get_template(template_id)
    template.is_active = bool(active)
    db.session.commit()
    logger.info(
        "Process template %s %s", template_id, "activated" if active else "deactivated",
        extra={"template_id": template_id},
    )
    return template


def load_template_graph(template: ProcessTemplate) -> ProcessTemplateGraph:
    """Decode a stored template into the engine's graph."""
    return template.to_graph()


def preview_template_schedule(
    template_id: int,
    goal_date,
    country_code: str | None = None,
) -> SchedulePlan:
    """Compute a plan for a template without persisting anything."""
    from caseflow.services.case_service import build_engine
    from caseflow.services.holiday_service import normalize_country_code

    template = get_template(template_id)
    goal = parse_goal_date(goal_date)
    country = normalize_country_code(country_code) if country_code else None
    return build_engine().compute_schedule(
        load_template_graph(template), goal, country_code=country,
    )
