"""
Case Schedule Engine
Process template models.

Models:
    - ProcessTemplate: Named, versioned collection of step templates
    - StepTemplate: One step definition (basis, offset, dependencies, artifacts)

``depends_on`` and ``required_artifacts`` are stored as JSON text; they are
decoded into typed tuples by ``StepTemplate.to_definition()`` so the schedule
engine never sees untyped blobs.
"""

import json
from datetime import datetime, timezone

from caseflow.core.exceptions import ValidationError
from caseflow.models import db
from caseflow.services.schedule_types import (
    MAX_OFFSET_DAYS,
    Basis,
    ProcessTemplateGraph,
    RequiredArtifact,
    StepDefinition,
)


def _decode_json_list(raw, field_name: str, owner_id) -> list:
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return raw
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field_name} of step template {owner_id} is not valid JSON",
            details={"step_template_id": owner_id, field_name: raw},
        ) from exc
    if not isinstance(value, list):
        raise ValidationError(
            f"{field_name} of step template {owner_id} must be a JSON list",
            details={"step_template_id": owner_id, field_name: raw},
        )
    return value


class ProcessTemplate(db.Model):
    """
    Reusable workflow definition. A case is an instantiation of one template.
    Name is unique; ``version`` is informational.
    """

    __tablename__ = "process_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    description = db.Column(db.Text, default="")
    version = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    step_templates = db.relationship(
        "StepTemplate",
        backref="process_template",
        order_by="StepTemplate.seq",
        cascade="all, delete-orphan",
    )

    def to_graph(self) -> ProcessTemplateGraph:
        """Decode this template into the engine's immutable graph."""
        return ProcessTemplateGraph(
            template_id=self.id,
            name=self.name,
            steps=tuple(st.to_definition() for st in self.step_templates),
            is_active=bool(self.is_active),
        )

    def to_dict(self, include_steps=True):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_steps:
            result["step_templates"] = [st.to_dict() for st in self.step_templates]
        return result

    def __repr__(self):
        return f"<ProcessTemplate {self.id}: {self.name}>"


class StepTemplate(db.Model):
    """
    Single step of a process template.

    basis:       goal | prev - anchor of the due date
    offset_days: signed gap in business days; only the magnitude is used
    depends_on:  JSON list of predecessor StepTemplate ids (same template)
    """

    __tablename__ = "step_templates"

    id = db.Column(db.Integer, primary_key=True)
    process_id = db.Column(
        db.Integer, db.ForeignKey("process_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    seq = db.Column(db.Integer, nullable=False, default=0, comment="Order within the template")
    name = db.Column(db.String(200), nullable=False)
    basis = db.Column(db.String(10), nullable=False, default="goal", comment="goal | prev")
    offset_days = db.Column(db.Integer, nullable=False, default=0)
    required_artifacts = db.Column(db.Text, default="[]", comment="JSON list of {kind, description}")
    depends_on = db.Column(db.Text, default="[]", comment="JSON list of step_templates.id")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("basis IN ('goal','prev')", name="ck_step_template_basis"),
        db.CheckConstraint(
            f"offset_days BETWEEN -{MAX_OFFSET_DAYS} AND {MAX_OFFSET_DAYS}",
            name="ck_step_template_offset",
        ),
    )

    @property
    def depends_on_ids(self) -> list[int]:
        return [int(d) for d in _decode_json_list(self.depends_on, "depends_on", self.id)]

    @property
    def artifact_list(self) -> list[dict]:
        return _decode_json_list(self.required_artifacts, "required_artifacts", self.id)

    def to_definition(self) -> StepDefinition:
        return StepDefinition(
            id=self.id,
            seq=self.seq,
            name=self.name,
            basis=Basis.parse(self.basis),
            offset_days=self.offset_days,
            depends_on=tuple(self.depends_on_ids),
            required_artifacts=tuple(RequiredArtifact.from_dict(a) for a in self.artifact_list),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "process_id": self.process_id,
            "seq": self.seq,
            "name": self.name,
            "basis": self.basis,
            "offset_days": self.offset_days,
            "required_artifacts": self.artifact_list,
            "depends_on": self.depends_on_ids,
        }

    def __repr__(self):
        return f"<StepTemplate {self.id}: #{self.seq} {self.name[:40]}>"
