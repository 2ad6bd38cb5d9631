"""
Case Schedule Engine
Case models.

Models:
    - Case: One instantiation of a process template with a goal date
    - StepInstance: Scheduled step of a case (start/due date, status, lock)
"""

from datetime import datetime, timezone

from caseflow.models import db
from caseflow.services.schedule_types import LockedStepSnapshot

CASE_STATUSES = {"open", "in_progress", "on_hold", "completed", "cancelled"}


class Case(db.Model):
    """Workflow case. Goal date changes go through replanning."""

    __tablename__ = "cases"

    id = db.Column(db.Integer, primary_key=True)
    process_id = db.Column(
        db.Integer, db.ForeignKey("process_templates.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    goal_date = db.Column(db.Date, nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default="open",
        comment="open | in_progress | on_hold | completed | cancelled",
    )
    country_code = db.Column(db.String(2), nullable=False, default="JP")
    created_by = db.Column(db.Integer, nullable=True)

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
        db.CheckConstraint(
            "status IN ('open','in_progress','on_hold','completed','cancelled')",
            name="ck_case_status",
        ),
    )

    process_template = db.relationship("ProcessTemplate")
    step_instances = db.relationship(
        "StepInstance",
        backref="case",
        order_by="StepInstance.id",
        cascade="all, delete-orphan",
    )

    @property
    def progress(self) -> int:
        """Percentage of steps in ``done`` status."""
        if not self.step_instances:
            return 0
        done = sum(1 for s in self.step_instances if s.status == "done")
        return round(done / len(self.step_instances) * 100)

    def to_dict(self, include_steps=True):
        result = {
            "id": self.id,
            "process_id": self.process_id,
            "title": self.title,
            "goal_date": self.goal_date.isoformat() if self.goal_date else None,
            "status": self.status,
            "country_code": self.country_code,
            "created_by": self.created_by,
            "progress": self.progress,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_steps:
            result["step_instances"] = [s.to_dict() for s in self.step_instances]
        return result

    def __repr__(self):
        return f"<Case {self.id}: {self.title[:40]}>"


class StepInstance(db.Model):
    """Scheduled step of a case. Locked steps keep their dates on replan."""

    __tablename__ = "step_instances"

    id = db.Column(db.Integer, primary_key=True)
    case_id = db.Column(
        db.Integer, db.ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    template_id = db.Column(
        db.Integer, db.ForeignKey("step_templates.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    start_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    assignee_id = db.Column(db.Integer, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="todo",
        comment="todo | in_progress | done | blocked | cancelled",
    )
    locked = db.Column(db.Boolean, nullable=False, default=False)

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
        db.CheckConstraint(
            "status IN ('todo','in_progress','done','blocked','cancelled')",
            name="ck_step_instance_status",
        ),
    )

    def to_snapshot(self, locked_override: bool = False) -> LockedStepSnapshot:
        """Persisted state as seen by replanning.

        ``locked_override`` lets a replan request pin steps that are not
        locked in storage.
        """
        return LockedStepSnapshot(
            definition_id=self.template_id,
            due_date=self.due_date,
            locked=bool(self.locked or locked_override),
            start_date=self.start_date,
            instance_id=self.id,
            name=self.name,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "case_id": self.case_id,
            "template_id": self.template_id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "assignee_id": self.assignee_id,
            "status": self.status,
            "locked": self.locked,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<StepInstance {self.id}: {self.name[:40]} due={self.due_date}>"
