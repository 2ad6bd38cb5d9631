"""create_case_schedule_tables

Creates the case scheduling tables:
  - process_templates  - named, versioned workflow definitions
  - step_templates     - steps of a template (basis, offset, depends_on JSON)
  - cases              - template instantiations with a goal date
  - step_instances     - scheduled steps of a case (start/due, lock)
  - holidays           - per-country non-working dates

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: a1c4e2f09b31
Revises:
Create Date: 2026-10-19 09:12:44.381207
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a1c4e2f09b31'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── ProcessTemplate ───────────────────────────────────────────────────
    if "process_templates" not in existing:
        op.create_table(
            "process_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    # ── StepTemplate ──────────────────────────────────────────────────────
    if "step_templates" not in existing:
        op.create_table(
            "step_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("process_id", sa.Integer(), nullable=False),
            sa.Column("seq", sa.Integer(), nullable=False, server_default="0",
                      comment="Order within the template"),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("basis", sa.String(length=10), nullable=False, server_default="goal",
                      comment="goal | prev"),
            sa.Column("offset_days", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("required_artifacts", sa.Text(), nullable=True,
                      comment="JSON list of {kind, description}"),
            sa.Column("depends_on", sa.Text(), nullable=True,
                      comment="JSON list of step_templates.id"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("basis IN ('goal','prev')", name="ck_step_template_basis"),
            sa.CheckConstraint("offset_days BETWEEN -365 AND 365", name="ck_step_template_offset"),
            sa.ForeignKeyConstraint(["process_id"], ["process_templates.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_step_templates_process_id", "step_templates", ["process_id"])

    # ── Case ──────────────────────────────────────────────────────────────
    if "cases" not in existing:
        op.create_table(
            "cases",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("process_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("goal_date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="open",
                      comment="open | in_progress | on_hold | completed | cancelled"),
            sa.Column("country_code", sa.String(length=2), nullable=False, server_default="JP"),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint(
                "status IN ('open','in_progress','on_hold','completed','cancelled')",
                name="ck_case_status",
            ),
            sa.ForeignKeyConstraint(["process_id"], ["process_templates.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_cases_process_id", "cases", ["process_id"])

    # ── StepInstance ──────────────────────────────────────────────────────
    if "step_instances" not in existing:
        op.create_table(
            "step_instances",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("case_id", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("assignee_id", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="todo",
                      comment="todo | in_progress | done | blocked | cancelled"),
            sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint(
                "status IN ('todo','in_progress','done','blocked','cancelled')",
                name="ck_step_instance_status",
            ),
            sa.ForeignKeyConstraint(["case_id"], ["cases.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_id"], ["step_templates.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_step_instances_case_id", "step_instances", ["case_id"])
        op.create_index("ix_step_instances_template_id", "step_instances", ["template_id"])

    # ── Holiday ───────────────────────────────────────────────────────────
    if "holidays" not in existing:
        op.create_table(
            "holidays",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("country_code", sa.String(length=2), nullable=False,
                      comment="ISO 3166-1 alpha-2"),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("country_code", "date", name="uq_holiday_country_date"),
        )
        op.create_index("ix_holidays_country_code", "holidays", ["country_code"])
        op.create_index("ix_holidays_date", "holidays", ["date"])


def downgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())
    for table in ("step_instances", "cases", "step_templates", "process_templates", "holidays"):
        if table in existing:
            op.drop_table(table)
