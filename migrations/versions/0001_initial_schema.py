"""initial quota drug schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-01-06 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

calculation_method = sa.Enum(
    "DAILY", "WEEKLY", "MONTHLY", "TWICE_YEARLY", name="calculationmethod"
)


def _timestamps():
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "departments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_departments_id", "departments", ["id"], unique=True)
    op.create_index("ix_departments_name", "departments", ["name"], unique=True)

    op.create_table(
        "drugs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column(
            "department_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("departments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("quota_number", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("calculation_method", calculation_method, nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("department_id", "name", name="uq_drugs_department_name"),
        sa.CheckConstraint("quota_number >= 0", name="ck_drugs_quota_non_negative"),
    )
    op.create_index("ix_drugs_id", "drugs", ["id"], unique=True)
    op.create_index("ix_drugs_name", "drugs", ["name"])
    op.create_index("ix_drugs_department_id", "drugs", ["department_id"])

    op.create_table(
        "patients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("ic_number", sa.String(50), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_patients_id", "patients", ["id"], unique=True)
    op.create_index("ix_patients_name", "patients", ["name"])
    op.create_index("ix_patients_ic_number", "patients", ["ic_number"], unique=True)

    op.create_table(
        "enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("patients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "drug_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("drugs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("dose_per_day", sa.String(100), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("prescription_start_date", sa.Date(), nullable=True),
        sa.Column("prescription_end_date", sa.Date(), nullable=True),
        sa.Column("latest_refill_date", sa.Date(), nullable=True),
        sa.Column("spub", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("cost_per_day", sa.Numeric(10, 2), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "prescription_end_date IS NULL OR prescription_start_date IS NULL "
            "OR prescription_end_date >= prescription_start_date",
            name="ck_enrollments_end_after_start",
        ),
    )
    op.create_index("ix_enrollments_id", "enrollments", ["id"], unique=True)
    op.create_index("ix_enrollments_patient_id", "enrollments", ["patient_id"])
    op.create_index("ix_enrollments_drug_id", "enrollments", ["drug_id"])
    op.create_index("ix_enrollments_is_active", "enrollments", ["is_active"])
    op.create_index(
        "ix_enrollments_latest_refill_date", "enrollments", ["latest_refill_date"]
    )
    op.create_index(
        "uq_enrollments_active_patient_drug",
        "enrollments",
        ["patient_id", "drug_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )


def downgrade() -> None:
    op.drop_index("uq_enrollments_active_patient_drug", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("patients")
    op.drop_table("drugs")
    op.drop_table("departments")
    calculation_method.drop(op.get_bind(), checkfirst=True)
