"""Create appointments table.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("facility_id", postgresql.UUID(), nullable=False),
        sa.Column("date", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), server_default="30", nullable=False),
        sa.Column("type", sa.VARCHAR(length=20), server_default="in-person", nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), server_default="scheduled", nullable=False),
        sa.Column("deleted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("consent_given", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "consent_purpose", sa.VARCHAR(length=20), server_default="treatment", nullable=False
        ),
        sa.Column("consent_granted_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("recurrence_type", sa.VARCHAR(length=10), nullable=True),
        sa.Column("recurrence_interval", sa.Integer(), nullable=True),
        sa.Column("recurrence_end_date", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), server_default="", nullable=False),
        sa.Column("created_by", sa.VARCHAR(length=64), server_default="system", nullable=False),
        sa.Column("updated_by", sa.VARCHAR(length=64), server_default="system", nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "type IN ('in-person', 'telemedicine')",
            name="appointments_type_check",
        ),
        sa.CheckConstraint(
            "duration BETWEEN 15 AND 120",
            name="appointments_duration_check",
        ),
        sa.CheckConstraint(
            "consent_purpose IN ('treatment', 'billing', 'research')",
            name="appointments_consent_purpose_check",
        ),
        sa.CheckConstraint(
            "(status = 'cancelled') = deleted",
            name="appointments_cancelled_deleted_check",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id"),
    )

    # Create indexes
    op.create_index(
        "ix_appointments_doctor_schedule",
        "appointments",
        ["doctor_id", "date", "deleted"],
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_status", "appointments", ["status"])


def downgrade() -> None:
    """Downgrade database schema."""
    # Drop indexes
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_index("ix_appointments_doctor_schedule", table_name="appointments")

    # Drop table
    op.drop_table("appointments")
