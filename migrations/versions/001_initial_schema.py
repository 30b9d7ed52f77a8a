"""Initial schema: children, growth_measurements, activity_records, medication_doses,
growth_reference_data, medication_profiles

Seeds growth_reference_data and medication_profiles from the bundled
WHO 2006 rows and formulary.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from health.reference.curves import WHO_2006_POINTS
from health.reference.medications import FORMULARY

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Ensure pgcrypto is available for gen_random_uuid()
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # --- children ---
    op.create_table(
        "children",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("sex", sa.String(16), nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("sex IN ('male', 'female')", name="chk_children_sex"),
    )

    # --- growth_measurements ---
    op.create_table(
        "growth_measurements",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("child_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("measurement_date", sa.Date, nullable=False),
        sa.Column("age_in_weeks", sa.Float, nullable=False),
        sa.Column("height_cm", sa.Float, nullable=True),
        sa.Column("weight_kg", sa.Float, nullable=True),
        sa.Column("head_circumference_cm", sa.Float, nullable=True),
        sa.Column("height_percentile", sa.Integer, nullable=True),
        sa.Column("weight_percentile", sa.Integer, nullable=True),
        sa.Column("head_circumference_percentile", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("age_in_weeks >= 0", name="chk_measurement_age"),
        sa.CheckConstraint(
            "height_cm IS NOT NULL OR weight_kg IS NOT NULL OR head_circumference_cm IS NOT NULL",
            name="chk_measurement_has_value",
        ),
    )
    op.create_index(
        "idx_growth_measurements_child_date",
        "growth_measurements",
        ["child_id", sa.text("measurement_date DESC")],
    )

    # --- activity_records ---
    op.create_table(
        "activity_records",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("child_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("category", sa.String(16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subtype", sa.String(32), nullable=True),
        sa.Column("quantity", sa.Float, nullable=True),
        sa.CheckConstraint(
            "ended_at IS NULL OR ended_at > started_at", name="chk_activity_ended_after_started"
        ),
    )
    op.create_index(
        "idx_activity_records_child_started", "activity_records", ["child_id", "started_at"]
    )

    # --- medication_doses (append-only) ---
    op.create_table(
        "medication_doses",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("child_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("medication_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("unit", sa.String(16), nullable=False, server_default=sa.text("'mg'")),
        sa.Column("administered_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="chk_dose_amount_positive"),
    )
    op.create_index(
        "idx_medication_doses_child_med_time",
        "medication_doses",
        ["child_id", "medication_id", sa.text("administered_at DESC")],
    )

    # --- growth_reference_data ---
    reference = op.create_table(
        "growth_reference_data",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("sex", sa.String(16), nullable=False),
        sa.Column("measurement_type", sa.String(32), nullable=False),
        sa.Column("age_in_weeks", sa.Integer, nullable=False),
        *(sa.Column(f"p{p}", sa.Float, nullable=False) for p in (3, 5, 10, 25, 50, 75, 90, 95, 97)),
        sa.UniqueConstraint(
            "sex", "measurement_type", "age_in_weeks", name="uq_growth_reference_point"
        ),
    )

    # --- medication_profiles ---
    profiles = op.create_table(
        "medication_profiles",
        sa.Column("medication_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("strength_mg", sa.Float, nullable=True),
        sa.Column("concentration_mg_per_ml", sa.Float, nullable=True),
        sa.Column("min_age_months", sa.Float, nullable=False, server_default=sa.text("0")),
        sa.Column("max_daily_dose_mg", sa.Float, nullable=True),
        sa.Column("max_daily_mg_per_kg", sa.Float, nullable=True),
        sa.Column("dosing_interval_hours", sa.Float, nullable=False),
        sa.Column(
            "dosing_table", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
    )

    op.bulk_insert(reference, [point.model_dump(mode="json") for point in WHO_2006_POINTS])
    op.bulk_insert(profiles, [profile.model_dump(mode="json") for profile in FORMULARY])


def downgrade() -> None:
    op.drop_table("medication_profiles")
    op.drop_table("growth_reference_data")
    op.drop_table("medication_doses")
    op.drop_table("activity_records")
    op.drop_table("growth_measurements")
    op.drop_table("children")
