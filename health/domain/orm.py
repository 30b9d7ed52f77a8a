"""SQLAlchemy ORM models for the tables the SQL Store adapter reads.

Tables:
- children: report header data and the sex used for curve lookup
- growth_measurements: anthropometric readings, percentiles as resolved at entry
- activity_records: feeding, sleep and diaper log
- medication_doses: append-only dose log
- growth_reference_data: percentile ladders per (sex, type, age)
- medication_profiles: formulary with the dosing table as JSONB

Writes belong to the host application; this service only queries.
"""

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ChildModel(Base):
    __tablename__ = "children"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sex: Mapped[str] = mapped_column(String(16), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (CheckConstraint("sex IN ('male', 'female')", name="chk_children_sex"),)


class GrowthMeasurementModel(Base):
    __tablename__ = "growth_measurements"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    child_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    measurement_date: Mapped[date] = mapped_column(Date, nullable=False)
    age_in_weeks: Mapped[float] = mapped_column(Float, nullable=False)

    height_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    head_circumference_cm: Mapped[float | None] = mapped_column(Float, nullable=True)
    height_percentile: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weight_percentile: Mapped[int | None] = mapped_column(Integer, nullable=True)
    head_circumference_percentile: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (
        CheckConstraint("age_in_weeks >= 0", name="chk_measurement_age"),
        CheckConstraint(
            "height_cm IS NOT NULL OR weight_kg IS NOT NULL OR head_circumference_cm IS NOT NULL",
            name="chk_measurement_has_value",
        ),
        Index("idx_growth_measurements_child_date", "child_id", measurement_date.desc()),
    )


class ActivityRecordModel(Base):
    __tablename__ = "activity_records"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    child_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    subtype: Mapped[str | None] = mapped_column(String(32), nullable=True)
    quantity: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "ended_at IS NULL OR ended_at > started_at", name="chk_activity_ended_after_started"
        ),
        Index("idx_activity_records_child_started", "child_id", "started_at"),
    )


class MedicationDoseModel(Base):
    __tablename__ = "medication_doses"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    child_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    medication_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'mg'"))
    administered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_dose_amount_positive"),
        Index(
            "idx_medication_doses_child_med_time",
            "child_id",
            "medication_id",
            administered_at.desc(),
        ),
    )


class GrowthReferenceModel(Base):
    __tablename__ = "growth_reference_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sex: Mapped[str] = mapped_column(String(16), nullable=False)
    measurement_type: Mapped[str] = mapped_column(String(32), nullable=False)
    age_in_weeks: Mapped[int] = mapped_column(Integer, nullable=False)
    p3: Mapped[float] = mapped_column(Float, nullable=False)
    p5: Mapped[float] = mapped_column(Float, nullable=False)
    p10: Mapped[float] = mapped_column(Float, nullable=False)
    p25: Mapped[float] = mapped_column(Float, nullable=False)
    p50: Mapped[float] = mapped_column(Float, nullable=False)
    p75: Mapped[float] = mapped_column(Float, nullable=False)
    p90: Mapped[float] = mapped_column(Float, nullable=False)
    p95: Mapped[float] = mapped_column(Float, nullable=False)
    p97: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "sex", "measurement_type", "age_in_weeks", name="uq_growth_reference_point"
        ),
    )


class MedicationProfileModel(Base):
    __tablename__ = "medication_profiles"

    medication_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    strength_mg: Mapped[float | None] = mapped_column(Float, nullable=True)
    concentration_mg_per_ml: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_age_months: Mapped[float] = mapped_column(Float, nullable=False, server_default=text("0"))
    max_daily_dose_mg: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_daily_mg_per_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    dosing_interval_hours: Mapped[float] = mapped_column(Float, nullable=False)
    dosing_table: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb")
    )
