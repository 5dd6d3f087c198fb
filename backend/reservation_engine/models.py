from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Enum, Index, Text, UniqueConstraint
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import DateTime, Integer, String

from .domain.lifecycle import ReservationStatus

__all__ = ["Base", "Reservation", "ReservationStatus"]


# Naive UTC with microseconds; plain DATETIME on MySQL would drop the fraction.
UtcDateTime = DateTime(timezone=False).with_variant(mysql.DATETIME(fsp=6), "mysql")


class Base(DeclarativeBase):
    pass


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        # occupies_slot is TRUE for PENDING/CONFIRMED and NULL once cancelled.
        # NULLs never collide in a unique index, so this only binds active rows.
        UniqueConstraint("provider_id", "scheduled_at", "occupies_slot", name="uq_res_active_slot"),
        UniqueConstraint("payment_reference", name="uq_res_payment_reference"),
        Index("idx_res_patient", "patient_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(
            ReservationStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    payment_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occupies_slot: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
