from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from .domain.lifecycle import PaymentOutcome
from .models import Reservation, ReservationStatus
from .utils.time import utc_naive_to_aware


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationCreate(CamelModel):
    provider_id: str = Field(min_length=1, max_length=64)
    scheduled_at: datetime
    notes: Optional[str] = None


class ReservationRead(CamelModel):
    id: str
    status: ReservationStatus
    provider_id: str
    scheduled_at: datetime
    payment_reference: str
    notes: Optional[str] = None

    @field_serializer("scheduled_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(timezone.utc).isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            id=reservation.id,
            status=reservation.status,
            provider_id=reservation.provider_id,
            scheduled_at=utc_naive_to_aware(reservation.scheduled_at),
            payment_reference=reservation.payment_reference,
            notes=reservation.notes,
        )


class ReserveResponse(CamelModel):
    success: bool = True
    reservation: ReservationRead
    message: str


class PaymentConfirm(CamelModel):
    reservation_id: str = Field(min_length=1)
    outcome: PaymentOutcome


class PaymentConfirmResponse(CamelModel):
    success: bool = True
    reservation_id: str
    status: ReservationStatus


class SlotAvailability(CamelModel):
    provider_id: str
    scheduled_at: datetime
    available: bool

    @field_serializer("scheduled_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(timezone.utc).isoformat()
