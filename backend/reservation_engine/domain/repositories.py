from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models import Reservation, ReservationStatus
from .slots import SlotKey


class ReservationRepository(Protocol):
    async def has_active_for_slot(self, slot: SlotKey) -> bool: ...

    async def create(
        self,
        *,
        reservation_id: str,
        patient_id: str,
        slot: SlotKey,
        payment_reference: str,
        notes: str | None,
        status: ReservationStatus,
        now: datetime,
    ) -> Reservation: ...

    async def get(self, reservation_id: str) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: str) -> Reservation | None: ...

    async def get_for_patient(self, reservation_id: str, patient_id: str) -> Reservation | None: ...

    async def list_by_patient(
        self,
        patient_id: str,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]: ...

    async def transition(
        self,
        reservation_id: str,
        *,
        expected: ReservationStatus,
        target: ReservationStatus,
        now: datetime,
    ) -> bool: ...
