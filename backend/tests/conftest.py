import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest
from reservation_engine.domain.errors import SlotConflictError, UnauthenticatedError
from reservation_engine.domain.lifecycle import ACTIVE_STATUSES
from reservation_engine.domain.slots import SlotKey
from reservation_engine.models import Reservation, ReservationStatus

FIXED_NOW = datetime(2025, 2, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class StaticIdentity:
    """Maps raw credential strings to user ids."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self.tokens = tokens

    def resolve(self, credential: str | None) -> str:
        if credential is None or credential not in self.tokens:
            raise UnauthenticatedError("invalid credential")
        return self.tokens[credential]


class InMemoryReservationRepo:
    """
    Same contract as the SQL repository: active-slot uniqueness is checked at insert
    time and transitions are compare-and-swap on status.
    `interleave=True` yields to the event loop after the availability read so that
    concurrent reserve calls all pass the read before any of them inserts.
    """

    def __init__(self, *, interleave: bool = False) -> None:
        self.rows: dict[str, Reservation] = {}
        self.transitions: list[tuple[str, ReservationStatus, ReservationStatus]] = []
        self.interleave = interleave

    def _occupied(self, slot: SlotKey) -> bool:
        return any(
            r.provider_id == slot.provider_id and r.scheduled_at == slot.scheduled_at and r.status in ACTIVE_STATUSES
            for r in self.rows.values()
        )

    async def has_active_for_slot(self, slot: SlotKey) -> bool:
        occupied = self._occupied(slot)
        if self.interleave:
            await asyncio.sleep(0)
        return occupied

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
    ) -> Reservation:
        if status in ACTIVE_STATUSES and self._occupied(slot):
            raise SlotConflictError("slot already reserved")
        reservation = Reservation(
            id=reservation_id,
            patient_id=patient_id,
            provider_id=slot.provider_id,
            scheduled_at=slot.scheduled_at,
            status=status,
            payment_reference=payment_reference,
            notes=notes,
            occupies_slot=True,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.rows[reservation_id] = reservation
        return reservation

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        return self.rows.get(reservation_id)

    async def get_for_update(self, reservation_id: str) -> Optional[Reservation]:
        return self.rows.get(reservation_id)

    async def get_for_patient(self, reservation_id: str, patient_id: str) -> Optional[Reservation]:
        row = self.rows.get(reservation_id)
        if row is None or row.patient_id != patient_id:
            return None
        return row

    async def list_by_patient(
        self,
        patient_id: str,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]:
        rows = [r for r in self.rows.values() if r.patient_id == patient_id]
        if status is not None:
            rows = [r for r in rows if r.status == status]
        return sorted(rows, key=lambda r: r.scheduled_at, reverse=True)

    async def transition(
        self,
        reservation_id: str,
        *,
        expected: ReservationStatus,
        target: ReservationStatus,
        now: datetime,
    ) -> bool:
        row = self.rows.get(reservation_id)
        if row is None or row.status != expected:
            return False
        row.status = target
        row.version += 1
        row.updated_at = now
        if target not in ACTIVE_STATUSES:
            row.occupies_slot = None
        self.transitions.append((reservation_id, expected, target))
        return True


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity({"Bearer token-u1": "U1", "Bearer token-u2": "U2"})


@pytest.fixture
def repo() -> InMemoryReservationRepo:
    return InMemoryReservationRepo()


@pytest.fixture
def racing_repo() -> InMemoryReservationRepo:
    return InMemoryReservationRepo(interleave=True)
