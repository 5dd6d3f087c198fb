from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import Select, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import SlotConflictError, StoreUnavailableError
from ..domain.lifecycle import ACTIVE_STATUSES
from ..domain.repositories import ReservationRepository
from ..domain.slots import SlotKey
from ..models import Reservation, ReservationStatus


def _is_slot_conflict(exc: IntegrityError) -> bool:
    # MySQL and Postgres name the constraint; SQLite lists its columns.
    message = str(exc.orig)
    return "uq_res_active_slot" in message or "occupies_slot" in message


@contextmanager
def _store_errors() -> Iterator[None]:
    try:
        yield
    except OperationalError as exc:
        raise StoreUnavailableError("reservation store unavailable") from exc


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def has_active_for_slot(self, slot: SlotKey) -> bool:
        stmt = select(Reservation.id).where(
            Reservation.provider_id == slot.provider_id,
            Reservation.scheduled_at == slot.scheduled_at,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        with _store_errors():
            return await self.session.scalar(stmt.limit(1)) is not None

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
        reservation = Reservation(
            id=reservation_id,
            patient_id=patient_id,
            provider_id=slot.provider_id,
            scheduled_at=slot.scheduled_at,
            status=status,
            payment_reference=payment_reference,
            notes=notes,
            occupies_slot=True if status in ACTIVE_STATUSES else None,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        with _store_errors():
            try:
                await self.session.flush()
            except IntegrityError as exc:
                if not _is_slot_conflict(exc):
                    raise
                raise SlotConflictError("slot already reserved") from exc
        return reservation

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        with _store_errors():
            return await self.session.get(Reservation, reservation_id, populate_existing=True)

    async def get_for_update(self, reservation_id: str) -> Optional[Reservation]:
        # Locking read: sees the latest committed row even under REPEATABLE READ.
        stmt = (
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        with _store_errors():
            return await self.session.scalar(stmt)

    async def get_for_patient(self, reservation_id: str, patient_id: str) -> Optional[Reservation]:
        stmt = select(Reservation).where(
            Reservation.id == reservation_id,
            Reservation.patient_id == patient_id,
        )
        with _store_errors():
            return await self.session.scalar(stmt)

    async def list_by_patient(
        self,
        patient_id: str,
        status: ReservationStatus | None = None,
    ) -> List[Reservation]:
        stmt: Select[tuple[Reservation]] = (
            select(Reservation)
            .where(Reservation.patient_id == patient_id)
            .order_by(Reservation.scheduled_at.desc())
        )
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        with _store_errors():
            rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def transition(
        self,
        reservation_id: str,
        *,
        expected: ReservationStatus,
        target: ReservationStatus,
        now: datetime,
    ) -> bool:
        # Compare-and-swap on status: a concurrent writer that got there first leaves rowcount at 0.
        values: dict[str, object] = {
            "status": target,
            "version": Reservation.version + 1,
            "updated_at": now,
        }
        if target not in ACTIVE_STATUSES:
            values["occupies_slot"] = None
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id, Reservation.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with _store_errors():
            result = await self.session.execute(stmt)
        return bool(result.rowcount)
