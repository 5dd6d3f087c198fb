from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_clock, get_current_user_id, get_identity_provider, get_session, unauthenticated
from ..domain.errors import (
    InvalidRequestError,
    ReservationNotFoundError,
    SlotConflictError,
    StoreUnavailableError,
    UnauthenticatedError,
)
from ..domain.identity import IdentityProvider
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..models import ReservationStatus
from ..schemas import ReservationCreate, ReservationRead, ReserveResponse
from ..usecases import reservations as reservation_usecase
from ..utils.time import Clock
from .common import audit_or_500, store_unavailable

router = APIRouter(prefix="", tags=["reservations"])

RESERVED_MESSAGE = "Reservation created. Complete payment to confirm."


@router.post("/reservations", response_model=ReserveResponse)
async def create_reservation(
    payload: ReservationCreate,
    authorization: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    identity: IdentityProvider = Depends(get_identity_provider),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> ReserveResponse:
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            reservation = await reservation_usecase.reserve(
                res_repo,
                identity,
                clock,
                credential=authorization,
                provider_id=payload.provider_id,
                scheduled_at=payload.scheduled_at,
                notes=payload.notes,
                payment_base_url=settings.payment_base_url,
            )
        except UnauthenticatedError:
            raise unauthenticated()
        except InvalidRequestError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        except SlotConflictError:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This time slot is no longer available")
        except StoreUnavailableError:
            raise store_unavailable()

    audit_or_500(
        action="reservation.created",
        initiator="user",
        reservation_id=reservation.id,
        provider_id=reservation.provider_id,
        patient_id=reservation.patient_id,
        scheduled_at=reservation.scheduled_at,
        status_from=None,
        status_to=reservation.status,
        version=reservation.version,
    )
    return ReserveResponse(reservation=ReservationRead.from_db(reservation=reservation), message=RESERVED_MESSAGE)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_patient_reservations(res_repo, patient_id=user_id, status=status_filter)
    except StoreUnavailableError:
        raise store_unavailable()
    return [ReservationRead.from_db(reservation=res) for res in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_patient_reservation(
            res_repo, reservation_id=reservation_id, patient_id=user_id
        )
    except StoreUnavailableError:
        raise store_unavailable()
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    return ReservationRead.from_db(reservation=reservation)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    user_id: str = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            result = await reservation_usecase.cancel_reservation(
                res_repo,
                clock,
                reservation_id=reservation_id,
                patient_id=user_id,
            )
        except ReservationNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
        except StoreUnavailableError:
            raise store_unavailable()

    reservation = result.reservation
    if result.changed:
        audit_or_500(
            action="reservation.cancelled",
            initiator="user",
            reservation_id=reservation.id,
            provider_id=reservation.provider_id,
            patient_id=reservation.patient_id,
            scheduled_at=reservation.scheduled_at,
            status_from=result.status_from,
            status_to=reservation.status,
            version=reservation.version,
        )
    return ReservationRead.from_db(reservation=reservation)
