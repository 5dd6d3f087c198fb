from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_clock, get_session, verify_payment_signature
from ..domain.errors import ReservationNotFoundError, StoreUnavailableError
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..models import ReservationStatus
from ..schemas import PaymentConfirm, PaymentConfirmResponse
from ..usecases import confirmations as confirmation_usecase
from ..utils.time import Clock
from .common import audit_or_500, store_unavailable

# The deployer must put this behind an authenticated channel; the signature check
# only runs when PAYMENT_WEBHOOK_SECRET is configured.
router = APIRouter(prefix="/payments", tags=["payments"], dependencies=[Depends(verify_payment_signature)])


@router.post("/confirm", response_model=PaymentConfirmResponse)
async def confirm_payment(
    payload: PaymentConfirm,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> PaymentConfirmResponse:
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            result = await confirmation_usecase.apply_payment_outcome(
                res_repo,
                clock,
                reservation_id=payload.reservation_id,
                outcome=payload.outcome,
            )
        except ReservationNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
        except StoreUnavailableError:
            raise store_unavailable()

    reservation = result.reservation
    if result.changed:
        audit_or_500(
            action=(
                "reservation.confirmed"
                if reservation.status == ReservationStatus.CONFIRMED
                else "reservation.payment_failed"
            ),
            initiator="payment",
            reservation_id=reservation.id,
            provider_id=reservation.provider_id,
            patient_id=reservation.patient_id,
            scheduled_at=reservation.scheduled_at,
            status_from=result.status_from,
            status_to=reservation.status,
            version=reservation.version,
            extra={"outcome": payload.outcome.value},
        )
    return PaymentConfirmResponse(reservation_id=reservation.id, status=reservation.status)
