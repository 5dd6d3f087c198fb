import logging
import uuid
from datetime import datetime

from ..domain.errors import InvalidRequestError, ReservationNotFoundError, SlotConflictError
from ..domain.identity import IdentityProvider
from ..domain.lifecycle import LifecycleEvent, TransitionResult, next_status
from ..domain.repositories import ReservationRepository
from ..domain.slots import SlotKey
from ..models import Reservation, ReservationStatus
from ..utils.payment import build_payment_reference
from ..utils.time import Clock, to_utc_naive
from .availability import is_available

logger = logging.getLogger(__name__)


async def reserve(
    res_repo: ReservationRepository,
    identity: IdentityProvider,
    clock: Clock,
    *,
    credential: str | None,
    provider_id: str | None,
    scheduled_at: datetime | None,
    notes: str | None,
    payment_base_url: str,
) -> Reservation:
    """
    Claim a slot for the caller and issue its payment reference.
    Must run inside one transaction: the availability read and the insert share it,
    and the slot unique constraint decides any race the read cannot see.
    """
    patient_id = identity.resolve(credential)
    slot = SlotKey.of(provider_id, scheduled_at)
    now = to_utc_naive(clock.now())
    if slot.scheduled_at < now:
        raise InvalidRequestError("scheduledAt must not be in the past")

    if not await is_available(res_repo, slot):
        logger.info("slot %s@%s already reserved", slot.provider_id, slot.scheduled_at.isoformat())
        raise SlotConflictError("slot already reserved")

    reservation_id = str(uuid.uuid4())
    return await res_repo.create(
        reservation_id=reservation_id,
        patient_id=patient_id,
        slot=slot,
        payment_reference=build_payment_reference(payment_base_url, reservation_id),
        notes=notes or None,
        status=ReservationStatus.PENDING,
        now=now,
    )


async def transition_reservation(
    res_repo: ReservationRepository,
    clock: Clock,
    *,
    reservation: Reservation,
    event: LifecycleEvent,
) -> TransitionResult:
    """
    Apply `event` with a compare-and-swap on status. When a concurrent writer moves the
    reservation first, the event is re-evaluated against the status it left behind; the
    lifecycle has no cycles, so this ends in a swap or a no-op.
    """
    current = reservation
    while True:
        status_from = current.status
        target = next_status(status_from, event)
        if target is None:
            return TransitionResult(reservation=current, status_from=status_from, changed=False)

        applied = await res_repo.transition(
            current.id,
            expected=status_from,
            target=target,
            now=to_utc_naive(clock.now()),
        )
        refreshed = await res_repo.get_for_update(current.id)
        if refreshed is None:
            raise ReservationNotFoundError("reservation not found")
        if applied:
            return TransitionResult(reservation=refreshed, status_from=status_from, changed=True)
        logger.info(
            "reservation %s moved from %s to %s concurrently; retrying %s",
            current.id,
            status_from.value,
            refreshed.status.value,
            event.value,
        )
        current = refreshed


async def cancel_reservation(
    res_repo: ReservationRepository,
    clock: Clock,
    *,
    reservation_id: str,
    patient_id: str,
) -> TransitionResult:
    reservation = await res_repo.get_for_patient(reservation_id, patient_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return await transition_reservation(
        res_repo,
        clock,
        reservation=reservation,
        event=LifecycleEvent.PATIENT_CANCELLED,
    )


async def list_patient_reservations(
    res_repo: ReservationRepository,
    *,
    patient_id: str,
    status: ReservationStatus | None = None,
) -> list[Reservation]:
    return await res_repo.list_by_patient(patient_id, status=status)


async def get_patient_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: str,
    patient_id: str,
) -> Reservation | None:
    return await res_repo.get_for_patient(reservation_id, patient_id)
