import logging

from ..domain.errors import ReservationNotFoundError
from ..domain.lifecycle import PaymentOutcome, TransitionResult, event_for_outcome
from ..domain.repositories import ReservationRepository
from ..utils.time import Clock
from .reservations import transition_reservation

logger = logging.getLogger(__name__)


async def apply_payment_outcome(
    res_repo: ReservationRepository,
    clock: Clock,
    *,
    reservation_id: str,
    outcome: PaymentOutcome,
) -> TransitionResult:
    """
    Apply a payment notification. Safe under at-least-once delivery: once the
    reservation is terminal every further outcome is a no-op returning the current status.
    The caller is not matched against the patient; the notification channel is trusted.
    """
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")

    result = await transition_reservation(
        res_repo,
        clock,
        reservation=reservation,
        event=event_for_outcome(outcome),
    )
    if not result.changed:
        logger.info(
            "payment outcome %s for reservation %s ignored; status is %s",
            outcome.value,
            reservation_id,
            result.status.value,
        )
    return result
