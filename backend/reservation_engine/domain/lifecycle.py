from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import Reservation


class ReservationStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class PaymentOutcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


class LifecycleEvent(StrEnum):
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    PATIENT_CANCELLED = "patient_cancelled"


ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})

_TRANSITIONS: dict[tuple[ReservationStatus, LifecycleEvent], ReservationStatus] = {
    (ReservationStatus.PENDING, LifecycleEvent.PAYMENT_SUCCEEDED): ReservationStatus.CONFIRMED,
    (ReservationStatus.PENDING, LifecycleEvent.PAYMENT_FAILED): ReservationStatus.CANCELLED,
    (ReservationStatus.PENDING, LifecycleEvent.PATIENT_CANCELLED): ReservationStatus.CANCELLED,
    (ReservationStatus.CONFIRMED, LifecycleEvent.PATIENT_CANCELLED): ReservationStatus.CANCELLED,
}


def event_for_outcome(outcome: PaymentOutcome) -> LifecycleEvent:
    if outcome == PaymentOutcome.SUCCESS:
        return LifecycleEvent.PAYMENT_SUCCEEDED
    return LifecycleEvent.PAYMENT_FAILED


def next_status(current: ReservationStatus, event: LifecycleEvent) -> ReservationStatus | None:
    """
    Pure state machine lookup.
    Returns the status the event moves `current` to, or None when the event is a no-op
    (terminal states, re-delivered payment outcomes).
    """
    return _TRANSITIONS.get((current, event))


@dataclass(frozen=True)
class TransitionResult:
    reservation: "Reservation"
    status_from: ReservationStatus
    changed: bool

    @property
    def status(self) -> ReservationStatus:
        return self.reservation.status
