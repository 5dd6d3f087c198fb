class ReservationError(Exception):
    """Base class for reservation domain errors."""


class UnauthenticatedError(ReservationError):
    pass


class InvalidRequestError(ReservationError):
    pass


class SlotConflictError(ReservationError):
    pass


class ReservationNotFoundError(ReservationError):
    pass


class StoreUnavailableError(ReservationError):
    """Transient persistence failure; safe to retry Confirm, not Reserve."""
