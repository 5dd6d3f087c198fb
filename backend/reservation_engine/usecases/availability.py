from ..domain.repositories import ReservationRepository
from ..domain.slots import SlotKey


async def is_available(res_repo: ReservationRepository, slot: SlotKey) -> bool:
    """True iff no PENDING or CONFIRMED reservation holds the slot. Read-only."""
    return not await res_repo.has_active_for_slot(slot)
