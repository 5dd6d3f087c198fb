from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import InvalidRequestError, StoreUnavailableError
from ..domain.slots import SlotKey
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..schemas import SlotAvailability
from ..usecases import availability as availability_usecase
from ..utils.time import utc_naive_to_aware
from .common import store_unavailable

router = APIRouter(prefix="/providers", tags=["availability"])


@router.get("/{provider_id}/availability", response_model=SlotAvailability)
async def get_availability(
    provider_id: str = Path(..., min_length=1),
    scheduled_at: datetime = Query(..., description="Slot start (ISO 8601 with offset)"),
    session: AsyncSession = Depends(get_session),
) -> SlotAvailability:
    try:
        slot = SlotKey.of(provider_id, scheduled_at)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    slot_repo = SqlAlchemyReservationRepository(session)
    try:
        available = await availability_usecase.is_available(slot_repo, slot)
    except StoreUnavailableError:
        raise store_unavailable()
    return SlotAvailability(
        provider_id=slot.provider_id,
        scheduled_at=utc_naive_to_aware(slot.scheduled_at),
        available=available,
    )
