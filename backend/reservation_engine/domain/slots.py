from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..utils.time import to_utc_naive
from .errors import InvalidRequestError


@dataclass(frozen=True)
class SlotKey:
    """A bookable unit: one provider at one absolute instant (UTC naive, full precision)."""

    provider_id: str
    scheduled_at: datetime

    @classmethod
    def of(cls, provider_id: str | None, scheduled_at: datetime | None) -> "SlotKey":
        if provider_id is None or not provider_id.strip():
            raise InvalidRequestError("providerId is required")
        if scheduled_at is None:
            raise InvalidRequestError("scheduledAt is required")
        try:
            instant = to_utc_naive(scheduled_at)
        except ValueError as exc:
            raise InvalidRequestError("scheduledAt must include a timezone offset") from exc
        return cls(provider_id=provider_id.strip(), scheduled_at=instant)
