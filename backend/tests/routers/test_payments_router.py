from datetime import datetime, timezone
from typing import Any, cast

import pytest
from fastapi import HTTPException
from fastapi.routing import APIRoute
from reservation_engine.deps import verify_payment_signature
from reservation_engine.domain.errors import StoreUnavailableError
from reservation_engine.domain.lifecycle import PaymentOutcome
from reservation_engine.models import ReservationStatus
from reservation_engine.routers import common
from reservation_engine.routers import payments as router
from reservation_engine.schemas import PaymentConfirm, PaymentConfirmResponse
from reservation_engine.usecases import reservations
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch, repo) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(common, "emit_audit_log", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda session: repo)
    return calls


async def _pending(repo, identity, clock):
    return await reservations.reserve(
        repo,
        identity,
        clock,
        credential="Bearer token-u1",
        provider_id="P1",
        scheduled_at=datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc),
        notes=None,
        payment_base_url="https://pay.test",
    )


async def _confirm(clock, reservation_id: str, outcome: PaymentOutcome):
    return await router.confirm_payment(
        payload=PaymentConfirm(reservationId=reservation_id, outcome=outcome),
        session=cast(AsyncSession, DummySession()),
        clock=clock,
    )


def test_payments_router_checks_signature() -> None:
    assert any(dep.dependency == verify_payment_signature for dep in router.router.dependencies)
    for route in router.router.routes:
        if not isinstance(route, APIRoute):
            continue
        assert any(dep.call == verify_payment_signature for dep in route.dependant.dependencies)


@pytest.mark.asyncio
async def test_redelivered_success_audits_once(repo, identity, clock, audit_calls) -> None:
    reservation = await _pending(repo, identity, clock)

    first = await _confirm(clock, reservation.id, PaymentOutcome.SUCCESS)
    second = await _confirm(clock, reservation.id, PaymentOutcome.SUCCESS)

    assert first.status == second.status == ReservationStatus.CONFIRMED
    assert second.reservation_id == reservation.id
    assert len(audit_calls) == 1
    assert audit_calls[0]["action"] == "reservation.confirmed"
    assert audit_calls[0]["initiator"] == "payment"
    assert audit_calls[0]["extra"] == {"outcome": "success"}


@pytest.mark.asyncio
async def test_failure_outcome_is_audited_as_payment_failed(repo, identity, clock, audit_calls) -> None:
    reservation = await _pending(repo, identity, clock)
    result = await _confirm(clock, reservation.id, PaymentOutcome.FAILURE)
    assert result.status == ReservationStatus.CANCELLED
    assert audit_calls[0]["action"] == "reservation.payment_failed"


@pytest.mark.asyncio
async def test_unknown_reservation_returns_404(clock, audit_calls) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await _confirm(clock, "missing", PaymentOutcome.SUCCESS)
    assert excinfo.value.status_code == 404
    assert audit_calls == []


def test_confirm_response_shape() -> None:
    body = PaymentConfirmResponse(reservation_id="r1", status=ReservationStatus.CONFIRMED).model_dump(
        by_alias=True, mode="json"
    )
    assert body == {"success": True, "reservationId": "r1", "status": "CONFIRMED"}


@pytest.mark.asyncio
async def test_store_unavailable_returns_503(repo, clock, audit_calls, monkeypatch: pytest.MonkeyPatch) -> None:
    async def unavailable(reservation_id: str) -> None:
        raise StoreUnavailableError("reservation store unavailable")

    monkeypatch.setattr(repo, "get", unavailable)
    with pytest.raises(HTTPException) as excinfo:
        await _confirm(clock, "res-1", PaymentOutcome.SUCCESS)
    assert excinfo.value.status_code == 503
    assert audit_calls == []
