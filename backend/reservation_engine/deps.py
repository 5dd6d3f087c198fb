from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.errors import UnauthenticatedError
from .domain.identity import IdentityProvider
from .infrastructure.identity import JwtIdentityProvider
from .utils.time import Clock, SystemClock
from .utils.webhook_security import verify_signature


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_clock() -> Clock:
    return SystemClock()


def get_identity_provider(settings: Settings = Depends(get_settings)) -> IdentityProvider:
    return JwtIdentityProvider(secret=settings.auth_secret, algorithms=[settings.auth_algorithm])


def unauthenticated(detail: str = "invalid or missing bearer token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> str:
    try:
        return identity.resolve(authorization)
    except UnauthenticatedError as exc:
        raise unauthenticated() from exc


async def verify_payment_signature(
    request: Request,
    x_payment_signature: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    # Without a configured secret the payment channel is trusted as-is.
    if settings.payment_webhook_secret is None:
        return
    body = await request.body()
    if not verify_signature(settings.payment_webhook_secret, body, x_payment_signature):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid payment signature")
