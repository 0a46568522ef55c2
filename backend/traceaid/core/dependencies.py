"""FastAPI dependency chain: JWT → Principal → Fundraiser, plus app-scoped services."""

import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.exceptions import NotAuthenticated, PermissionDenied
from traceaid.core.permissions import FUNDRAISER, ROLES, Principal
from traceaid.core.security import ROLE_CLAIM, decode_access_token
from traceaid.db.session import async_session_factory
from traceaid.models.fundraiser import Fundraiser
from traceaid.services.bank_directory import BankDirectory
from traceaid.services.notifications import EmailNotifier

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session. Commits on success, rolls back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """Extract and verify the Bearer token, returning JWT claims."""
    if credentials is None:
        raise NotAuthenticated("Missing authorization header")

    try:
        claims = await decode_access_token(credentials.credentials)
    except JWTError as e:
        raise NotAuthenticated(f"Invalid token: {e}") from e

    return claims


async def get_current_principal(claims: dict = Depends(get_current_user_claims)) -> Principal:
    try:
        principal_id = uuid.UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise NotAuthenticated("Token sub claim is not a valid id") from exc

    role = claims.get(ROLE_CLAIM)
    if role not in ROLES:
        raise NotAuthenticated("Token carries no recognised role")

    return Principal(id=principal_id, role=role, email=claims.get("email"))


async def get_current_fundraiser(
    claims: dict = Depends(get_current_user_claims),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Fundraiser:
    """Resolve the calling fundraiser's row.

    Auto-provisions the fundraiser the first time the identity is seen.
    """
    if principal.role != FUNDRAISER:
        raise PermissionDenied("Fundraiser account required")

    result = await db.execute(select(Fundraiser).where(Fundraiser.id == principal.id))
    fundraiser = result.scalar_one_or_none()

    if fundraiser is None:
        email = principal.email or f"{principal.id}@placeholder.local"
        fundraiser = Fundraiser(
            id=principal.id,
            email=email,
            organization_name=claims.get("organization_name") or claims.get("name") or email,
        )
        db.add(fundraiser)
        await db.flush()

    if fundraiser.status != "active":
        raise PermissionDenied("Fundraiser account is suspended")

    return fundraiser


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier


def get_bank_directory(request: Request) -> BankDirectory:
    return request.app.state.bank_directory
