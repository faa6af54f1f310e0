"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from bizledger.config import Settings, get_settings
from bizledger.database import get_session
from bizledger.exceptions import AccessDeniedError
from bizledger.services.access_checker import AccessChecker, AccessDecision, AccessRequest
from bizledger.services.permissions import Action, Feature, Module
from bizledger.services.role_resolver import ImpersonationContext, RoleResolver


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency; commits when the request succeeds."""
    async with get_session() as session:
        yield session


def _parse_uuid(value: str, header: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None
) -> UUID | None:
    """Verified user identity supplied by the authentication layer.

    A missing or malformed header means the caller is not authenticated.
    """
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        return None


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentUserId = Annotated[UUID | None, Depends(get_current_user_id)]


async def get_impersonation(
    db: DbSession,
    user_id: CurrentUserId,
    x_impersonate_organization: Annotated[str | None, Header()] = None,
) -> ImpersonationContext | None:
    """Impersonation context for a super-admin acting inside an organization."""
    if not x_impersonate_organization or user_id is None:
        return None
    organization_id = _parse_uuid(x_impersonate_organization, "X-Impersonate-Organization")
    return await RoleResolver(db).start_impersonation(user_id, organization_id)


Impersonation = Annotated[ImpersonationContext | None, Depends(get_impersonation)]


def require_access(
    module: Module,
    action: Action,
    feature: Feature | None = None,
) -> Callable[..., Awaitable[AccessDecision]]:
    """Dependency factory: deny the request unless the caller may act on ``module``."""

    async def check(
        db: DbSession,
        user_id: CurrentUserId,
        impersonation: Impersonation,
        organization_id: Annotated[UUID, Path()],
    ) -> AccessDecision:
        decision = await AccessChecker(db).check_access(
            AccessRequest(
                user_id=user_id,
                organization_id=organization_id,
                module=module,
                action=action,
                feature=feature,
                impersonation=impersonation,
            )
        )
        if not decision.grants_organization_access:
            raise AccessDeniedError(decision.kind.value, decision.message)
        return decision

    return check


def get_app_settings() -> Settings:
    return get_settings()


AppSettings = Annotated[Settings, Depends(get_app_settings)]
