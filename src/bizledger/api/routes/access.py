"""Role resolution and access check endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from bizledger.api.dependencies import CurrentUserId, DbSession, Impersonation
from bizledger.api.schemas import (
    AccessCheckRequest,
    AccessDecisionResponse,
    ErrorResponse,
    RoleResolutionResponse,
)
from bizledger.exceptions import AccessDeniedError
from bizledger.services.access_checker import AccessChecker, AccessDecision, AccessRequest
from bizledger.services.role_resolver import RoleResolver

router = APIRouter(tags=["access"])


def _decision_response(decision: AccessDecision) -> AccessDecisionResponse:
    return AccessDecisionResponse(
        kind=decision.kind.value,
        allowed=decision.allowed,
        message=decision.message,
        module=decision.module,
        action=decision.action,
        required_roles=sorted(decision.required_roles, key=lambda r: r.value),
        feature=decision.feature,
        minimum_plan=decision.minimum_plan,
        org_role=decision.org_role,
        plan=decision.plan,
        is_super_admin=decision.is_super_admin,
        is_impersonating=decision.is_impersonating,
        system_level_only=decision.system_level_only,
    )


@router.get(
    "/roles/resolve",
    response_model=RoleResolutionResponse,
    responses={401: {"model": ErrorResponse}},
)
async def resolve_role(
    db: DbSession,
    user_id: CurrentUserId,
    impersonation: Impersonation,
    organization_id: Annotated[UUID | None, Query()] = None,
) -> RoleResolutionResponse:
    """Resolve the caller's system, organization and effective roles."""
    if user_id is None:
        raise AccessDeniedError("denied_unauthenticated", "You must be signed in.")

    resolution = await RoleResolver(db).resolve_role(user_id, organization_id, impersonation)
    return RoleResolutionResponse(
        user_id=resolution.user_id,
        system_role=resolution.system_role,
        org_role=resolution.org_role,
        effective_role=resolution.effective_role,
        organization_id=resolution.organization_id,
        is_impersonating=resolution.is_impersonating,
        is_super_admin=resolution.is_super_admin,
    )


@router.post(
    "/access/check",
    response_model=AccessDecisionResponse,
    status_code=status.HTTP_200_OK,
)
async def check_access(
    db: DbSession,
    user_id: CurrentUserId,
    impersonation: Impersonation,
    payload: AccessCheckRequest,
) -> AccessDecisionResponse:
    """Evaluate an access request; denials are returned, not raised."""
    decision = await AccessChecker(db).check_access(
        AccessRequest(
            user_id=user_id,
            organization_id=payload.organization_id,
            module=payload.module,
            action=payload.action,
            feature=payload.feature,
            impersonation=impersonation,
        )
    )
    return _decision_response(decision)
