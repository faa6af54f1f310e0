"""Salary advance API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from bizledger.api.dependencies import AppSettings, CurrentUserId, DbSession, require_access
from bizledger.api.schemas import (
    AdvanceCreate,
    AdvanceListResponse,
    AdvanceResponse,
    AdvanceUpdate,
    ErrorResponse,
)
from bizledger.services.access_checker import AccessDecision
from bizledger.services.advance_ledger import AdvanceLedger
from bizledger.services.permissions import Action, Module
from bizledger.services.salary_service import SalaryService
from bizledger.services.state_machine import AdvanceStatus

router = APIRouter(prefix="/organizations/{organization_id}/advances", tags=["advances"])

CanView = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.VIEW))]
CanCreate = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.CREATE))]
CanEdit = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.EDIT))]
CanDelete = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.DELETE))]


@router.get(
    "",
    response_model=AdvanceListResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_advances(
    db: DbSession,
    access: CanView,
    organization_id: Annotated[UUID, Path()],
    employee_id: UUID | None = None,
    status_filter: Annotated[AdvanceStatus | None, Query(alias="status")] = None,
) -> AdvanceListResponse:
    """List salary advances for an organization."""
    advances = await AdvanceLedger(db).list_advances(
        organization_id, employee_id=employee_id, status=status_filter
    )
    return AdvanceListResponse(
        items=[AdvanceResponse.model_validate(a) for a in advances],
        total=len(advances),
    )


@router.post(
    "",
    response_model=AdvanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_advance(
    db: DbSession,
    access: CanCreate,
    user_id: CurrentUserId,
    organization_id: Annotated[UUID, Path()],
    payload: AdvanceCreate,
) -> AdvanceResponse:
    """Record a salary advance to be deducted from ``deduct_month``."""
    advance = await AdvanceLedger(db).create_advance(
        payload.employee_id,
        payload.amount,
        payload.deduct_month,
        reason=payload.reason,
        advance_date=payload.advance_date,
        organization_id=organization_id,
        actor_user_id=user_id,
    )
    return AdvanceResponse.model_validate(advance)


@router.patch(
    "/{advance_id}",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def edit_advance(
    db: DbSession,
    settings: AppSettings,
    access: CanEdit,
    user_id: CurrentUserId,
    organization_id: Annotated[UUID, Path()],
    advance_id: Annotated[UUID, Path()],
    payload: AdvanceUpdate,
) -> AdvanceResponse:
    """Edit an advance; a paid salary that consumed it blocks the edit."""
    advance = await SalaryService(db, settings=settings).edit_advance(
        advance_id,
        amount=payload.amount,
        deduct_month=payload.deduct_month,
        reason=payload.reason,
        organization_id=organization_id,
        actor_user_id=user_id,
    )
    return AdvanceResponse.model_validate(advance)


@router.delete(
    "/{advance_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_advance(
    db: DbSession,
    settings: AppSettings,
    access: CanDelete,
    user_id: CurrentUserId,
    organization_id: Annotated[UUID, Path()],
    advance_id: Annotated[UUID, Path()],
) -> None:
    """Delete an advance; a paid salary that consumed it blocks the delete."""
    await SalaryService(db, settings=settings).delete_advance(
        advance_id,
        organization_id=organization_id,
        actor_user_id=user_id,
    )
