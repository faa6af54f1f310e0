"""Salary record API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status

from bizledger.api.dependencies import AppSettings, CurrentUserId, DbSession, require_access
from bizledger.api.schemas import (
    ErrorResponse,
    MarkPaidRequest,
    SalaryGenerate,
    SalaryRecordListResponse,
    SalaryRecordResponse,
    SalaryUpdate,
)
from bizledger.services.access_checker import AccessDecision
from bizledger.services.permissions import Action, Module
from bizledger.services.salary_service import SalaryService
from bizledger.services.state_machine import SalaryStatus

router = APIRouter(prefix="/organizations/{organization_id}/salaries", tags=["salaries"])

CanView = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.VIEW))]
CanCreate = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.CREATE))]
CanEdit = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.EDIT))]
CanDelete = Annotated[AccessDecision, Depends(require_access(Module.SALARY, Action.DELETE))]


@router.get(
    "",
    response_model=SalaryRecordListResponse,
    responses={403: {"model": ErrorResponse}},
)
async def list_salaries(
    db: DbSession,
    settings: AppSettings,
    access: CanView,
    organization_id: Annotated[UUID, Path()],
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: Annotated[int | None, Query()] = None,
    employee_id: UUID | None = None,
    status_filter: Annotated[SalaryStatus | None, Query(alias="status")] = None,
) -> SalaryRecordListResponse:
    """List salary records for an organization with optional filters."""
    records = await SalaryService(db, settings=settings).list_salaries(
        organization_id,
        month=month,
        year=year,
        employee_id=employee_id,
        status=status_filter,
    )
    return SalaryRecordListResponse(
        items=[SalaryRecordResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.post(
    "",
    response_model=SalaryRecordResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def generate_salary(
    db: DbSession,
    settings: AppSettings,
    access: CanCreate,
    user_id: CurrentUserId,
    organization_id: Annotated[UUID, Path()],
    payload: SalaryGenerate,
) -> SalaryRecordResponse:
    """Generate a pending salary record, deducting the month's advances."""
    record = await SalaryService(db, settings=settings).generate_salary(
        payload.employee_id,
        payload.month,
        payload.year,
        basic_salary=payload.basic_salary,
        bonus=payload.bonus,
        deductions=payload.deductions,
        notes=payload.notes,
        organization_id=organization_id,
        actor_user_id=user_id,
    )
    return SalaryRecordResponse.model_validate(record)


@router.get(
    "/{salary_record_id}",
    response_model=SalaryRecordResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_salary(
    db: DbSession,
    settings: AppSettings,
    access: CanView,
    organization_id: Annotated[UUID, Path()],
    salary_record_id: Annotated[UUID, Path()],
) -> SalaryRecordResponse:
    """Get a salary record by ID."""
    record = await SalaryService(db, settings=settings).get_salary(
        salary_record_id, organization_id
    )
    return SalaryRecordResponse.model_validate(record)


@router.patch(
    "/{salary_record_id}",
    response_model=SalaryRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def edit_salary(
    db: DbSession,
    settings: AppSettings,
    access: CanEdit,
    user_id: CurrentUserId,
    organization_id: Annotated[UUID, Path()],
    salary_record_id: Annotated[UUID, Path()],
    payload: SalaryUpdate,
) -> SalaryRecordResponse:
    """Edit a pending salary record. The deducted advance amount is fixed."""
    record = await SalaryService(db, settings=settings).edit_salary(
        salary_record_id,
        basic_salary=payload.basic_salary,
        bonus=payload.bonus,
        deductions=payload.deductions,
        notes=payload.notes,
        organization_id=organization_id,
        actor_user_id=user_id,
    )
    return SalaryRecordResponse.model_validate(record)


@router.delete(
    "/{salary_record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_salary(
    db: DbSession,
    settings: AppSettings,
    access: CanDelete,
    user_id: CurrentUserId,
    organization_id: Annotated[UUID, Path()],
    salary_record_id: Annotated[UUID, Path()],
) -> None:
    """Delete a pending salary record, restoring the advances it consumed."""
    await SalaryService(db, settings=settings).delete_salary(
        salary_record_id,
        organization_id=organization_id,
        actor_user_id=user_id,
    )


@router.post(
    "/{salary_record_id}/pay",
    response_model=SalaryRecordResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_paid(
    db: DbSession,
    settings: AppSettings,
    access: CanEdit,
    user_id: CurrentUserId,
    organization_id: Annotated[UUID, Path()],
    salary_record_id: Annotated[UUID, Path()],
    payload: MarkPaidRequest | None = None,
) -> SalaryRecordResponse:
    """Mark a pending salary record as paid."""
    record = await SalaryService(db, settings=settings).mark_paid(
        salary_record_id,
        paid_date=payload.paid_date if payload else None,
        organization_id=organization_id,
        actor_user_id=user_id,
    )
    return SalaryRecordResponse.model_validate(record)
