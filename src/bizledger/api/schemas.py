"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from bizledger.services.permissions import Action, Feature, Module, OrgRole, Plan, SystemRole


# ============================================================================
# Access schemas
# ============================================================================


class RoleResolutionResponse(BaseModel):
    """Resolved roles of the calling user."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    system_role: SystemRole | None = None
    org_role: OrgRole | None = None
    effective_role: OrgRole | None = None
    organization_id: UUID | None = None
    is_impersonating: bool = False
    is_super_admin: bool = False


class AccessCheckRequest(BaseModel):
    """Schema for an access check."""

    organization_id: UUID | None = None
    module: Module | None = None
    action: Action = Action.VIEW
    feature: Feature | None = None


class AccessDecisionResponse(BaseModel):
    """Schema for an access decision."""

    kind: str
    allowed: bool
    message: str
    module: Module | None = None
    action: Action | None = None
    required_roles: list[OrgRole] = Field(default_factory=list)
    feature: Feature | None = None
    minimum_plan: Plan | None = None
    org_role: OrgRole | None = None
    plan: Plan | None = None
    is_super_admin: bool = False
    is_impersonating: bool = False
    system_level_only: bool = False


# ============================================================================
# Salary schemas
# ============================================================================


class AdvanceDeductionResponse(BaseModel):
    """One advance consumed by a salary record."""

    model_config = ConfigDict(from_attributes=True)

    advance_id: UUID
    amount_deducted: Decimal
    remaining_after: Decimal


class SalaryGenerate(BaseModel):
    """Schema for generating a monthly salary."""

    employee_id: UUID
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)
    basic_salary: Decimal | None = Field(default=None, ge=0)
    bonus: Decimal = Field(default=Decimal("0"), ge=0)
    deductions: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = None


class SalaryUpdate(BaseModel):
    """Schema for editing a pending salary record."""

    basic_salary: Decimal | None = Field(default=None, ge=0)
    bonus: Decimal | None = Field(default=None, ge=0)
    deductions: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class MarkPaidRequest(BaseModel):
    """Schema for marking a salary record paid."""

    paid_date: date | None = None


class SalaryRecordResponse(BaseModel):
    """Schema for salary record response."""

    model_config = ConfigDict(from_attributes=True)

    salary_record_id: UUID
    employee_id: UUID
    organization_id: UUID
    month: int
    year: int
    basic_salary: Decimal
    bonus: Decimal
    deductions: Decimal
    advance: Decimal
    net_payable: Decimal
    status: str
    paid_date: date | None = None
    notes: str | None = None
    advance_deducted_ids: list[UUID] = Field(default_factory=list)
    advance_deduction_details: list[AdvanceDeductionResponse] = Field(default_factory=list)
    created_at: datetime | None = None


class SalaryRecordListResponse(BaseModel):
    """Schema for listing salary records."""

    items: list[SalaryRecordResponse]
    total: int


# ============================================================================
# Advance schemas
# ============================================================================


class AdvanceCreate(BaseModel):
    """Schema for recording a salary advance."""

    employee_id: UUID
    amount: Decimal = Field(gt=0)
    deduct_month: str = Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    reason: str | None = None
    advance_date: date | None = None


class AdvanceUpdate(BaseModel):
    """Schema for editing a salary advance."""

    amount: Decimal | None = Field(default=None, gt=0)
    deduct_month: str | None = Field(default=None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    reason: str | None = None


class AdvanceResponse(BaseModel):
    """Schema for salary advance response."""

    model_config = ConfigDict(from_attributes=True)

    advance_id: UUID
    employee_id: UUID
    organization_id: UUID
    amount: Decimal
    remaining_balance: Decimal
    status: str
    deduct_month: str
    advance_date: date
    reason: str | None = None
    deducted_from_month: int | None = None
    deducted_from_year: int | None = None


class AdvanceListResponse(BaseModel):
    """Schema for listing salary advances."""

    items: list[AdvanceResponse]
    total: int


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Service status schemas
# ============================================================================


class ServiceStatusResponse(BaseModel):
    """Process and database status with the active reconciliation mode."""

    status: str
    database: str
    version: str
    reconciliation_mode: str
    checked_at: datetime
