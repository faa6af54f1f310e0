"""Access checks combining role, subscription and plan.

check_access evaluates, in order and stopping at the first denial:

1. authentication
2. system role (super-admin outside impersonation is system-level only)
3. organization membership
4. subscription status (expired subscriptions are read-only)
5. plan feature
6. module/action permission
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizledger.models import Subscription
from bizledger.services.audit_service import AuditService
from bizledger.services.permissions import (
    Action,
    Feature,
    Module,
    OrgRole,
    Plan,
    allowed_roles,
    minimum_plan_for_feature,
    plan_has_feature,
)
from bizledger.services.role_resolver import ImpersonationContext, RoleResolver


class DecisionKind(str, Enum):
    """Access decision outcomes."""

    ALLOWED = "allowed"
    DENIED_UNAUTHENTICATED = "denied_unauthenticated"
    DENIED_NOT_A_MEMBER = "denied_not_a_member"
    DENIED_BY_ROLE = "denied_by_role"
    DENIED_BY_PLAN = "denied_by_plan"
    DENIED_SUBSCRIPTION_EXPIRED = "denied_subscription_expired"


@dataclass(frozen=True)
class AccessRequest:
    """A single authorization question."""

    user_id: UUID | None
    organization_id: UUID | None
    module: Module | None = None
    action: Action = Action.VIEW
    feature: Feature | None = None
    impersonation: ImpersonationContext | None = None


@dataclass(frozen=True)
class AccessDecision:
    """Allow/deny decision with a typed reason."""

    kind: DecisionKind
    message: str
    module: Module | None = None
    action: Action | None = None
    required_roles: frozenset[OrgRole] = frozenset()
    feature: Feature | None = None
    minimum_plan: Plan | None = None
    org_role: OrgRole | None = None
    plan: Plan | None = None
    is_super_admin: bool = False
    is_impersonating: bool = False
    system_level_only: bool = False

    @property
    def allowed(self) -> bool:
        return self.kind == DecisionKind.ALLOWED

    @property
    def grants_organization_access(self) -> bool:
        """Allowed for organization business operations, not just system ones."""
        return self.allowed and not self.system_level_only and self.org_role is not None


class AccessChecker:
    """Single entry point for server-side authorization."""

    def __init__(
        self,
        session: AsyncSession,
        audit: AuditService | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session = session
        self.role_resolver = RoleResolver(session, audit)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_subscription(self, organization_id: UUID) -> Subscription | None:
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.organization_id == organization_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def check_access(self, request: AccessRequest) -> AccessDecision:
        """Evaluate ``request`` against fresh role and subscription state."""
        if request.user_id is None:
            return AccessDecision(
                kind=DecisionKind.DENIED_UNAUTHENTICATED,
                message="You must be signed in.",
            )

        resolution = await self.role_resolver.resolve_role(
            request.user_id,
            request.organization_id,
            request.impersonation,
        )

        if resolution.is_super_admin and not resolution.is_impersonating:
            if request.module is None and request.feature is None:
                return AccessDecision(
                    kind=DecisionKind.ALLOWED,
                    message="Super admin access (system level only).",
                    is_super_admin=True,
                    system_level_only=True,
                )
            return AccessDecision(
                kind=DecisionKind.DENIED_NOT_A_MEMBER,
                message="Super admins must impersonate an organization to act within it.",
                module=request.module,
                action=request.action,
                is_super_admin=True,
            )

        org_role = resolution.effective_role
        organization_id = resolution.organization_id
        if org_role is None or organization_id is None:
            return AccessDecision(
                kind=DecisionKind.DENIED_NOT_A_MEMBER,
                message="You are not a member of this organization.",
                module=request.module,
                action=request.action,
            )

        subscription = await self.get_subscription(organization_id)
        plan = Plan(subscription.plan) if subscription else Plan.FREE
        is_active = subscription is not None and subscription.is_active(self.clock())

        if not is_active and request.action != Action.VIEW:
            return AccessDecision(
                kind=DecisionKind.DENIED_SUBSCRIPTION_EXPIRED,
                message="Your subscription has expired. Please renew to continue.",
                module=request.module,
                action=request.action,
                org_role=org_role,
                plan=plan,
                is_impersonating=resolution.is_impersonating,
            )

        if request.feature is not None and not plan_has_feature(plan, request.feature):
            minimum = minimum_plan_for_feature(request.feature)
            return AccessDecision(
                kind=DecisionKind.DENIED_BY_PLAN,
                message=f"This feature requires the {minimum.value} plan or higher.",
                feature=request.feature,
                minimum_plan=minimum,
                org_role=org_role,
                plan=plan,
                is_impersonating=resolution.is_impersonating,
            )

        if request.module is not None:
            required = allowed_roles(request.module, request.action)
            if org_role not in required:
                return AccessDecision(
                    kind=DecisionKind.DENIED_BY_ROLE,
                    message=(
                        f"You don't have permission to {request.action.value} "
                        f"{request.module.value.replace('_', ' ')}."
                    ),
                    module=request.module,
                    action=request.action,
                    required_roles=required,
                    org_role=org_role,
                    plan=plan,
                    is_impersonating=resolution.is_impersonating,
                )

        return AccessDecision(
            kind=DecisionKind.ALLOWED,
            message="Access granted.",
            module=request.module,
            action=request.action,
            feature=request.feature,
            org_role=org_role,
            plan=plan,
            is_super_admin=resolution.is_super_admin,
            is_impersonating=resolution.is_impersonating,
        )
