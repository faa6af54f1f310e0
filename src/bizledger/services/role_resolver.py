"""Role resolution for users within organizations.

Roles are re-read from the database on every call. Nothing here is cached
between requests: a user removed from an organization loses access on the
very next request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizledger.exceptions import ImpersonationError
from bizledger.models import AuditEvent, Organization, OrganizationMember, UserRole
from bizledger.services.audit_service import AuditService
from bizledger.services.permissions import OrgRole, SystemRole

logger = logging.getLogger(__name__)

# Repeat requests for the same target within this window continue one impersonation
IMPERSONATION_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class ImpersonationContext:
    """Request-scoped owner override for a super-admin.

    Build it through RoleResolver.start_impersonation, which verifies the
    acting user. It is never stored as a membership row.
    """

    acting_super_admin_id: UUID
    target_organization_id: UUID
    target_owner_id: UUID


@dataclass(frozen=True)
class SyntheticMembership:
    """Owner-equivalent membership produced by impersonation."""

    organization_id: UUID
    user_id: UUID
    role: OrgRole = OrgRole.OWNER
    persistent: bool = False


@dataclass(frozen=True)
class RoleResolution:
    """Outcome of resolving a user's roles."""

    user_id: UUID
    system_role: SystemRole | None
    org_role: OrgRole | None
    effective_role: OrgRole | None
    organization_id: UUID | None
    is_impersonating: bool = False
    membership: OrganizationMember | SyntheticMembership | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.system_role == SystemRole.SUPER_ADMIN


class RoleResolver:
    """Resolves system, organization and effective roles."""

    def __init__(self, session: AsyncSession, audit: AuditService | None = None):
        self.session = session
        self.audit = audit or AuditService(session)

    async def get_system_role(self, user_id: UUID) -> SystemRole | None:
        result = await self.session.execute(
            select(UserRole.role).where(UserRole.user_id == user_id)
        )
        role = result.scalar_one_or_none()
        return SystemRole(role) if role else None

    async def get_membership(
        self, user_id: UUID, organization_id: UUID
    ) -> OrganizationMember | None:
        result = await self.session.execute(
            select(OrganizationMember).where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.organization_id == organization_id,
            ).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_organization(self, organization_id: UUID) -> Organization | None:
        result = await self.session.execute(
            select(Organization)
            .where(Organization.organization_id == organization_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def start_impersonation(
        self, user_id: UUID, organization_id: UUID
    ) -> ImpersonationContext:
        """Open an impersonation context for a verified super-admin."""
        if await self.get_system_role(user_id) != SystemRole.SUPER_ADMIN:
            raise ImpersonationError("Only super admins can impersonate an organization")

        organization = await self.get_organization(organization_id)
        if organization is None:
            raise ImpersonationError(
                f"Impersonation target organization {organization_id} not found"
            )

        if await self._impersonation_in_progress(user_id, organization_id):
            logger.debug(
                "Super admin %s continues impersonating %s", user_id, organization_id
            )
        else:
            await self.audit.record(
                action="impersonation_started",
                entity_type="organization",
                entity_id=organization_id,
                organization_id=organization_id,
                actor_user_id=user_id,
                details={"target_owner_id": organization.owner_id},
            )
        return ImpersonationContext(
            acting_super_admin_id=user_id,
            target_organization_id=organization_id,
            target_owner_id=organization.owner_id,
        )

    async def _impersonation_in_progress(self, user_id: UUID, organization_id: UUID) -> bool:
        cutoff = datetime.now(timezone.utc) - IMPERSONATION_WINDOW
        result = await self.session.execute(
            select(AuditEvent.audit_event_id)
            .where(
                AuditEvent.action == "impersonation_started",
                AuditEvent.actor_user_id == user_id,
                AuditEvent.organization_id == organization_id,
                AuditEvent.created_at >= cutoff,
            )
            .limit(1)
        )
        return result.first() is not None

    async def resolve_role(
        self,
        user_id: UUID,
        organization_id: UUID | None = None,
        impersonation: ImpersonationContext | None = None,
    ) -> RoleResolution:
        """Resolve the roles of ``user_id``, optionally within an organization."""
        system_role = await self.get_system_role(user_id)
        is_super_admin = system_role == SystemRole.SUPER_ADMIN

        if impersonation is not None and not self._impersonation_applies(
            user_id, is_super_admin, organization_id, impersonation
        ):
            impersonation = None

        if impersonation is not None:
            return await self._resolve_impersonation(user_id, system_role, impersonation)

        if organization_id is None:
            return RoleResolution(
                user_id=user_id,
                system_role=system_role,
                org_role=None,
                effective_role=None,
                organization_id=None,
            )

        if is_super_admin:
            # No implicit organization role without impersonation
            return RoleResolution(
                user_id=user_id,
                system_role=system_role,
                org_role=None,
                effective_role=None,
                organization_id=organization_id,
            )

        membership = await self.get_membership(user_id, organization_id)
        org_role = OrgRole(membership.role) if membership else None

        if org_role == OrgRole.OWNER:
            await self._check_owner_integrity(user_id, organization_id)

        return RoleResolution(
            user_id=user_id,
            system_role=system_role,
            org_role=org_role,
            effective_role=org_role,
            organization_id=organization_id,
            membership=membership,
        )

    def _impersonation_applies(
        self,
        user_id: UUID,
        is_super_admin: bool,
        organization_id: UUID | None,
        impersonation: ImpersonationContext,
    ) -> bool:
        if not is_super_admin or impersonation.acting_super_admin_id != user_id:
            logger.warning(
                "Ignoring impersonation context for user %s: not the verified super admin",
                user_id,
            )
            return False
        if organization_id is not None and organization_id != impersonation.target_organization_id:
            logger.warning(
                "Ignoring impersonation of %s for request on organization %s",
                impersonation.target_organization_id,
                organization_id,
            )
            return False
        return True

    async def _resolve_impersonation(
        self,
        user_id: UUID,
        system_role: SystemRole | None,
        impersonation: ImpersonationContext,
    ) -> RoleResolution:
        target_id = impersonation.target_organization_id
        if await self.get_organization(target_id) is None:
            raise ImpersonationError(f"Impersonation target organization {target_id} not found")

        return RoleResolution(
            user_id=user_id,
            system_role=system_role,
            org_role=OrgRole.OWNER,
            effective_role=OrgRole.OWNER,
            organization_id=target_id,
            is_impersonating=True,
            membership=SyntheticMembership(
                organization_id=target_id,
                user_id=impersonation.target_owner_id,
            ),
        )

    async def _check_owner_integrity(self, user_id: UUID, organization_id: UUID) -> None:
        """Warn when the owner membership disagrees with organization.owner_id.

        The membership table wins; the request is never blocked.
        """
        organization = await self.get_organization(organization_id)
        if organization is None or organization.owner_id == user_id:
            return

        await self.audit.warn(
            action="owner_mismatch",
            entity_type="organization",
            entity_id=organization_id,
            organization_id=organization_id,
            actor_user_id=user_id,
            details={"organization_owner_id": organization.owner_id, "membership_user_id": user_id},
        )
