"""Tenant, membership and subscription models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bizledger.models.base import Base, TimestampMixin, UpdatedAtMixin

if TYPE_CHECKING:
    from bizledger.models.employee import Employee


class UserRole(Base, TimestampMixin):
    """Platform-level (system) role assignment.

    Users without a row here have no system role.
    """

    __tablename__ = "user_role"

    user_role_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", name="user_role_user_unique"),
        CheckConstraint("role IN ('super_admin')", name="user_role_role_check"),
    )


class Organization(Base, TimestampMixin):
    """Tenant organization."""

    __tablename__ = "organization"

    organization_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[UUID] = mapped_column(nullable=False)

    # Relationships
    members: Mapped[list[OrganizationMember]] = relationship(back_populates="organization")
    subscription: Mapped[Subscription | None] = relationship(back_populates="organization")
    employees: Mapped[list[Employee]] = relationship(back_populates="organization")


class OrganizationMember(Base, TimestampMixin):
    """Membership of a user in an organization.

    The only source of truth for a user's organization role.
    """

    __tablename__ = "organization_member"

    organization_member_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="organization_member_user_org_unique"),
        CheckConstraint(
            "role IN ('owner', 'manager', 'accounts', 'staff')",
            name="organization_member_role_check",
        ),
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="members")


class Subscription(Base, TimestampMixin, UpdatedAtMixin):
    """Subscription plan and status of an organization."""

    __tablename__ = "subscription"

    subscription_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organization.organization_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    plan: Mapped[str] = mapped_column(String, nullable=False, default="free")
    status: Mapped[str] = mapped_column(String, nullable=False, default="trial")
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "plan IN ('free', 'basic', 'pro', 'enterprise')",
            name="subscription_plan_check",
        ),
        CheckConstraint(
            "status IN ('trial', 'active', 'expired')",
            name="subscription_status_check",
        ),
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="subscription")

    def is_active(self, now: datetime) -> bool:
        """Active subscription, or a trial that has not yet ended."""
        if self.status == "active":
            return True
        if self.status != "trial" or self.trial_ends_at is None:
            return False
        ends_at = self.trial_ends_at
        if ends_at.tzinfo is None:
            # SQLite drops the offset; stored values are UTC
            ends_at = ends_at.replace(tzinfo=timezone.utc)
        return ends_at > now
