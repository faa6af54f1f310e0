"""Static permission matrix and plan feature tables.

Server-side enforcement reads only these tables. Keys are enums so a
misspelled module or action fails at import time instead of silently
denying (or granting) access.
"""

from __future__ import annotations

from enum import Enum


class SystemRole(str, Enum):
    """Platform-wide roles."""

    SUPER_ADMIN = "super_admin"


class OrgRole(str, Enum):
    """Roles within one organization."""

    OWNER = "owner"
    MANAGER = "manager"
    ACCOUNTS = "accounts"
    STAFF = "staff"


class Module(str, Enum):
    """Business modules gated by the permission matrix."""

    DASHBOARD = "dashboard"
    INVOICES = "invoices"
    PAYMENTS = "payments"
    QUOTATIONS = "quotations"
    DELIVERY_CHALLANS = "delivery_challans"
    CUSTOMERS = "customers"
    VENDORS = "vendors"
    EXPENSES = "expenses"
    EMPLOYEES = "employees"
    ATTENDANCE = "attendance"
    SALARY = "salary"
    LEAVE = "leave"
    TASKS = "tasks"
    REPORTS = "reports"
    ANALYTICS = "analytics"
    TEAM_MEMBERS = "team_members"
    SETTINGS = "settings"
    BILLING = "billing"


class Action(str, Enum):
    """Operations on a module."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"


class Plan(str, Enum):
    """Subscription plans, cheapest first."""

    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Feature(str, Enum):
    """Features gated by subscription plan."""

    MULTI_USER = "multi_user"
    TEAM_MANAGEMENT = "team_management"
    NOTIFICATIONS = "notifications"
    DELIVERY_CHALLANS = "delivery_challans"
    EXPORT_DATA = "export_data"
    REPORTS = "reports"
    ANALYTICS = "analytics"
    AUDIT_LOGS = "audit_logs"
    ADVANCED_INVOICING = "advanced_invoicing"
    BULK_OPERATIONS = "bulk_operations"
    PRIORITY_SUPPORT = "priority_support"
    API_ACCESS = "api_access"
    CUSTOM_BRANDING = "custom_branding"
    WHITE_LABEL = "white_label"


ORG_ROLE_HIERARCHY: dict[OrgRole, int] = {
    OrgRole.OWNER: 100,
    OrgRole.MANAGER: 75,
    OrgRole.ACCOUNTS: 50,
    OrgRole.STAFF: 25,
}

PLAN_ORDER: tuple[Plan, ...] = (Plan.FREE, Plan.BASIC, Plan.PRO, Plan.ENTERPRISE)

_O, _M, _A, _S = OrgRole.OWNER, OrgRole.MANAGER, OrgRole.ACCOUNTS, OrgRole.STAFF


def _roles(*roles: OrgRole) -> frozenset[OrgRole]:
    return frozenset(roles)


PERMISSION_MATRIX: dict[Module, dict[Action, frozenset[OrgRole]]] = {
    Module.DASHBOARD: {
        Action.VIEW: _roles(_O, _M, _A, _S),
    },
    Module.INVOICES: {
        Action.VIEW: _roles(_O, _M, _A, _S),
        Action.CREATE: _roles(_O, _M, _A, _S),
        Action.EDIT: _roles(_O, _M, _A, _S),
        Action.DELETE: _roles(_O, _M),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.PAYMENTS: {
        Action.VIEW: _roles(_O, _M, _A, _S),
        Action.CREATE: _roles(_O, _M, _A),
        Action.EDIT: _roles(_O, _M, _A),
        Action.DELETE: _roles(_O, _M),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.QUOTATIONS: {
        Action.VIEW: _roles(_O, _M, _S),
        Action.CREATE: _roles(_O, _M, _S),
        Action.EDIT: _roles(_O, _M, _S),
        Action.DELETE: _roles(_O, _M),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.DELIVERY_CHALLANS: {
        Action.VIEW: _roles(_O, _M, _A, _S),
        Action.CREATE: _roles(_O, _M, _S),
        Action.EDIT: _roles(_O, _M, _S),
        Action.DELETE: _roles(_O, _M),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.CUSTOMERS: {
        Action.VIEW: _roles(_O, _M, _A, _S),
        Action.CREATE: _roles(_O, _M, _S),
        Action.EDIT: _roles(_O, _M, _S),
        Action.DELETE: _roles(_O, _M),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.VENDORS: {
        Action.VIEW: _roles(_O, _M, _A),
        Action.CREATE: _roles(_O, _M, _A),
        Action.EDIT: _roles(_O, _M),
        Action.DELETE: _roles(_O),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.EXPENSES: {
        Action.VIEW: _roles(_O, _M, _A),
        Action.CREATE: _roles(_O, _M, _A),
        Action.EDIT: _roles(_O, _M),
        Action.DELETE: _roles(_O),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.EMPLOYEES: {
        Action.VIEW: _roles(_O, _M, _A),
        Action.CREATE: _roles(_O, _M),
        Action.EDIT: _roles(_O, _M),
        Action.DELETE: _roles(_O),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.ATTENDANCE: {
        Action.VIEW: _roles(_O, _M, _A, _S),
        Action.CREATE: _roles(_O, _M),
        Action.EDIT: _roles(_O, _M),
        Action.DELETE: _roles(_O),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.SALARY: {
        Action.VIEW: _roles(_O, _A),
        Action.CREATE: _roles(_O),
        Action.EDIT: _roles(_O),
        Action.DELETE: _roles(_O),
        Action.EXPORT: _roles(_O),
    },
    Module.LEAVE: {
        Action.VIEW: _roles(_O, _M, _A, _S),
        Action.CREATE: _roles(_O, _M, _A, _S),
        Action.EDIT: _roles(_O, _M),
        Action.DELETE: _roles(_O),
    },
    Module.TASKS: {
        Action.VIEW: _roles(_O, _M, _A, _S),
        Action.CREATE: _roles(_O, _M, _A, _S),
        Action.EDIT: _roles(_O, _M, _A, _S),
        Action.DELETE: _roles(_O, _M),
        Action.EXPORT: _roles(_O),
    },
    Module.REPORTS: {
        Action.VIEW: _roles(_O, _M),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.ANALYTICS: {
        Action.VIEW: _roles(_O, _M),
        Action.EXPORT: _roles(_O, _M),
    },
    Module.TEAM_MEMBERS: {
        Action.VIEW: _roles(_O, _M),
        Action.CREATE: _roles(_O),
        Action.EDIT: _roles(_O),
        Action.DELETE: _roles(_O),
    },
    Module.SETTINGS: {
        Action.VIEW: _roles(_O, _M),
        Action.EDIT: _roles(_O),
    },
    Module.BILLING: {
        Action.VIEW: _roles(_O),
        Action.EDIT: _roles(_O),
    },
}

_FREE_FEATURES = frozenset(
    {
        Feature.MULTI_USER,
        Feature.TEAM_MANAGEMENT,
        Feature.NOTIFICATIONS,
        Feature.DELIVERY_CHALLANS,
        Feature.EXPORT_DATA,
    }
)
_BASIC_FEATURES = _FREE_FEATURES | {Feature.REPORTS}
_PRO_FEATURES = _BASIC_FEATURES | {
    Feature.ANALYTICS,
    Feature.AUDIT_LOGS,
    Feature.ADVANCED_INVOICING,
    Feature.BULK_OPERATIONS,
    Feature.PRIORITY_SUPPORT,
}
_ENTERPRISE_FEATURES = _PRO_FEATURES | {
    Feature.API_ACCESS,
    Feature.CUSTOM_BRANDING,
    Feature.WHITE_LABEL,
}

PLAN_FEATURES: dict[Plan, frozenset[Feature]] = {
    Plan.FREE: _FREE_FEATURES,
    Plan.BASIC: _BASIC_FEATURES,
    Plan.PRO: _PRO_FEATURES,
    Plan.ENTERPRISE: _ENTERPRISE_FEATURES,
}


def allowed_roles(module: Module, action: Action) -> frozenset[OrgRole]:
    """Roles allowed to perform ``action`` on ``module`` (empty if none)."""
    return PERMISSION_MATRIX.get(module, {}).get(action, frozenset())


def role_can_perform(role: OrgRole | None, module: Module, action: Action) -> bool:
    """Check a role against the matrix. ``None`` (no role) is never allowed."""
    if role is None:
        return False
    return role in allowed_roles(module, action)


def is_role_at_least(role: OrgRole | None, minimum: OrgRole) -> bool:
    """Check if role is at least ``minimum`` in the role hierarchy."""
    if role is None:
        return False
    return ORG_ROLE_HIERARCHY[role] >= ORG_ROLE_HIERARCHY[minimum]


def plan_has_feature(plan: Plan, feature: Feature) -> bool:
    return feature in PLAN_FEATURES[plan]


def minimum_plan_for_feature(feature: Feature) -> Plan:
    """Cheapest plan that includes ``feature``."""
    for plan in PLAN_ORDER:
        if feature in PLAN_FEATURES[plan]:
            return plan
    return Plan.ENTERPRISE


def is_plan_at_least(plan: Plan | None, minimum: Plan) -> bool:
    if plan is None:
        return False
    return PLAN_ORDER.index(plan) >= PLAN_ORDER.index(minimum)
