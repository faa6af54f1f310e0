"""bizledger services."""

from bizledger.services.access_checker import (
    AccessChecker,
    AccessDecision,
    AccessRequest,
    DecisionKind,
)
from bizledger.services.advance_ledger import AdvanceLedger
from bizledger.services.audit_service import AuditService
from bizledger.services.role_resolver import ImpersonationContext, RoleResolution, RoleResolver
from bizledger.services.salary_service import SalaryService
from bizledger.services.state_machine import AdvanceStatus, SalaryStateMachine, SalaryStatus

__all__ = [
    "AccessChecker",
    "AccessDecision",
    "AccessRequest",
    "AdvanceLedger",
    "AdvanceStatus",
    "AuditService",
    "DecisionKind",
    "ImpersonationContext",
    "RoleResolution",
    "RoleResolver",
    "SalaryService",
    "SalaryStateMachine",
    "SalaryStatus",
]
