"""Tests for audit event recording."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from bizledger.models import AuditEvent
from bizledger.services.audit_service import AuditService
from bizledger.services.permissions import OrgRole

pytestmark = pytest.mark.asyncio


class TestAuditService:
    async def test_record_stores_jsonable_details(self, session):
        entity_id = uuid4()

        await AuditService(session).record(
            action="salary_generated",
            entity_type="salary_record",
            entity_id=entity_id,
            details={"amount": Decimal("12.50"), "ids": [entity_id], "role": OrgRole.OWNER},
        )

        event = (await session.execute(select(AuditEvent))).scalar_one()
        assert event.entity_id == entity_id
        assert event.severity == "info"
        assert event.details_json == {
            "amount": "12.50",
            "ids": [str(entity_id)],
            "role": "owner",
        }

    async def test_warn_sets_severity(self, session, caplog):
        await AuditService(session).warn(action="owner_mismatch", entity_type="organization")

        event = (await session.execute(select(AuditEvent))).scalar_one()
        assert event.severity == "warning"
        assert "owner_mismatch" in caplog.text
