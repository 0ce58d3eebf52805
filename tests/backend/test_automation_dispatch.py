"""
Tests for the automation dispatcher.

The session is mocked: ``session.get`` serves rules, customers, tenants and
logs from in-memory dicts.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from app.models.automation import AutomationLog, AutomationRule
from app.models.customer import Customer
from app.models.tenant import Tenant
from app.services.automation_dispatch import AutomationDispatcher
from packages.core.automation import ActionType, AutomationStatus

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


# -----------------------------
# Fixtures
# -----------------------------


class FakeDatabase:
    """Rows served through a mocked AsyncSession."""

    def __init__(self):
        self.rows = {AutomationLog: {}, AutomationRule: {}, Customer: {}, Tenant: {}}
        self.session = MagicMock()
        self.session.get = AsyncMock(side_effect=self._get)
        self.session.execute = AsyncMock(side_effect=self._execute)
        self.session.commit = AsyncMock()
        self.session.rollback = AsyncMock()

    async def _get(self, model, key):
        return self.rows[model].get(key)

    async def _execute(self, statement):
        result = MagicMock()
        result.all.return_value = [
            SimpleNamespace(
                id=log.id,
                rule_id=log.rule_id,
                customer_id=log.customer_id,
                tenant_id=log.tenant_id,
            )
            for log in self.rows[AutomationLog].values()
        ]
        return result

    def add(self, model, row):
        self.rows[model][row.id] = row
        return row


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def tenant(db):
    return db.add(
        Tenant,
        SimpleNamespace(
            id=uuid4(), name="Salon", display_name="Salon M", slug="salon-m", review_url=None
        ),
    )


@pytest.fixture
def rule(db, tenant):
    return db.add(
        AutomationRule,
        SimpleNamespace(
            id=uuid4(),
            tenant_id=tenant.id,
            action_type=ActionType.SEND_REVIEW_REQUEST,
            subject=None,
            body=None,
            coupon_code=None,
            coupon_title=None,
            is_active=True,
        ),
    )


def add_customer(db, tenant, email="jane@example.com"):
    return db.add(Customer, SimpleNamespace(id=uuid4(), tenant_id=tenant.id, name="Jane", email=email))


def add_log(db, rule, customer):
    return db.add(
        AutomationLog,
        SimpleNamespace(
            id=uuid4(),
            rule_id=rule.id,
            customer_id=customer.id,
            tenant_id=rule.tenant_id,
            status=AutomationStatus.PENDING,
            sent_at=None,
            error=None,
        ),
    )


def make_sender(message_id="msg_1"):
    sender = MagicMock()
    sender.send = AsyncMock(return_value=message_id)
    return sender


async def dispatch(db, sender):
    dispatcher = AutomationDispatcher(db.session, sender, app_url="https://folio.test/")
    return await dispatcher.process_due(NOW, 50)


# -----------------------------
# Dispatch Tests
# -----------------------------


class TestDispatcher:
    """Tests for AutomationDispatcher.process_due."""

    async def test_sends_review_request(self, db, tenant, rule) -> None:
        customer = add_customer(db, tenant)
        log = add_log(db, rule, customer)
        sender = make_sender()

        summary = await dispatch(db, sender)

        assert summary.to_dict() == {"processed": 1, "sent": 1, "failed": 0, "skipped": 0}
        assert log.status == AutomationStatus.SENT
        assert log.sent_at == NOW
        to, subject, html = sender.send.await_args.args
        assert to == "jane@example.com"
        assert subject == "Salon M - We'd love your review"
        assert "https://folio.test/salon-m" in html

    async def test_customer_without_email_is_skipped(self, db, tenant, rule) -> None:
        log = add_log(db, rule, add_customer(db, tenant, email=None))
        sender = make_sender()

        summary = await dispatch(db, sender)

        assert summary.skipped == 1
        assert log.status == AutomationStatus.SKIPPED
        sender.send.assert_not_called()

    async def test_inactive_rule_is_skipped(self, db, tenant, rule) -> None:
        rule.is_active = False
        log = add_log(db, rule, add_customer(db, tenant))

        summary = await dispatch(db, make_sender())

        assert summary.skipped == 1
        assert log.status == AutomationStatus.SKIPPED

    async def test_delivery_failure_marks_failed(self, db, tenant, rule) -> None:
        log = add_log(db, rule, add_customer(db, tenant))

        summary = await dispatch(db, make_sender(None))

        assert summary.failed == 1
        assert log.status == AutomationStatus.FAILED
        assert log.error == "Email delivery failed"

    async def test_one_failure_does_not_stop_the_batch(self, db, tenant, rule) -> None:
        first = add_log(db, rule, add_customer(db, tenant))
        second = add_log(db, rule, add_customer(db, tenant))
        sender = make_sender()
        sender.send.side_effect = [RuntimeError("boom"), "msg_2"]

        summary = await dispatch(db, sender)

        assert summary.to_dict() == {"processed": 2, "sent": 1, "failed": 1, "skipped": 0}
        assert first.status == AutomationStatus.FAILED
        assert first.error == "boom"
        assert second.status == AutomationStatus.SENT
        db.session.rollback.assert_awaited_once()

    async def test_business_info_is_loaded_once_per_tenant(self, db, tenant, rule) -> None:
        add_log(db, rule, add_customer(db, tenant))
        add_log(db, rule, add_customer(db, tenant))

        await dispatch(db, make_sender())

        tenant_lookups = [c for c in db.session.get.await_args_list if c.args[0] is Tenant]
        assert len(tenant_lookups) == 1

    async def test_nothing_due(self, db) -> None:
        summary = await dispatch(db, make_sender())

        assert summary.processed == 0
        db.session.commit.assert_not_called()

    async def test_failure_bookkeeping_error_does_not_stop_the_batch(self, db, tenant, rule) -> None:
        """A commit that fails while recording a failure leaves the batch running."""
        add_log(db, rule, add_customer(db, tenant))
        second = add_log(db, rule, add_customer(db, tenant))
        sender = make_sender()
        sender.send.side_effect = [RuntimeError("boom"), "msg_2"]
        db.session.commit.side_effect = [OperationalError("COMMIT", {}, Exception("gone")), None]

        summary = await dispatch(db, sender)

        assert summary.to_dict() == {"processed": 2, "sent": 1, "failed": 1, "skipped": 0}
        assert second.status == AutomationStatus.SENT
        assert db.session.rollback.await_count == 2
