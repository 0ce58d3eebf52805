"""Tests for the automation API routes."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.api.automations import routes as automation_routes
from app.models.automation import AutomationRule
from app.services import automation_service
from app.services.automation_dispatch import DispatchSummary
from packages.core.automation import ActionType


# -----------------------------
# Fixtures
# -----------------------------


@pytest.fixture
def rule(tenant_id) -> AutomationRule:
    return AutomationRule(
        id=uuid4(),
        tenant_id=tenant_id,
        name="Thank-you email",
        trigger_type="after_booking",
        action_type=ActionType.SEND_EMAIL,
        delay_hours=24,
        subject="Thanks {{customer_name}}",
        body="See you soon",
        is_active=True,
    )


# -----------------------------
# Rule Tests
# -----------------------------


class TestRules:
    """Tests for listing and creating rules."""

    def test_list_with_stats(self, client, rule, monkeypatch) -> None:
        monkeypatch.setattr(
            automation_service, "list_rules_with_stats", AsyncMock(return_value=[(rule, 5, 2)])
        )

        response = client.get("/api/automations")

        assert response.status_code == 200
        [item] = response.json()["rules"]
        assert item["name"] == "Thank-you email"
        assert item["action_type"] == "send_email"
        assert item["sent_count"] == 5
        assert item["pending_count"] == 2

    def test_create(self, client, rule, tenant_id, monkeypatch) -> None:
        create = AsyncMock(return_value=rule)
        monkeypatch.setattr(automation_service, "create_rule", create)

        response = client.post(
            "/api/automations",
            json={
                "name": "Thank-you email",
                "trigger_type": "after_booking",
                "action_type": "send_email",
                "delay_hours": 24,
            },
        )

        assert response.status_code == 201
        assert response.json()["sent_count"] == 0
        assert create.await_args.args[1] == tenant_id

    def test_create_rejects_unknown_trigger(self, client) -> None:
        response = client.post(
            "/api/automations",
            json={"name": "x", "trigger_type": "after_lunch", "action_type": "send_email"},
        )

        assert response.status_code == 422

    def test_create_rejects_negative_delay(self, client) -> None:
        response = client.post(
            "/api/automations",
            json={
                "name": "x",
                "trigger_type": "after_booking",
                "action_type": "send_email",
                "delay_hours": -1,
            },
        )

        assert response.status_code == 422


# -----------------------------
# Trigger Tests
# -----------------------------


class TestTriggerEndpoint:
    """Tests for POST /api/automations/trigger."""

    def test_trigger(self, client, trigger_engine) -> None:
        customer_id, profile_id = uuid4(), uuid4()

        response = client.post(
            "/api/automations/trigger",
            json={
                "trigger_type": "after_booking",
                "customer_id": str(customer_id),
                "profile_id": str(profile_id),
            },
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        trigger_engine.trigger.assert_awaited_once_with("after_booking", customer_id, profile_id)

    @pytest.mark.parametrize("missing", ["trigger_type", "customer_id", "profile_id"])
    def test_missing_field(self, client, trigger_engine, missing) -> None:
        payload = {
            "trigger_type": "after_booking",
            "customer_id": str(uuid4()),
            "profile_id": str(uuid4()),
        }
        del payload[missing]

        response = client.post("/api/automations/trigger", json=payload)

        assert response.status_code == 400
        trigger_engine.trigger.assert_not_called()

    def test_unknown_trigger_type_still_succeeds(self, client, trigger_engine) -> None:
        """The engine ignores unknown types; callers are never told."""
        response = client.post(
            "/api/automations/trigger",
            json={
                "trigger_type": "after_lunch",
                "customer_id": str(uuid4()),
                "profile_id": str(uuid4()),
            },
        )

        assert response.status_code == 200
        trigger_engine.trigger.assert_awaited_once()

    def test_internal_secret_enforced_when_configured(
        self, client, settings, trigger_engine, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings, "internal_api_secret", "s3cret")
        payload = {
            "trigger_type": "after_booking",
            "customer_id": str(uuid4()),
            "profile_id": str(uuid4()),
        }

        denied = client.post(
            "/api/automations/trigger", json=payload, headers={"X-Internal-Secret": "wrong"}
        )
        allowed = client.post(
            "/api/automations/trigger", json=payload, headers={"X-Internal-Secret": "s3cret"}
        )

        assert denied.status_code == 401
        assert allowed.status_code == 200
        assert trigger_engine.trigger.await_count == 1


# -----------------------------
# Dispatch Tests
# -----------------------------


class TestProcessEndpoint:
    """Tests for POST /api/automations/process."""

    def test_rejected_without_configured_secret(self, client, monkeypatch) -> None:
        process = AsyncMock()
        monkeypatch.setattr(automation_routes, "process_due_automations", process)

        response = client.post("/api/automations/process", headers={"X-Cron-Secret": ""})

        assert response.status_code == 401
        process.assert_not_called()

    def test_rejected_with_wrong_secret(self, client, settings, monkeypatch) -> None:
        monkeypatch.setattr(settings, "cron_secret", "cron-key")

        response = client.post("/api/automations/process", headers={"X-Cron-Secret": "nope"})

        assert response.status_code == 401

    def test_processes_due_logs(self, client, settings, session, email_sender, monkeypatch) -> None:
        monkeypatch.setattr(settings, "cron_secret", "cron-key")
        monkeypatch.setattr(settings, "automation_process_batch_size", 10)
        process = AsyncMock(return_value=DispatchSummary(processed=3, sent=2, failed=1))
        monkeypatch.setattr(automation_routes, "process_due_automations", process)

        response = client.post("/api/automations/process", headers={"X-Cron-Secret": "cron-key"})

        assert response.status_code == 200
        assert response.json() == {"processed": 3, "sent": 2, "failed": 1, "skipped": 0}
        process.assert_awaited_once_with(session, email_sender, limit=10)
