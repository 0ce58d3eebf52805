"""Automation API routes."""

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, status

from app.core.config import get_settings
from app.core.constants import CRON_SECRET_HEADER, INTERNAL_SECRET_HEADER
from app.core.dependencies import (
    AsyncSessionDep,
    CurrentUser,
    EmailSenderDep,
    TriggerEngineDep,
)
from app.models.automation import AutomationRule
from app.schemas.automations import (
    AutomationProcessResponse,
    AutomationRuleCreateRequest,
    AutomationRuleListResponse,
    AutomationRuleResponse,
    AutomationTriggerRequest,
    AutomationTriggerResponse,
)
from app.services import automation_service
from app.services.automation_dispatch import process_due_automations

logger = logging.getLogger(__name__)

router = APIRouter()


def _secret_matches(expected: str | None, provided: str | None) -> bool:
    if not expected or provided is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def _rule_response(rule: AutomationRule, sent: int = 0, pending: int = 0) -> AutomationRuleResponse:
    response = AutomationRuleResponse.model_validate(rule)
    return response.model_copy(update={"sent_count": sent, "pending_count": pending})


@router.get("", response_model=AutomationRuleListResponse)
async def list_automation_rules(
    current_user: CurrentUser,
    session: AsyncSessionDep,
) -> AutomationRuleListResponse:
    """List the tenant's rules, newest first, with sent and pending counts."""
    rows = await automation_service.list_rules_with_stats(session, current_user.tenant_id)
    return AutomationRuleListResponse(
        rules=[_rule_response(rule, sent, pending) for rule, sent, pending in rows]
    )


@router.post("", response_model=AutomationRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_automation_rule(
    payload: AutomationRuleCreateRequest,
    current_user: CurrentUser,
    session: AsyncSessionDep,
) -> AutomationRuleResponse:
    """Create an automation rule."""
    rule = await automation_service.create_rule(session, current_user.tenant_id, payload)
    return _rule_response(rule)


@router.post("/trigger", response_model=AutomationTriggerResponse)
async def trigger_automations(
    payload: AutomationTriggerRequest,
    engine: TriggerEngineDep,
    internal_secret: Annotated[str | None, Header(alias=INTERNAL_SECRET_HEADER)] = None,
) -> AutomationTriggerResponse:
    """
    Schedule automations for a lifecycle event.

    Called internally by booking, contact and subscribe flows. Trigger
    failures are logged and never surface to the caller.

    Raises:
        HTTPException 400: If trigger_type, customer_id or profile_id is missing.
        HTTPException 401: If an internal secret is configured and not matched.
    """
    expected = get_settings().internal_api_secret
    if expected and not _secret_matches(expected, internal_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    if not payload.trigger_type or payload.customer_id is None or payload.profile_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="trigger_type, customer_id and profile_id are required",
        )

    await engine.trigger(payload.trigger_type, payload.customer_id, payload.profile_id)
    return AutomationTriggerResponse(success=True)


@router.post("/process", response_model=AutomationProcessResponse)
async def process_automations(
    session: AsyncSessionDep,
    sender: EmailSenderDep,
    cron_secret: Annotated[str | None, Header(alias=CRON_SECRET_HEADER)] = None,
) -> AutomationProcessResponse:
    """
    Dispatch due automation logs. Called by cron.

    Raises:
        HTTPException 401: If the cron secret header does not match.
    """
    settings = get_settings()
    if not _secret_matches(settings.cron_secret, cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    summary = await process_due_automations(
        session, sender, limit=settings.automation_process_batch_size
    )
    return AutomationProcessResponse(**summary.to_dict())
