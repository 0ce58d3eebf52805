"""
Automation dispatcher.

Executes pending automation logs whose scheduled time has passed and moves
each to sent, failed or skipped. One log's failure never aborts the batch.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_notification_settings
from app.core.constants import DEFAULT_BUSINESS_NAME, DEFAULT_CUSTOMER_NAME
from app.models.automation import AutomationLog, AutomationRule
from app.models.customer import Customer
from app.models.tenant import Tenant
from app.services.notifications import (
    EmailSender,
    follow_up_email,
    render_placeholders,
    review_request_email,
)
from packages.core.automation.models import ActionType, AutomationStatus

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 50


@dataclass
class DispatchSummary:
    """Totals for one dispatch run."""

    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass
class RenderedEmail:
    subject: str
    html: str


def render_action(
    rule: AutomationRule,
    customer_name: str,
    business_name: str,
    review_url: str,
) -> RenderedEmail:
    """
    Build the email for a rule's action.

    Raises:
        ValueError: For an action type with no renderer.
    """
    action = ActionType(rule.action_type)

    if action == ActionType.SEND_EMAIL:
        subject = rule.subject or f"News from {business_name}"
        body = render_placeholders(rule.body or "", customer_name, business_name)
        return RenderedEmail(
            subject=render_placeholders(subject, customer_name, business_name),
            html=follow_up_email(business_name, customer_name, body),
        )

    if action == ActionType.SEND_REVIEW_REQUEST:
        return RenderedEmail(
            subject=f"{business_name} - We'd love your review",
            html=review_request_email(business_name, customer_name, review_url),
        )

    if action == ActionType.SEND_COUPON:
        subject = rule.subject or f"A coupon from {business_name}"
        body = (
            f"Thank you for visiting {business_name}.\n"
            "Here is a special coupon for you.\n\n"
            f"Coupon: {rule.coupon_title or 'Coupon'}\n"
            f"Code: {rule.coupon_code or ''}\n\n"
            "We hope to see you again soon."
        )
        return RenderedEmail(
            subject=render_placeholders(subject, customer_name, business_name),
            html=follow_up_email(business_name, customer_name, body),
        )

    raise ValueError(f"Unsupported action type: {rule.action_type}")


class AutomationDispatcher:
    """Runs due automation logs through the email sender."""

    def __init__(self, session: AsyncSession, sender: EmailSender, app_url: str | None = None):
        self._session = session
        self._sender = sender
        self._app_url = (app_url or get_notification_settings().app_url).rstrip("/")

    async def process_due(self, now: datetime, limit: int) -> DispatchSummary:
        result = await self._session.execute(
            select(
                AutomationLog.id,
                AutomationLog.rule_id,
                AutomationLog.customer_id,
                AutomationLog.tenant_id,
            )
            .where(
                AutomationLog.status == AutomationStatus.PENDING,
                AutomationLog.scheduled_at <= now,
            )
            .order_by(AutomationLog.scheduled_at)
            .limit(limit)
        )
        # Plain rows, so a rollback after one failure cannot expire the rest
        logs = list(result.all())

        summary = DispatchSummary(processed=len(logs))
        tenants: dict[UUID, tuple[str, str]] = {}

        for log in logs:
            try:
                status = await self._process_one(log, now, tenants)
            except Exception as exc:
                logger.exception(f"Automation log {log.id} failed")
                await self._record_failure(log.id, now, str(exc))
                status = AutomationStatus.FAILED

            if status == AutomationStatus.SENT:
                summary.sent += 1
            elif status == AutomationStatus.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1

        if logs:
            logger.info(
                f"Processed {summary.processed} automation logs: {summary.sent} sent, "
                f"{summary.failed} failed, {summary.skipped} skipped"
            )
        return summary

    async def _process_one(
        self,
        log,
        now: datetime,
        tenants: dict[UUID, tuple[str, str]],
    ) -> AutomationStatus:
        log_id = log.id
        rule = await self._session.get(AutomationRule, log.rule_id)
        if rule is None or not rule.is_active:
            await self._finish(log_id, AutomationStatus.SKIPPED, now, "Rule inactive or deleted")
            return AutomationStatus.SKIPPED

        customer = await self._session.get(Customer, log.customer_id)
        if customer is None or not customer.email:
            await self._finish(log_id, AutomationStatus.SKIPPED, now, "Customer has no email address")
            return AutomationStatus.SKIPPED

        if log.tenant_id not in tenants:
            tenants[log.tenant_id] = await self._business_info(log.tenant_id)
        business_name, review_url = tenants[log.tenant_id]

        email = render_action(
            rule,
            customer_name=customer.name or DEFAULT_CUSTOMER_NAME,
            business_name=business_name,
            review_url=review_url,
        )

        message_id = await self._sender.send(customer.email, email.subject, email.html)
        if message_id:
            await self._finish(log_id, AutomationStatus.SENT, now)
            return AutomationStatus.SENT

        await self._finish(log_id, AutomationStatus.FAILED, now, "Email delivery failed")
        return AutomationStatus.FAILED

    async def _record_failure(self, log_id: UUID, now: datetime, error: str) -> None:
        # If this also fails the log stays pending and is picked up next run
        try:
            await self._session.rollback()
            await self._finish(log_id, AutomationStatus.FAILED, now, error)
        except Exception:
            logger.exception(f"Could not mark automation log {log_id} as failed")
            try:
                await self._session.rollback()
            except Exception:
                logger.exception("Session rollback failed after automation log failure")

    async def _business_info(self, tenant_id: UUID) -> tuple[str, str]:
        tenant = await self._session.get(Tenant, tenant_id)
        if tenant is None:
            return DEFAULT_BUSINESS_NAME, self._app_url
        business_name = tenant.display_name or tenant.name or DEFAULT_BUSINESS_NAME
        return business_name, tenant.review_url or f"{self._app_url}/{tenant.slug}"

    async def _finish(
        self,
        log_id: UUID,
        status: AutomationStatus,
        now: datetime,
        error: str | None = None,
    ) -> None:
        log = await self._session.get(AutomationLog, log_id)
        if log is None:
            return
        log.status = status
        log.sent_at = now
        log.error = error
        await self._session.commit()


async def process_due_automations(
    session: AsyncSession,
    sender: EmailSender,
    now: datetime | None = None,
    limit: int = DEFAULT_BATCH_LIMIT,
) -> DispatchSummary:
    """
    Dispatch pending automation logs that are due.

    Args:
        session: Database session; committed after each log.
        sender: Email sender.
        now: Reference time. Defaults to UTC now.
        limit: Maximum logs processed in this run, oldest first.

    Returns:
        DispatchSummary with per-status counts.
    """
    dispatcher = AutomationDispatcher(session, sender)
    return await dispatcher.process_due(now or datetime.now(timezone.utc), limit)
