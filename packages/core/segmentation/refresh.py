"""
Segment Refresh Orchestrator.

Rebuilds every active segment's membership for one tenant:
1. Load active segments (none -> no-op)
2. Load customers, capped per run
3. No customers -> clear every segment and zero its count
4. Bulk-load extras (referral and stamp owners) for the loaded ids
5. Per segment: match in memory, then replace membership and count
6. Return totals

Each segment is written independently. A failed segment write is logged
and reported, never rolled back across segments. Concurrent refreshes for
the same tenant are not locked against each other; the last write wins.
"""

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, TypeVar
from uuid import UUID

from packages.core.segmentation.evaluator import evaluate_segment_criteria
from packages.core.segmentation.fields import ComputedFields, compute_customer_fields
from packages.core.segmentation.models import (
    CustomerExtras,
    CustomerRecord,
    SegmentDefinition,
)

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_LIMIT = 2000
MEMBERSHIP_BATCH_SIZE = 500

T = TypeVar("T")


# -----------------------------
# Errors & results
# -----------------------------


class SegmentRefreshError(Exception):
    """Raised when a refresh cannot load the data it needs."""

    pass


@dataclass
class RefreshSummary:
    """Totals for one refresh run."""

    segments_updated: int = 0
    total_memberships: int = 0
    customers_evaluated: int = 0
    failed_segments: list[UUID] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "segments_updated": self.segments_updated,
            "total_memberships": self.total_memberships,
            "customers_evaluated": self.customers_evaluated,
            "failed_segments": [str(s) for s in self.failed_segments],
        }


@dataclass
class SegmentCount:
    """Live membership of one segment, computed without writing it."""

    segment_id: UUID | None
    customer_count: int
    customer_ids: list[UUID]


# -----------------------------
# Store protocol
# -----------------------------


class SegmentStore(Protocol):
    """Data-store operations the orchestrator depends on."""

    async def list_active_segments(self, tenant_id: UUID) -> list[SegmentDefinition]:
        ...

    async def list_customers(self, tenant_id: UUID, limit: int) -> list[CustomerRecord]:
        ...

    async def list_referral_owners_with_positive_count(self, tenant_id: UUID) -> list[UUID]:
        ...

    async def list_stamp_owners_with_positive_count(
        self, customer_ids: Sequence[UUID]
    ) -> list[UUID]:
        ...

    async def replace_segment_membership(
        self, segment_id: UUID, customer_ids: Sequence[UUID]
    ) -> None:
        ...

    async def update_segment_count(self, segment_id: UUID, count: int) -> None:
        ...


def chunked(items: Sequence[T], size: int = MEMBERSHIP_BATCH_SIZE) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


# -----------------------------
# Orchestrator
# -----------------------------


class SegmentRefresher:
    """
    Recomputes segment memberships for a tenant.

    Evaluation is pure and in memory; the store is only touched to load the
    snapshot and to write each segment's result.
    """

    def __init__(
        self,
        store: SegmentStore,
        customer_limit: int = DEFAULT_CUSTOMER_LIMIT,
    ):
        """
        Initialize the refresher.

        Args:
            store: Data-store collaborator.
            customer_limit: Maximum customers loaded per run.
        """
        self._store = store
        self._customer_limit = customer_limit

    async def refresh(
        self,
        tenant_id: UUID,
        now: datetime | None = None,
    ) -> RefreshSummary:
        """
        Refresh all active segments of a tenant.

        Args:
            tenant_id: The tenant to refresh.
            now: Reference time for "days since" fields.

        Returns:
            RefreshSummary with totals across all segments.

        Raises:
            SegmentRefreshError: If segments, customers or extras cannot be loaded.
        """
        now = now or datetime.now(timezone.utc)

        segments = await self._load(
            "segments", self._store.list_active_segments(tenant_id), tenant_id
        )
        if not segments:
            logger.info(f"No active segments for tenant {tenant_id}, nothing to refresh")
            return RefreshSummary()

        customers = await self._load(
            "customers",
            self._store.list_customers(tenant_id, self._customer_limit),
            tenant_id,
        )

        summary = RefreshSummary(customers_evaluated=len(customers))

        if not customers:
            for segment in segments:
                await self._write_segment(segment, [], summary)
            logger.info(
                f"Tenant {tenant_id} has no customers, cleared {summary.segments_updated} segments"
            )
            return summary

        if len(customers) >= self._customer_limit:
            logger.warning(
                f"Tenant {tenant_id} reached the refresh cap of {self._customer_limit} customers"
            )

        extras = await self.load_extras(tenant_id, [c.id for c in customers])
        computed = self._compute_all(customers, extras, now)

        for segment in segments:
            matched = self._match(segment, customers, computed, extras)
            await self._write_segment(segment, matched, summary)

        logger.info(
            f"Refreshed tenant {tenant_id}: {summary.segments_updated} segments, "
            f"{summary.total_memberships} memberships, "
            f"{summary.customers_evaluated} customers"
        )
        return summary

    async def compute_counts(
        self,
        tenant_id: UUID,
        segments: Iterable[SegmentDefinition],
        now: datetime | None = None,
    ) -> list[SegmentCount]:
        """
        Evaluate segments against current customers without writing anything.

        Used to show live counts when listing, creating or editing segments.
        """
        segments = list(segments)
        now = now or datetime.now(timezone.utc)

        customers = await self._load(
            "customers",
            self._store.list_customers(tenant_id, self._customer_limit),
            tenant_id,
        )
        if not customers:
            return [SegmentCount(s.id, 0, []) for s in segments]

        extras = await self.load_extras(tenant_id, [c.id for c in customers])
        computed = self._compute_all(customers, extras, now)

        counts = []
        for segment in segments:
            matched = self._match(segment, customers, computed, extras)
            counts.append(SegmentCount(segment.id, len(matched), matched))
        return counts

    async def load_extras(
        self,
        tenant_id: UUID,
        customer_ids: Sequence[UUID],
    ) -> dict[UUID, CustomerExtras]:
        """
        Bulk-load auxiliary signals for exactly the given customers.

        Two queries in total, joined in memory by customer id.
        """
        if not customer_ids:
            return {}

        referrers = set(
            await self._load(
                "referral owners",
                self._store.list_referral_owners_with_positive_count(tenant_id),
                tenant_id,
            )
        )
        stamp_owners = set(
            await self._load(
                "stamp owners",
                self._store.list_stamp_owners_with_positive_count(list(customer_ids)),
                tenant_id,
            )
        )

        return {
            customer_id: CustomerExtras(
                has_referrals=customer_id in referrers,
                has_stamps=customer_id in stamp_owners,
            )
            for customer_id in customer_ids
        }

    # -------------------------
    # Internals
    # -------------------------

    async def _load(self, what: str, awaitable, tenant_id: UUID):
        try:
            return list(await awaitable)
        except Exception as exc:
            logger.error(f"Failed to load {what} for tenant {tenant_id}: {exc}")
            raise SegmentRefreshError(f"Failed to load {what}") from exc

    @staticmethod
    def _compute_all(
        customers: Sequence[CustomerRecord],
        extras: dict[UUID, CustomerExtras],
        now: datetime,
    ) -> dict[UUID, ComputedFields]:
        # Computed once per customer per run; shared by every segment.
        return {
            c.id: compute_customer_fields(c, extras.get(c.id), now=now)
            for c in customers
        }

    @staticmethod
    def _match(
        segment: SegmentDefinition,
        customers: Sequence[CustomerRecord],
        computed: dict[UUID, ComputedFields],
        extras: dict[UUID, CustomerExtras],
    ) -> list[UUID]:
        return [
            c.id
            for c in customers
            if evaluate_segment_criteria(
                c, computed[c.id], segment.criteria, extras.get(c.id)
            )
        ]

    async def _write_segment(
        self,
        segment: SegmentDefinition,
        customer_ids: list[UUID],
        summary: RefreshSummary,
    ) -> None:
        if segment.id is None:
            logger.warning(f"Skipping unpersisted segment '{segment.name}'")
            return

        try:
            await self._store.replace_segment_membership(segment.id, customer_ids)
            await self._store.update_segment_count(segment.id, len(customer_ids))
        except Exception:
            logger.exception(f"Failed to write membership for segment {segment.id}")
            summary.failed_segments.append(segment.id)
            return

        summary.segments_updated += 1
        summary.total_memberships += len(customer_ids)
