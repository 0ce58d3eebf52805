#!/usr/bin/env python3
"""
Folio segment refresh CLI

Initializes system segments if needed, then refreshes (or, with
--dry-run, only evaluates) every active segment for one tenant and
prints the result.
"""

import asyncio
import sys
from pathlib import Path
from uuid import UUID

# Add project root and backend app to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "apps" / "backend"))

from dotenv import load_dotenv

load_dotenv()

from rich import box
from rich.console import Console
from rich.table import Table

from app.core.config import get_settings
from app.db.session import worker_session
from app.services.segment_service import initialize_system_segments, list_segments, to_definition
from app.services.stores import SqlAlchemySegmentStore
from packages.core.segmentation import SegmentRefreshError, SegmentRefresher, format_rule_display

console = Console()
settings = get_settings()


async def run(tenant_id: UUID, dry_run: bool) -> int:
    async with worker_session() as session:
        initialized, segments = await initialize_system_segments(session, tenant_id)
        await session.commit()
        if initialized:
            console.print(f"[green]✓[/green] Created {len(segments)} system segments")

        store = SqlAlchemySegmentStore(session, batch_size=settings.segment_membership_batch_size)
        refresher = SegmentRefresher(store, customer_limit=settings.segment_refresh_customer_limit)

        summary = None
        try:
            if dry_run:
                definitions = [to_definition(s) for s in segments if s.is_active]
                counts = await refresher.compute_counts(tenant_id, definitions)
            else:
                summary = await refresher.refresh(tenant_id)
                definitions = [
                    to_definition(s) for s in await list_segments(session, tenant_id) if s.is_active
                ]
                counts = []
        except SegmentRefreshError as e:
            console.print(f"[red]✗ Refresh failed:[/red] {e}")
            return 1

        table = Table(title="Segments", box=box.ROUNDED)
        table.add_column("Segment", style="bold")
        table.add_column("Type")
        table.add_column("Rules")
        table.add_column("Customers", justify="right")

        live = {c.segment_id: c.customer_count for c in counts}
        for definition in definitions:
            table.add_row(
                f"[{definition.color}]●[/] {definition.name}",
                definition.type.value,
                "\n".join(format_rule_display(r) for r in definition.criteria.rules),
                str(live.get(definition.id, definition.customer_count)),
            )
        console.print(table)

        if summary is not None:
            console.print(
                f"[green]✓[/green] {summary.segments_updated} segments updated, "
                f"{summary.total_memberships} memberships, "
                f"{summary.customers_evaluated} customers evaluated"
            )
            if summary.failed_segments:
                console.print(f"[red]Failed segments:[/red] {summary.failed_segments}")
                return 1
        else:
            console.print("[yellow]Dry run: memberships not written[/yellow]")
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Refresh customer segments for a tenant")
    parser.add_argument("tenant_id", type=UUID, help="Tenant (profile) UUID")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate segments without writing memberships",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.tenant_id, args.dry_run)))
