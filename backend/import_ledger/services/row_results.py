"""Row result store: the per-row outcome records of an import.

The store never commits. Whoever composes it (normally ImportLedger) owns the
transaction.
"""
import json
import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from import_ledger.db.base import utcnow
from import_ledger.models.import_job import ImportRowResult, RowStatus
from import_ledger.schemas.imports import Page, RowFilter, RowOutcome, RowSeed

logger = logging.getLogger(__name__)


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class RowResultStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_row_results(self, import_id: uuid.UUID, rows: Iterable[RowSeed]) -> int:
        """Bulk-insert one PENDING placeholder per row. Returns how many were written."""
        payload = [
            {
                "import_id": import_id,
                "row_number": row.row_number,
                "raw_data": row.raw_data,
                "status": RowStatus.PENDING.value,
            }
            for row in rows
        ]
        if not payload:
            return 0
        await self.db.execute(insert(ImportRowResult), payload)
        logger.debug("Inserted %d row placeholders for import %s", len(payload), import_id)
        return len(payload)

    async def update_row_result(
        self,
        import_id: uuid.UUID,
        row_number: int,
        outcome: RowOutcome,
    ) -> ImportRowResult | None:
        """Overwrite a row's outcome in place; None when the row does not exist.

        Optional fields the caller leaves out are written as null.
        """
        stmt = (
            update(ImportRowResult)
            .where(
                ImportRowResult.import_id == import_id,
                ImportRowResult.row_number == row_number,
            )
            .values(
                status=outcome.status.value,
                entity_id=outcome.entity_id,
                message=outcome.message,
                errors=json.dumps(outcome.errors) if outcome.errors is not None else None,
                # always bump, even when the outcome is unchanged, so pollers see the touch
                updated_at=utcnow(),
            )
            .returning(ImportRowResult)
        )
        return (await self.db.scalars(stmt)).one_or_none()

    async def list_row_results(self, import_id: uuid.UUID, filters: RowFilter | None = None) -> Page[ImportRowResult]:
        filters = filters or RowFilter()

        stmt = select(ImportRowResult).where(ImportRowResult.import_id == import_id)
        if filters.status is not None:
            stmt = stmt.where(ImportRowResult.status == filters.status.value)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar_one()

        offset = (filters.page - 1) * filters.limit
        stmt = stmt.order_by(ImportRowResult.row_number.asc()).offset(offset).limit(filters.limit)
        rows = (await self.db.execute(stmt)).scalars().all()

        return Page(items=list(rows), total=total, page=filters.page, limit=filters.limit)

    async def get_recent_row_updates(self, import_id: uuid.UUID, since: datetime) -> list[ImportRowResult]:
        """Rows touched strictly after ``since``, lowest row number first."""
        stmt = (
            select(ImportRowResult)
            .where(
                ImportRowResult.import_id == import_id,
                ImportRowResult.updated_at > as_utc(since),
            )
            .order_by(ImportRowResult.row_number.asc())
            .execution_options(populate_existing=True)
        )
        return list((await self.db.execute(stmt)).scalars().all())
