"""Import ledger: owns import jobs, their status transitions and row bookkeeping.

The ledger records what callers tell it. It does not police the order of
transitions (COMPLETED before PROCESSING is accepted), it only stamps the
timestamps that go with each status.
"""
import logging
import uuid
from collections import Counter
from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from import_ledger.core.errors import (
    DuplicateRowNumberError,
    ImportNotFoundError,
    RowCountMismatchError,
    TotalRowsLockedError,
)
from import_ledger.db.base import utcnow
from import_ledger.models.import_job import Import, ImportRowResult, ImportStatus
from import_ledger.schemas.imports import (
    ImportCreate,
    ImportFilter,
    ImportStatusUpdate,
    Page,
    RowBatchCreate,
    RowFilter,
    RowOutcome,
    RowSeed,
)
from import_ledger.services.counters import CounterAggregator, delta_for_row_status
from import_ledger.services.row_results import RowResultStore

logger = logging.getLogger(__name__)

_COUNTER_FIELDS = ("processed_rows", "success_count", "warning_count", "error_count")


class ImportLedger:
    def __init__(
        self,
        db: AsyncSession,
        rows: RowResultStore | None = None,
        counters: CounterAggregator | None = None,
    ):
        self.db = db
        self.rows = rows or RowResultStore(db)
        self.counters = counters or CounterAggregator(db)

    # ─── Lookups ───

    async def _find(self, import_id: uuid.UUID, organization_id: str | None = None) -> Import | None:
        # populate_existing: counters move through Core UPDATEs, so the
        # identity map copy may be stale
        stmt = (
            select(Import)
            .where(Import.id == import_id)
            .execution_options(populate_existing=True)
        )
        if organization_id is not None:
            stmt = stmt.where(Import.organization_id == organization_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _require(self, import_id: uuid.UUID, organization_id: str | None = None) -> Import:
        record = await self._find(import_id, organization_id)
        if record is None:
            raise ImportNotFoundError(import_id)
        return record

    async def get(self, organization_id: str, import_id: uuid.UUID) -> Import:
        """Organization-scoped; a foreign import looks exactly like a missing one."""
        return await self._require(import_id, organization_id)

    async def list(self, organization_id: str, filters: ImportFilter | None = None) -> Page[Import]:
        filters = filters or ImportFilter()

        stmt = select(Import).where(Import.organization_id == organization_id)
        if filters.status is not None:
            stmt = stmt.where(Import.status == filters.status.value)
        if filters.entity_type is not None:
            stmt = stmt.where(Import.entity_type == filters.entity_type.value)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar_one()

        offset = (filters.page - 1) * filters.limit
        stmt = (
            stmt.order_by(Import.created_at.desc(), Import.id.desc())
            .offset(offset)
            .limit(filters.limit)
        )
        records = (await self.db.execute(stmt)).scalars().all()

        return Page(items=list(records), total=total, page=filters.page, limit=filters.limit)

    async def get_with_results(
        self,
        organization_id: str,
        import_id: uuid.UUID,
        row_filter: RowFilter | None = None,
    ) -> tuple[Import, Page[ImportRowResult]]:
        record = await self._require(import_id, organization_id)
        results = await self.rows.list_row_results(import_id, row_filter)
        return record, results

    async def list_row_results(
        self,
        organization_id: str,
        import_id: uuid.UUID,
        row_filter: RowFilter | None = None,
    ) -> Page[ImportRowResult]:
        await self._require(import_id, organization_id)
        return await self.rows.list_row_results(import_id, row_filter)

    # ─── Writes ───

    async def create(
        self,
        organization_id: str,
        created_by: str,
        data: ImportCreate,
        file_url: str,
    ) -> Import:
        record = Import(
            organization_id=organization_id,
            entity_type=data.entity_type.value,
            file_name=data.file_name,
            file_url=file_url,
            file_size=data.file_size,
            status=ImportStatus.PENDING.value,
            total_rows=0,
            processed_rows=0,
            success_count=0,
            warning_count=0,
            error_count=0,
            created_by=created_by,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        logger.info(
            "Import %s created: org=%s entity_type=%s file=%s (%d bytes)",
            record.id, organization_id, record.entity_type, record.file_name, record.file_size,
        )
        return record

    async def update_status(self, import_id: uuid.UUID, update: ImportStatusUpdate) -> Import:
        """Apply only the fields present in ``update``.

        This is the one path that overwrites counters wholesale; during
        processing they move through the counter aggregator instead.
        """
        record = await self._require(import_id)
        changes = update.present()
        now = utcnow()

        total_rows = changes.pop("total_rows", None)
        if total_rows is not None and record.total_rows and total_rows != record.total_rows:
            raise TotalRowsLockedError(import_id, record.total_rows, total_rows)

        new_status: ImportStatus | None = changes.pop("status", None)
        if new_status is not None:
            previous = record.status
            record.status = new_status.value
            if new_status.is_started and record.started_at is None:
                record.started_at = now
            if new_status.is_terminal:
                record.completed_at = now
            if previous != new_status.value:
                logger.info("Import %s: %s -> %s", import_id, previous, new_status.value)

        if total_rows is not None:
            record.total_rows = total_rows

        for name in _COUNTER_FIELDS:
            value = changes.pop(name, None)
            if value is not None:
                setattr(record, name, value)

        if "error_message" in changes:
            record.error_message = changes.pop("error_message")

        record.updated_at = now
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def delete(self, organization_id: str, import_id: uuid.UUID) -> None:
        """Remove an import and every row result it owns."""
        await self._require(import_id, organization_id)
        removed = await self.db.execute(
            delete(ImportRowResult).where(ImportRowResult.import_id == import_id)
        )
        await self.db.execute(delete(Import).where(Import.id == import_id))
        await self.db.commit()
        logger.info("Import %s deleted with %s row results", import_id, removed.rowcount)

    # ─── Worker lifecycle ───

    async def start_validation(self, import_id: uuid.UUID, total_rows: int) -> Import:
        return await self.update_status(
            import_id, ImportStatusUpdate(status=ImportStatus.VALIDATING, total_rows=total_rows)
        )

    async def start_processing(self, import_id: uuid.UUID) -> Import:
        return await self.update_status(import_id, ImportStatusUpdate(status=ImportStatus.PROCESSING))

    async def complete(
        self,
        import_id: uuid.UUID,
        success_count: int,
        warning_count: int,
        error_count: int,
    ) -> Import:
        """Final reconciliation; processed_rows is set to the sum so the totals agree."""
        return await self.update_status(
            import_id,
            ImportStatusUpdate(
                status=ImportStatus.COMPLETED,
                success_count=success_count,
                warning_count=warning_count,
                error_count=error_count,
                processed_rows=success_count + warning_count + error_count,
            ),
        )

    async def fail(self, import_id: uuid.UUID, error_message: str) -> Import:
        return await self.update_status(
            import_id, ImportStatusUpdate(status=ImportStatus.FAILED, error_message=error_message)
        )

    # ─── Rows ───

    async def create_row_results(
        self,
        import_id: uuid.UUID,
        batch: RowBatchCreate | Sequence[RowSeed],
    ) -> int:
        """Create the PENDING placeholders once the worker knows the row count.

        When total_rows has already been recorded the batch must match it.
        A row-number conflict with existing rows rolls the session back, which
        expires every instance loaded through it; re-fetch before reading them.
        """
        rows = batch.rows if isinstance(batch, RowBatchCreate) else list(batch)
        record = await self._require(import_id)

        repeated = sorted(n for n, seen in Counter(r.row_number for r in rows).items() if seen > 1)
        if repeated:
            raise DuplicateRowNumberError(import_id, repeated)
        if record.total_rows and len(rows) != record.total_rows:
            raise RowCountMismatchError(import_id, record.total_rows, len(rows))

        try:
            created = await self.rows.create_row_results(import_id, rows)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateRowNumberError(import_id) from exc

        logger.info("Import %s: created %d row placeholders", import_id, created)
        return created

    async def update_row_result(
        self,
        import_id: uuid.UUID,
        row_number: int,
        outcome: RowOutcome | dict,
    ) -> ImportRowResult | None:
        """Record one row's outcome and bump the matching counters.

        Returns None, leaving counters untouched, when the row does not exist.
        Each call increments, so a row finalized twice is counted twice.
        """
        if not isinstance(outcome, RowOutcome):
            outcome = RowOutcome.model_validate(outcome)
        delta = delta_for_row_status(outcome.status)

        row = await self.rows.update_row_result(import_id, row_number, outcome)
        if row is None:
            logger.info("Import %s: no row %d to update", import_id, row_number)
            return None

        await self.counters.increment_counts(import_id, delta)
        await self.db.commit()
        return row
