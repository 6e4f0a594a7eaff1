"""Counter aggregator: atomic deltas against an import's running totals.

Every delta is applied as ``col = col + :delta`` inside a single UPDATE, so
workers finishing different rows of the same import at the same time never
lose an increment.
"""
import logging
import uuid
from collections.abc import Mapping

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from import_ledger.core.errors import ImportNotFoundError, InvalidStatusError
from import_ledger.db.base import utcnow
from import_ledger.models.import_job import Import, RowStatus, parse_row_status
from import_ledger.schemas.imports import CounterDelta

logger = logging.getLogger(__name__)

# ERROR and SKIPPED share a bucket; there is no separate skipped counter.
OUTCOME_BUCKETS: dict[RowStatus, str] = {
    RowStatus.SUCCESS: "success_count",
    RowStatus.WARNING: "warning_count",
    RowStatus.ERROR: "error_count",
    RowStatus.SKIPPED: "error_count",
}


def delta_for_row_status(status: RowStatus | str) -> CounterDelta:
    """The counter movement caused by finalizing one row with ``status``."""
    row_status = parse_row_status(status)
    bucket = OUTCOME_BUCKETS.get(row_status)
    if bucket is None:
        raise InvalidStatusError(row_status.value, kind="row outcome")
    return CounterDelta(processed_rows=1, **{bucket: 1})


class CounterAggregator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def increment_counts(
        self,
        import_id: uuid.UUID,
        delta: CounterDelta | Mapping[str, int],
    ) -> None:
        if not isinstance(delta, CounterDelta):
            delta = CounterDelta.model_validate(delta)

        changes = delta.non_zero()
        if not changes:
            return

        values = {name: getattr(Import, name) + amount for name, amount in changes.items()}
        stmt = (
            update(Import)
            .where(Import.id == import_id)
            .values(**values, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            raise ImportNotFoundError(import_id)
        logger.debug("Incremented counters on import %s: %s", import_id, changes)
