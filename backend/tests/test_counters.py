"""Tests for counter deltas and the atomic CounterAggregator."""
import uuid

import pytest

from import_ledger.core.errors import ImportNotFoundError, InvalidStatusError
from import_ledger.models.import_job import RowStatus
from import_ledger.schemas.imports import CounterDelta
from import_ledger.services.counters import CounterAggregator, delta_for_row_status
from import_ledger.services.ledger import ImportLedger

from conftest import ORG_ID, make_import


# ─── delta_for_row_status ─────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "status, bucket",
    [
        (RowStatus.SUCCESS, "success_count"),
        (RowStatus.WARNING, "warning_count"),
        (RowStatus.ERROR, "error_count"),
        (RowStatus.SKIPPED, "error_count"),
    ],
)
def test_delta_counts_one_processed_row_into_its_bucket(status, bucket):
    delta = delta_for_row_status(status)
    assert delta.non_zero() == {"processed_rows": 1, bucket: 1}


def test_delta_for_pending_is_rejected():
    with pytest.raises(InvalidStatusError):
        delta_for_row_status("PENDING")


# ─── increment_counts ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_increment_counts_adds_to_current_values(ledger, db):
    record = await make_import(ledger)
    counters = CounterAggregator(db)

    await counters.increment_counts(record.id, CounterDelta(processed_rows=2, success_count=2))
    await counters.increment_counts(record.id, {"processed_rows": 1, "error_count": 1})
    await db.commit()

    fresh = await ledger.get(ORG_ID, record.id)
    assert fresh.processed_rows == 3
    assert fresh.success_count == 2
    assert fresh.error_count == 1
    assert fresh.warning_count == 0


@pytest.mark.asyncio
async def test_zero_delta_is_a_noop(ledger, db):
    record = await make_import(ledger)
    before = record.updated_at

    await CounterAggregator(db).increment_counts(record.id, CounterDelta())
    await db.commit()

    fresh = await ledger.get(ORG_ID, record.id)
    assert fresh.processed_rows == 0
    assert fresh.updated_at == before


@pytest.mark.asyncio
async def test_increment_missing_import_raises(db):
    with pytest.raises(ImportNotFoundError):
        await CounterAggregator(db).increment_counts(uuid.uuid4(), CounterDelta(processed_rows=1))


@pytest.mark.asyncio
async def test_negative_delta_is_rejected(ledger, db):
    record = await make_import(ledger)
    with pytest.raises(ValueError):
        await CounterAggregator(db).increment_counts(record.id, {"error_count": -1})


@pytest.mark.asyncio
async def test_increments_from_stale_sessions_are_not_lost(ledger, sessionmaker):
    """Two workers each holding an old copy of the import must not overwrite each other."""
    record = await make_import(ledger)

    async with sessionmaker() as first, sessionmaker() as second:
        stale_a = await ImportLedger(first).get(ORG_ID, record.id)
        stale_b = await ImportLedger(second).get(ORG_ID, record.id)
        assert stale_a.success_count == stale_b.success_count == 0

        await CounterAggregator(first).increment_counts(record.id, delta_for_row_status("SUCCESS"))
        await first.commit()
        await CounterAggregator(second).increment_counts(record.id, delta_for_row_status("SUCCESS"))
        await second.commit()

    fresh = await ledger.get(ORG_ID, record.id)
    assert fresh.success_count == 2
    assert fresh.processed_rows == 2
