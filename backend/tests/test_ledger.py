"""Tests for ImportLedger: lifecycle, sparse status patches, row bookkeeping, scoping."""
import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from import_ledger.core.errors import (
    DuplicateRowNumberError,
    ImportNotFoundError,
    RowCountMismatchError,
    TotalRowsLockedError,
)
from import_ledger.models.import_job import ImportEntityType, ImportRowResult, ImportStatus
from import_ledger.schemas.imports import ImportFilter, ImportStatusUpdate, RowBatchCreate, RowFilter

from conftest import ORG_ID, OTHER_ORG_ID, USER_ID, make_import, seeds


# ─── create / get / list ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_starts_pending_with_zero_counters(ledger):
    record = await make_import(ledger, file_name="clients.csv")

    assert isinstance(record.id, uuid.UUID)
    assert record.status == ImportStatus.PENDING.value
    assert record.entity_type == ImportEntityType.CLIENT.value
    assert record.created_by == USER_ID
    assert record.file_url == f"imports/{ORG_ID}/clients.csv"
    assert (
        record.total_rows, record.processed_rows, record.success_count,
        record.warning_count, record.error_count,
    ) == (0, 0, 0, 0, 0)
    assert record.started_at is None
    assert record.completed_at is None
    assert record.error_message is None


@pytest.mark.asyncio
async def test_get_is_scoped_to_organization(ledger):
    record = await make_import(ledger)

    assert (await ledger.get(ORG_ID, record.id)).id == record.id
    with pytest.raises(ImportNotFoundError):
        await ledger.get(OTHER_ORG_ID, record.id)
    with pytest.raises(ImportNotFoundError):
        await ledger.get(ORG_ID, uuid.uuid4())


@pytest.mark.asyncio
async def test_list_is_newest_first_and_paged(ledger):
    ids = []
    for n in range(3):
        ids.append((await make_import(ledger, file_name=f"f{n}.csv")).id)
        await asyncio.sleep(0.01)
    await make_import(ledger, organization_id=OTHER_ORG_ID)

    page = await ledger.list(ORG_ID, ImportFilter(page=1, limit=2))
    assert [r.id for r in page.items] == [ids[2], ids[1]]
    assert page.total == 3
    assert page.total_pages == 2

    last = await ledger.list(ORG_ID, ImportFilter(page=2, limit=2))
    assert [r.id for r in last.items] == [ids[0]]


@pytest.mark.asyncio
async def test_list_filters_by_status_and_entity_type(ledger):
    client_import = await make_import(ledger)
    txn_import = await make_import(ledger, entity_type=ImportEntityType.TRANSACTION, file_name="t.csv")
    await ledger.start_processing(txn_import.id)

    by_type = await ledger.list(ORG_ID, ImportFilter(entity_type="transaction"))
    assert [r.id for r in by_type.items] == [txn_import.id]

    pending = await ledger.list(ORG_ID, ImportFilter(status=ImportStatus.PENDING))
    assert [r.id for r in pending.items] == [client_import.id]


@pytest.mark.asyncio
async def test_list_empty_organization(ledger):
    page = await ledger.list("org-empty")
    assert page.items == []
    assert page.total == 0
    assert page.total_pages == 0


# ─── update_status ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_started_at_is_stamped_once(ledger):
    record = await make_import(ledger)

    validating = await ledger.start_validation(record.id, 10)
    first_start = validating.started_at
    assert first_start is not None
    assert validating.total_rows == 10

    await asyncio.sleep(0.01)
    processing = await ledger.start_processing(record.id)
    assert processing.status == ImportStatus.PROCESSING.value
    assert processing.started_at == first_start
    assert processing.completed_at is None


@pytest.mark.asyncio
async def test_terminal_status_stamps_completed_at(ledger):
    record = await make_import(ledger)
    failed = await ledger.fail(record.id, "Header row missing")

    assert failed.status == ImportStatus.FAILED.value
    assert failed.error_message == "Header row missing"
    assert failed.completed_at is not None
    assert failed.started_at is None


@pytest.mark.asyncio
async def test_update_status_is_sparse(ledger):
    record = await make_import(ledger)
    await ledger.update_status(record.id, ImportStatusUpdate(status="VALIDATING", total_rows=4, error_message="x"))

    updated = await ledger.update_status(record.id, ImportStatusUpdate(warning_count=2))

    assert updated.status == ImportStatus.VALIDATING.value
    assert updated.total_rows == 4
    assert updated.warning_count == 2
    assert updated.error_message == "x"


@pytest.mark.asyncio
async def test_explicit_null_clears_error_message(ledger):
    record = await make_import(ledger)
    await ledger.fail(record.id, "boom")

    cleared = await ledger.update_status(record.id, ImportStatusUpdate.model_validate({"error_message": None}))
    assert cleared.error_message is None


@pytest.mark.asyncio
async def test_update_status_bumps_updated_at(ledger):
    record = await make_import(ledger)
    before = record.updated_at
    await asyncio.sleep(0.01)

    updated = await ledger.update_status(record.id, ImportStatusUpdate())
    assert updated.updated_at > before


@pytest.mark.asyncio
async def test_total_rows_cannot_change_once_set(ledger):
    record = await make_import(ledger)
    await ledger.start_validation(record.id, 3)

    same = await ledger.update_status(record.id, ImportStatusUpdate(total_rows=3))
    assert same.total_rows == 3

    with pytest.raises(TotalRowsLockedError):
        await ledger.update_status(record.id, ImportStatusUpdate(status="PROCESSING", total_rows=5))

    unchanged = await ledger.get(ORG_ID, record.id)
    assert unchanged.total_rows == 3
    assert unchanged.status == ImportStatus.VALIDATING.value


@pytest.mark.asyncio
async def test_transitions_are_not_policed(ledger):
    record = await make_import(ledger)
    completed = await ledger.complete(record.id, 0, 0, 0)
    completed_status = completed.status
    completed_at = completed.completed_at

    reopened = await ledger.start_processing(record.id)

    assert completed_status == ImportStatus.COMPLETED.value
    assert reopened.status == ImportStatus.PROCESSING.value
    assert reopened.completed_at == completed_at


@pytest.mark.asyncio
async def test_update_status_missing_import(ledger):
    with pytest.raises(ImportNotFoundError):
        await ledger.update_status(uuid.uuid4(), ImportStatusUpdate(status="FAILED"))


@pytest.mark.asyncio
async def test_complete_reconciles_processed_rows(ledger):
    record = await make_import(ledger)
    done = await ledger.complete(record.id, success_count=7, warning_count=2, error_count=1)

    assert done.status == ImportStatus.COMPLETED.value
    assert done.processed_rows == 10
    assert (done.success_count, done.warning_count, done.error_count) == (7, 2, 1)
    assert done.completed_at is not None


# ─── Rows ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_row_results_must_match_total_rows(ledger):
    record = await make_import(ledger)
    await ledger.start_validation(record.id, 3)

    with pytest.raises(RowCountMismatchError):
        await ledger.create_row_results(record.id, seeds(2))

    assert await ledger.create_row_results(record.id, RowBatchCreate(rows=seeds(3))) == 3


@pytest.mark.asyncio
async def test_create_row_results_rejects_duplicates_in_batch(ledger):
    record = await make_import(ledger)
    batch = seeds(2) + seeds(1, start=2)

    with pytest.raises(DuplicateRowNumberError) as exc_info:
        await ledger.create_row_results(record.id, batch)
    assert exc_info.value.row_numbers == [2]


@pytest.mark.asyncio
async def test_create_row_results_rejects_existing_row_numbers(ledger, db):
    record = await make_import(ledger)
    import_id = record.id
    await ledger.create_row_results(import_id, seeds(2))

    with pytest.raises(DuplicateRowNumberError):
        await ledger.create_row_results(import_id, seeds(1, start=2))

    # the rollback expired record; only the bound id is safe to use here
    count = (await db.execute(
        select(func.count()).select_from(ImportRowResult).where(ImportRowResult.import_id == import_id)
    )).scalar_one()
    assert count == 2


@pytest.mark.asyncio
async def test_create_row_results_missing_import(ledger):
    with pytest.raises(ImportNotFoundError):
        await ledger.create_row_results(uuid.uuid4(), seeds(1))


@pytest.mark.asyncio
async def test_full_worker_run(ledger):
    """Validation, placeholders, per-row outcomes, then completion."""
    record = await make_import(ledger)
    await ledger.start_validation(record.id, 3)
    await ledger.create_row_results(record.id, seeds(3))
    await ledger.start_processing(record.id)

    await ledger.update_row_result(record.id, 1, {"status": "SUCCESS", "entity_id": "client-1"})
    await ledger.update_row_result(record.id, 2, {"status": "WARNING", "message": "Phone missing"})
    await ledger.update_row_result(record.id, 3, {"status": "ERROR", "errors": ["rfc: invalid"]})

    mid = await ledger.get(ORG_ID, record.id)
    assert (mid.processed_rows, mid.success_count, mid.warning_count, mid.error_count) == (3, 1, 1, 1)

    done = await ledger.complete(record.id, 1, 1, 1)
    assert done.processed_rows == 3

    _, results = await ledger.get_with_results(ORG_ID, record.id, RowFilter(status="ERROR"))
    assert [r.row_number for r in results.items] == [3]


@pytest.mark.asyncio
async def test_skipped_rows_count_as_errors(ledger):
    record = await make_import(ledger)
    await ledger.create_row_results(record.id, seeds(1))
    await ledger.update_row_result(record.id, 1, {"status": "SKIPPED"})

    fresh = await ledger.get(ORG_ID, record.id)
    assert fresh.error_count == 1
    assert fresh.processed_rows == 1


@pytest.mark.asyncio
async def test_update_unknown_row_leaves_counters(ledger):
    record = await make_import(ledger)
    await ledger.create_row_results(record.id, seeds(2))

    assert await ledger.update_row_result(record.id, 999, {"status": "SUCCESS"}) is None

    fresh = await ledger.get(ORG_ID, record.id)
    assert fresh.processed_rows == 0
    assert fresh.success_count == 0


@pytest.mark.asyncio
async def test_repeated_row_update_counts_again(ledger):
    record = await make_import(ledger)
    await ledger.create_row_results(record.id, seeds(1))
    await ledger.update_row_result(record.id, 1, {"status": "SUCCESS"})
    await ledger.update_row_result(record.id, 1, {"status": "SUCCESS"})

    fresh = await ledger.get(ORG_ID, record.id)
    assert fresh.success_count == 2
    assert fresh.processed_rows == 2


@pytest.mark.asyncio
async def test_pending_is_not_a_row_outcome(ledger):
    record = await make_import(ledger)
    await ledger.create_row_results(record.id, seeds(1))
    with pytest.raises(ValueError):
        await ledger.update_row_result(record.id, 1, {"status": "PENDING"})


@pytest.mark.asyncio
async def test_list_row_results_respects_organization(ledger):
    record = await make_import(ledger)
    await ledger.create_row_results(record.id, seeds(2))

    page = await ledger.list_row_results(ORG_ID, record.id)
    assert page.total == 2
    with pytest.raises(ImportNotFoundError):
        await ledger.list_row_results(OTHER_ORG_ID, record.id)


# ─── delete ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_delete_removes_import_and_rows(ledger, db):
    record = await make_import(ledger)
    keep = await make_import(ledger, file_name="keep.csv")
    await ledger.create_row_results(record.id, seeds(3))
    await ledger.create_row_results(keep.id, seeds(1))

    await ledger.delete(ORG_ID, record.id)

    with pytest.raises(ImportNotFoundError):
        await ledger.get(ORG_ID, record.id)
    remaining = (await db.execute(select(ImportRowResult.import_id))).scalars().all()
    assert remaining == [keep.id]


@pytest.mark.asyncio
async def test_delete_from_other_organization_is_not_found(ledger):
    record = await make_import(ledger)
    with pytest.raises(ImportNotFoundError):
        await ledger.delete(OTHER_ORG_ID, record.id)
    assert (await ledger.get(ORG_ID, record.id)).id == record.id


# ─── End-to-end scenario ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_client_import_scenario(ledger):
    record = await make_import(ledger, entity_type=ImportEntityType.CLIENT, file_name="c.csv")
    assert record.file_size == 1024
    assert record.status == ImportStatus.PENDING.value

    await ledger.create_row_results(record.id, seeds(3))
    rows = await ledger.list_row_results(ORG_ID, record.id)
    assert len(rows.items) == 3
    assert rows.items[0].row_number == 1
    assert {r.status for r in rows.items} == {"PENDING"}

    await ledger.update_row_result(record.id, 1, {"status": "SUCCESS"})
    after_one = await ledger.get(ORG_ID, record.id)
    assert (after_one.processed_rows, after_one.success_count) == (1, 1)

    await ledger.update_row_result(record.id, 2, {"status": "ERROR", "errors": ["bad email"]})
    after_two = await ledger.get(ORG_ID, record.id)
    assert (after_two.processed_rows, after_two.success_count, after_two.error_count) == (2, 1, 1)
    assert after_two.processed_rows == (
        after_two.success_count + after_two.warning_count + after_two.error_count
    )

    done = await ledger.complete(record.id, 1, 0, 1)
    assert done.status == ImportStatus.COMPLETED.value
    assert done.completed_at is not None


@pytest.mark.asyncio
async def test_counters_stay_consistent_across_mixed_outcomes(ledger):
    record = await make_import(ledger)
    await ledger.create_row_results(record.id, seeds(6))

    for n, outcome in enumerate(["SUCCESS", "WARNING", "ERROR", "SKIPPED", "SUCCESS", "WARNING"], start=1):
        await ledger.update_row_result(record.id, n, {"status": outcome})
        fresh = await ledger.get(ORG_ID, record.id)
        assert fresh.processed_rows == n
        assert fresh.processed_rows == fresh.success_count + fresh.warning_count + fresh.error_count
