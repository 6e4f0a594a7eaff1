"""Worker callback endpoints.

Called by the import worker, not by end users, so they are keyed by import
id alone and guarded by the shared X-Internal-Token instead of a user JWT.
"""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from import_ledger.api.v1.errors import raise_http
from import_ledger.core.deps import get_ledger, require_internal_token
from import_ledger.core.errors import ImportLedgerError
from import_ledger.schemas.imports import (
    CompletionCounts,
    FailureReport,
    ImportOut,
    ImportStatusUpdate,
    ProgressUpdate,
    RowBatchCreate,
    RowBatchCreated,
    RowOutcome,
    RowResultOut,
    RowUpdateResponse,
    ValidationStart,
)
from import_ledger.services.ledger import ImportLedger

router = APIRouter(dependencies=[Depends(require_internal_token)])

Ledger = Annotated[ImportLedger, Depends(get_ledger)]


@router.post("/{import_id}/status", response_model=ImportOut, summary="Patch status, totals or counters")
async def update_import_status(import_id: uuid.UUID, body: ImportStatusUpdate, ledger: Ledger):
    try:
        return await ledger.update_status(import_id, body)
    except ImportLedgerError as exc:
        raise_http(exc)


@router.post("/{import_id}/validation", response_model=ImportOut, summary="Enter VALIDATING and record the row count")
async def start_validation(import_id: uuid.UUID, body: ValidationStart, ledger: Ledger):
    try:
        return await ledger.start_validation(import_id, body.total_rows)
    except ImportLedgerError as exc:
        raise_http(exc)


@router.post("/{import_id}/processing", response_model=ImportOut, summary="Enter PROCESSING")
async def start_processing(import_id: uuid.UUID, ledger: Ledger):
    try:
        return await ledger.start_processing(import_id)
    except ImportLedgerError as exc:
        raise_http(exc)


@router.post("/{import_id}/complete", response_model=ImportOut, summary="Finish with reconciled counts")
async def complete_import(import_id: uuid.UUID, body: CompletionCounts, ledger: Ledger):
    try:
        return await ledger.complete(import_id, body.success_count, body.warning_count, body.error_count)
    except ImportLedgerError as exc:
        raise_http(exc)


@router.post("/{import_id}/fail", response_model=ImportOut, summary="Finish with an error message")
async def fail_import(import_id: uuid.UUID, body: FailureReport, ledger: Ledger):
    try:
        return await ledger.fail(import_id, body.error_message)
    except ImportLedgerError as exc:
        raise_http(exc)


@router.post(
    "/{import_id}/rows",
    response_model=RowBatchCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create the PENDING row placeholders in bulk",
)
async def create_row_results(import_id: uuid.UUID, body: RowBatchCreate, ledger: Ledger):
    try:
        created = await ledger.create_row_results(import_id, body)
    except ImportLedgerError as exc:
        raise_http(exc)
    return RowBatchCreated(created=created)


@router.post("/{import_id}/progress", response_model=RowUpdateResponse, summary="Record one row's outcome")
async def record_row_progress(import_id: uuid.UUID, body: ProgressUpdate, ledger: Ledger):
    outcome = RowOutcome(
        status=body.status,
        entity_id=body.entity_id,
        message=body.message,
        errors=body.errors,
    )
    try:
        row = await ledger.update_row_result(import_id, body.row_number, outcome)
    except ImportLedgerError as exc:
        raise_http(exc)
    return RowUpdateResponse(row=RowResultOut.model_validate(row) if row is not None else None)
