"""Import job endpoints: upload, list, inspect, follow progress, delete."""
import logging
import uuid
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.concurrency import run_in_threadpool

from import_ledger.api.v1.errors import raise_http
from import_ledger.core.config import settings
from import_ledger.core.deps import (
    Principal,
    get_current_principal,
    get_dispatcher,
    get_file_store,
    get_ledger,
    get_principal_from_query,
)
from import_ledger.core.errors import ImportLedgerError, InvalidEntityTypeError
from import_ledger.core.limiter import limiter
from import_ledger.db.session import get_sessionmaker
from import_ledger.models.import_job import ImportEntityType, ImportStatus, RowStatus, parse_entity_type
from import_ledger.schemas.imports import (
    ImportCreate,
    ImportFilter,
    ImportListResponse,
    ImportOut,
    ImportWithResultsOut,
    ProgressPollResponse,
    RowFilter,
    RowResultListResponse,
    RowResultOut,
    list_response,
)
from import_ledger.services.dispatch import CeleryImportDispatcher, build_job
from import_ledger.services.ledger import ImportLedger
from import_ledger.services.progress import ProgressCursor, format_sse, stream_progress
from import_ledger.services.storage import ImportFileStore, import_file_key

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_MIME_TYPES = {
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
ALLOWED_EXTENSIONS = (".csv", ".xls", ".xlsx")

CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
Ledger = Annotated[ImportLedger, Depends(get_ledger)]


# ─── GET /imports ───

@router.get("", response_model=ImportListResponse, summary="List imports for the caller's organization")
async def list_imports(
    principal: CurrentPrincipal,
    ledger: Ledger,
    import_status: ImportStatus | None = Query(default=None, alias="status"),
    entity_type: ImportEntityType | None = Query(default=None, alias="entityType"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.IMPORT_PAGE_SIZE_DEFAULT, ge=1, le=settings.PAGE_SIZE_MAX),
):
    filters = ImportFilter(status=import_status, entity_type=entity_type, page=page, limit=limit)
    result = await ledger.list(principal.organization_id, filters)
    return list_response(result, ImportOut, ImportListResponse)


# ─── POST /imports ───

@router.post(
    "",
    response_model=ImportOut,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a CSV/Excel file and queue it for import",
)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def create_import(
    request: Request,
    principal: CurrentPrincipal,
    ledger: Ledger,
    file_store: Annotated[ImportFileStore, Depends(get_file_store)],
    dispatcher: Annotated[CeleryImportDispatcher, Depends(get_dispatcher)],
    file: Annotated[UploadFile, File(description="CSV or Excel file, max 50 MB")],
    entity_type: Annotated[str, Form(alias="entityType")],
):
    try:
        parsed_entity_type = parse_entity_type(entity_type)
    except InvalidEntityTypeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid entity type. Must be CLIENT or TRANSACTION.",
        )

    file_name = file.filename or ""
    content_type = file.content_type or ""
    if content_type not in ALLOWED_MIME_TYPES and not file_name.lower().endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload a CSV or Excel file (.csv, .xls, .xlsx).",
        )

    content = await file.read()
    file_size = len(content)
    if file_size == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    if file_size > settings.IMPORT_MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.IMPORT_MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB limit ({file_size} bytes).",
        )

    try:
        data = ImportCreate(entity_type=parsed_entity_type, file_name=file_name, file_size=file_size)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File name must be between 1 and 255 characters.",
        )

    object_name = import_file_key(principal.organization_id, file_name)
    try:
        await run_in_threadpool(
            file_store.put,
            object_name,
            content,
            content_type or "application/octet-stream",
            {"organization-id": principal.organization_id, "user-id": principal.user_id},
        )
    except Exception as exc:
        logger.error("MinIO upload failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to store import file. Please try again.",
        )

    record = await ledger.create(principal.organization_id, principal.user_id, data, object_name)

    try:
        await run_in_threadpool(dispatcher.dispatch, build_job(record))
    except Exception as exc:
        # Not fatal: the import stays PENDING and can be re-queued
        logger.warning("Failed to enqueue import %s: %s", record.id, exc)

    return record


# ─── GET /imports/{id} ───

@router.get("/{import_id}", response_model=ImportOut, summary="Get one import")
async def get_import(import_id: uuid.UUID, principal: CurrentPrincipal, ledger: Ledger):
    try:
        return await ledger.get(principal.organization_id, import_id)
    except ImportLedgerError as exc:
        raise_http(exc)


# ─── GET /imports/{id}/results ───

@router.get(
    "/{import_id}/results",
    response_model=ImportWithResultsOut,
    summary="Get an import together with a page of its row results",
)
async def get_import_results(
    import_id: uuid.UUID,
    principal: CurrentPrincipal,
    ledger: Ledger,
    row_status: RowStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.ROW_PAGE_SIZE_DEFAULT, ge=1, le=settings.PAGE_SIZE_MAX),
):
    row_filter = RowFilter(status=row_status, page=page, limit=limit)
    try:
        record, results = await ledger.get_with_results(principal.organization_id, import_id, row_filter)
    except ImportLedgerError as exc:
        raise_http(exc)

    return ImportWithResultsOut(
        **ImportOut.model_validate(record).model_dump(),
        results=list_response(results, RowResultOut, RowResultListResponse),
    )


# ─── GET /imports/{id}/rows ───

@router.get("/{import_id}/rows", response_model=RowResultListResponse, summary="Page through row results")
async def list_import_rows(
    import_id: uuid.UUID,
    principal: CurrentPrincipal,
    ledger: Ledger,
    row_status: RowStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.ROW_PAGE_SIZE_DEFAULT, ge=1, le=settings.PAGE_SIZE_MAX),
):
    row_filter = RowFilter(status=row_status, page=page, limit=limit)
    try:
        results = await ledger.list_row_results(principal.organization_id, import_id, row_filter)
    except ImportLedgerError as exc:
        raise_http(exc)
    return list_response(results, RowResultOut, RowResultListResponse)


# ─── GET /imports/{id}/updates ───

@router.get(
    "/{import_id}/updates",
    response_model=ProgressPollResponse,
    summary="Rows changed since the previous poll; send the returned cursor back as `since`",
)
async def poll_import_updates(
    import_id: uuid.UUID,
    principal: CurrentPrincipal,
    ledger: Ledger,
    since: datetime | None = Query(default=None),
):
    cursor = ProgressCursor(ledger.rows)
    try:
        # organization check before any row is read; counters are read again
        # after the rows so they are never behind them
        await ledger.get(principal.organization_id, import_id)
        page = await cursor.poll(import_id, since)
        record = await ledger.get(principal.organization_id, import_id)
    except ImportLedgerError as exc:
        raise_http(exc)

    return ProgressPollResponse(
        import_id=record.id,
        status=record.status,
        total_rows=record.total_rows,
        processed_rows=record.processed_rows,
        success_count=record.success_count,
        warning_count=record.warning_count,
        error_count=record.error_count,
        rows=[RowResultOut.model_validate(row) for row in page.rows],
        cursor=page.cursor,
    )


# ─── GET /imports/{id}/events ───

@router.get("/{import_id}/events", summary="Server-sent progress events until the import finishes")
async def import_events(
    import_id: uuid.UUID,
    request: Request,
    principal: Annotated[Principal, Depends(get_principal_from_query)],
    sessionmaker: Annotated[async_sessionmaker[AsyncSession], Depends(get_sessionmaker)],
):
    # Checked up front so a missing import is a plain 404, not an event.
    async with sessionmaker() as db:
        try:
            await ImportLedger(db).get(principal.organization_id, import_id)
        except ImportLedgerError as exc:
            raise_http(exc)

    async def event_source():
        # The stream outlives the request-scoped session, so it opens its own.
        async with sessionmaker() as db:
            ledger = ImportLedger(db)
            events = stream_progress(
                ledger,
                ProgressCursor(ledger.rows),
                principal.organization_id,
                import_id,
                interval=settings.PROGRESS_POLL_INTERVAL_SECONDS,
            )
            async for event in events:
                yield format_sse(event)
                if await request.is_disconnected():
                    logger.debug("Progress stream for import %s closed by client", import_id)
                    break

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ─── DELETE /imports/{id} ───

@router.delete(
    "/{import_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete an import and all of its row results",
)
async def delete_import(import_id: uuid.UUID, principal: CurrentPrincipal, ledger: Ledger):
    try:
        await ledger.delete(principal.organization_id, import_id)
    except ImportLedgerError as exc:
        raise_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
