"""Progress cursor: incremental "what changed since my last poll" reads.

Nothing is held server-side. A caller keeps the ``cursor`` from the previous
poll and hands it back as ``since``. The cursor is the moment captured just
before the query ran, not the newest ``updated_at`` seen, so a row written
while the query was in flight is returned again next time instead of being
skipped.
"""
import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi.encoders import jsonable_encoder

from import_ledger.core.errors import ImportNotFoundError
from import_ledger.db.base import utcnow
from import_ledger.models.import_job import Import, ImportRowResult, ImportStatus
from import_ledger.schemas.imports import ProgressEvent, ProgressEventType, RowResultOut
from import_ledger.services.ledger import ImportLedger
from import_ledger.services.row_results import RowResultStore

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class ProgressPage:
    rows: list[ImportRowResult]
    cursor: datetime


class ProgressCursor:
    def __init__(self, rows: RowResultStore, clock: Callable[[], datetime] = utcnow):
        self.rows = rows
        self.clock = clock

    async def poll(self, import_id: uuid.UUID, since: datetime | None = None) -> ProgressPage:
        """Rows updated after ``since`` (everything when omitted), plus the next cursor."""
        boundary = self.clock()
        rows = await self.rows.get_recent_row_updates(import_id, since or EPOCH)
        return ProgressPage(rows=rows, cursor=boundary)


# ─── Event stream ───

def progress_summary(record: Import) -> dict:
    return {
        "status": record.status,
        "total_rows": record.total_rows,
        "processed_rows": record.processed_rows,
        "success_count": record.success_count,
        "warning_count": record.warning_count,
        "error_count": record.error_count,
    }


def _event(event_type: ProgressEventType, data: dict) -> ProgressEvent:
    return ProgressEvent(type=event_type, data=jsonable_encoder(data), timestamp=utcnow())


def _completed(record: Import) -> ProgressEvent:
    data = progress_summary(record)
    data["error_message"] = record.error_message
    data["completed_at"] = record.completed_at
    return _event(ProgressEventType.COMPLETED, data)


async def stream_progress(
    ledger: ImportLedger,
    cursor: ProgressCursor,
    organization_id: str,
    import_id: uuid.UUID,
    interval: float,
) -> AsyncIterator[ProgressEvent]:
    """Compose ledger and cursor reads into events until the import finishes.

    Emits ``connected`` first, then per tick any ``row_update`` events, a
    ``status_change`` when the status moved, and a ``ping``. Ends with
    ``completed`` once the import is COMPLETED or FAILED, or with ``error``
    if the import disappears mid-stream.

    Each tick's events are built before its transaction is ended, so the
    session holds no connection while the generator is suspended or sleeping.
    """
    since = cursor.clock()
    record = await ledger.get(organization_id, import_id)
    current_status = ImportStatus(record.status)
    events = [_event(ProgressEventType.CONNECTED, {"import_id": record.id, **progress_summary(record)})]
    if current_status.is_terminal:
        events.append(_completed(record))
    await ledger.db.rollback()

    for event in events:
        yield event
    if current_status.is_terminal:
        return

    while True:
        try:
            page = await cursor.poll(import_id, since)
            record = await ledger.get(organization_id, import_id)
        except ImportNotFoundError:
            await ledger.db.rollback()
            logger.info("Import %s vanished while streaming progress", import_id)
            yield _event(ProgressEventType.ERROR, {"message": "Import not found"})
            return

        events = [
            _event(ProgressEventType.ROW_UPDATE, RowResultOut.model_validate(row).model_dump())
            for row in page.rows
        ]
        since = page.cursor

        if record.status != current_status.value:
            current_status = ImportStatus(record.status)
            events.append(_event(ProgressEventType.STATUS_CHANGE, progress_summary(record)))

        finished = current_status.is_terminal
        events.append(_completed(record) if finished else _event(ProgressEventType.PING, {}))
        await ledger.db.rollback()

        for event in events:
            yield event
        if finished:
            return
        await asyncio.sleep(interval)


def format_sse(event: ProgressEvent) -> str:
    """Render one event in text/event-stream framing."""
    payload = {"data": event.data, "timestamp": event.timestamp.isoformat()}
    return f"event: {event.type.value}\ndata: {json.dumps(payload)}\n\n"
