"""Job dispatch boundary: hands new imports to the external import worker.

The descriptor built here is the whole contract the worker receives. From it
the worker fetches the file itself, then reports back through the internal
API: validation (with the row count), row placeholders, processing, one
progress call per row, and finally complete or fail.
"""
import logging

from celery import Celery

from import_ledger.models.import_job import Import
from import_ledger.schemas.imports import ImportJob

logger = logging.getLogger(__name__)


def build_job(record: Import) -> ImportJob:
    return ImportJob(
        import_id=record.id,
        organization_id=record.organization_id,
        entity_type=record.entity_type,
        file_url=record.file_url,
        created_by=record.created_by,
    )


class CeleryImportDispatcher:
    """Publishes import jobs by task name; no task code lives in this service."""

    def __init__(self, celery_app: Celery, task_name: str, queue: str):
        self.celery_app = celery_app
        self.task_name = task_name
        self.queue = queue

    def dispatch(self, job: ImportJob) -> str:
        """Send the job to the broker and return the Celery task id."""
        result = self.celery_app.send_task(
            self.task_name,
            kwargs={"job": job.model_dump(mode="json")},
            queue=self.queue,
        )
        logger.info("Queued import %s as task %s on %s", job.import_id, result.id, self.queue)
        return result.id
