from celery import Celery

from import_ledger.core.config import settings

# Producer side only: the import worker that consumes these tasks runs in
# its own deployment and calls back over the internal HTTP API.
celery_app = Celery(
    "import_ledger",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    broker_connection_retry_on_startup=True,
    task_routes={
        settings.IMPORT_TASK_NAME: {"queue": settings.IMPORT_QUEUE_NAME},
    },
)
