"""Structured JSON logging configuration."""
import logging
import sys
from pythonjsonlogger import jsonlogger
from import_ledger.core.config import settings
from import_ledger.middleware.request_id import request_id_ctx


def setup_logging() -> None:
    """JSON logs in production, plain text everywhere else."""
    if settings.APP_ENV == "production":
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        handler.addFilter(_RequestIdFilter())
        logging.root.handlers = [handler]
        logging.root.setLevel(logging.INFO)
        # kombu chatter drowns out the import lifecycle lines
        logging.getLogger("kombu").setLevel(logging.WARNING)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


class _RequestIdFilter(logging.Filter):
    """Stamp each record with the id of the request being served, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True
