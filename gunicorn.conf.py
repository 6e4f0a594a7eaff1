"""Gunicorn production configuration for the import ledger API.

Run from backend/:  gunicorn -c ../gunicorn.conf.py import_ledger.main:app
"""
import multiprocessing
import os

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
# progress streams stay open until the import finishes
timeout = int(os.getenv("GUNICORN_TIMEOUT", 300))
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
preload_app = False
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
