"""
Production Server Configuration

Run the SalesPulse API with Uvicorn workers under Gunicorn.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
# a cold-start sync of a large owner pages through the whole store
timeout = 300
keepalive = 5
graceful_timeout = 30

proc_name = "salespulse-api"

daemon = False
pidfile = "/tmp/gunicorn-salespulse.pid"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = "-"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'


def post_fork(server, worker):
    """Each worker gets its own structlog configuration."""
    from salespulse.config.logging import configure_logging
    configure_logging()
