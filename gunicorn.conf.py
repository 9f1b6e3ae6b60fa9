"""
Gunicorn configuration for the EventBoard API.

Each worker owns its response cache. With the in-process memory backend,
workers do not share entries or invalidations; run CACHE_BACKEND=redis when
WEB_CONCURRENCY is above 1.
"""

import multiprocessing
import os

bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '3001')}"
backlog = 2048

if os.getenv("CACHE_BACKEND", "memory").lower() == "memory":
    workers = 1
else:
    workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 1000
max_requests_jitter = 50
timeout = 60
graceful_timeout = 30
keepalive = 5

proc_name = "eventboard"

# Application logs are structured JSON on stdout; gunicorn's own go to stderr.
accesslog = os.getenv("ACCESS_LOG")
errorlog = os.getenv("ERROR_LOG", "-")
loglevel = os.getenv("LOG_LEVEL", "info").lower()
capture_output = True

daemon = False
pidfile = None


def when_ready(server):
    """Called just after the master process is initialized."""
    server.log.info(f"EventBoard ready, spawning {workers} worker(s)")


def post_fork(server, worker):
    server.log.info(f"Worker spawned (pid: {worker.pid})")


def worker_abort(worker):
    """Called when a worker received the SIGABRT signal, usually a timeout."""
    worker.log.info(f"Worker {worker.pid} aborted")


def on_exit(server):
    server.log.info("Shutting down EventBoard")
