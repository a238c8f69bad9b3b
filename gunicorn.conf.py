"""
Gunicorn configuration for the kindness journal trends service.

Env vars that override defaults:
  PORT     — TCP port to bind (default: 8000)
  WORKERS  — number of worker processes (default: 2)

Reflection debounce state is held per worker process, so with N workers a
user can be admitted at most N times per debounce window. The unique
constraint on reflections still keeps one row per period.
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

workers = int(os.environ.get("WORKERS", "2"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Must exceed AI_TIMEOUT_SECONDS so a slow provider surfaces as a 504, not a killed worker.
timeout = 120

# Stdout only; the platform captures it.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
