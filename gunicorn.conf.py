"""
Gunicorn configuration for the Proposal Insights API.

Run with:  gunicorn -c gunicorn.conf.py insights.main:app

Env vars that override defaults:
  PORT     - TCP port to bind
  WORKERS  - number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# The /analytics/track rate limiter is per process: each worker keeps its
# own counters, so the effective per-IP budget is WORKERS x the limit.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

# Viewer pages send time_spent beacons in bursts; keep connections warm.
keepalive = 5

# Analytics reads are bounded by STORE_TIMEOUT_SECONDS; anything past this is stuck.
timeout = 60

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
