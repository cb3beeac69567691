# Gunicorn configuration for the KGP membership API
#
# The notification scheduler runs inside the app process, so keep a single
# worker unless SCHEDULER_ENABLED is false here and delivery runs elsewhere.
import os

workers = int(os.environ.get("WEB_CONCURRENCY", "1"))
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:5000")
timeout = int(os.environ.get("GUNICORN_TIMEOUT_SECONDS", "60"))
graceful_timeout = int(os.environ.get("GUNICORN_GRACEFUL_TIMEOUT_SECONDS", "30"))


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s).", worker.pid)
