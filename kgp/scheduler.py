import threading
import time
from datetime import UTC, datetime

from apscheduler.schedulers.background import BackgroundScheduler


def init_scheduler(app):
    scheduler = BackgroundScheduler()
    interval_minutes = max(1, int(app.config.get("SCHEDULER_NOTIFICATION_INTERVAL_MINUTES", 1)))
    state_lock = threading.Lock()
    app.scheduler_state_lock = state_lock
    app.scheduler_state = {"updated_at": None, "jobs": {}}

    def _record_job_result(job_id, *, status, duration_ms, error=None):
        now = datetime.now(UTC).isoformat()
        with state_lock:
            jobs = app.scheduler_state.setdefault("jobs", {})
            entry = jobs.setdefault(job_id, {"consecutive_failures": 0})
            entry["last_status"] = status
            entry["last_run_at"] = now
            entry["last_duration_ms"] = round(duration_ms, 2)
            if status == "ok":
                entry["last_success_at"] = now
                entry["last_error"] = None
                entry["consecutive_failures"] = 0
            else:
                entry["last_error_at"] = now
                entry["last_error"] = (error or "unknown")[:500]
                entry["consecutive_failures"] = int(entry.get("consecutive_failures", 0)) + 1
            app.scheduler_state["updated_at"] = now

    def _run_job(job_id, fn):
        started = time.perf_counter()
        try:
            result = fn()
        except Exception:
            # Jobs touch the database and the email provider; neither may kill the scheduler thread.
            app.logger.exception("Scheduler job %s crashed.", job_id)
            _record_job_result(
                job_id,
                status="error",
                duration_ms=(time.perf_counter() - started) * 1000,
                error="Unhandled exception",
            )
            return

        duration_ms = (time.perf_counter() - started) * 1000
        _record_job_result(job_id, status="ok", duration_ms=duration_ms)
        if result:
            app.logger.info("Scheduler job %s completed in %.2f ms (%s item(s)).", job_id, duration_ms, result)

    def run_notifications():
        with app.app_context():
            from .notifications import deliver_pending_notifications

            _run_job("deliver_notifications", deliver_pending_notifications)

    scheduler.add_job(
        func=run_notifications,
        trigger="interval",
        minutes=interval_minutes,
        id="deliver_notifications",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.scheduler = scheduler
