import os

from celery import Celery

celery_app = Celery(
    "finance_worker",
    broker=os.environ.get("CELERY_BROKER_URL", "redis://redis:6379/0"),
    backend=os.environ.get("CELERY_RESULT_BACKEND", "redis://redis:6379/1"),
    include=["worker.tasks"],
)

celery_app.conf.beat_schedule = {
    "hourly-invitation-expiry-sweep": {
        "task": "worker.tasks.sweep_expired_invitations",
        "schedule": 3600.0,
    },
    "daily-budget-alerts": {
        "task": "worker.tasks.evaluate_budget_alerts",
        "schedule": 86400.0,
    },
}
celery_app.conf.timezone = "UTC"
