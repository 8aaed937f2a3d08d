import logging
import os

import httpx

from worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def _api_base() -> str:
    return os.environ.get("FINANCE_API_BASE_URL", "http://api:8000/v1").rstrip("/")


def _post_admin(job: str, path: str, timeout: float) -> dict:
    token = os.environ.get("INTERNAL_ADMIN_TOKEN", "")
    if not token:
        return {"job": job, "status": "skipped", "reason": "missing INTERNAL_ADMIN_TOKEN"}

    try:
        resp = httpx.post(
            f"{_api_base()}{path}",
            headers={"X-Internal-Admin-Token": token},
            timeout=timeout,
        )
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        # The next beat run retries; the API side is idempotent for both jobs.
        logger.warning("%s failed: %s", job, exc)
        return {"job": job, "status": "error", "error": str(exc)}
    return {"job": job, "status": "ok", "result": resp.json()}


@celery_app.task
def sweep_expired_invitations():
    return _post_admin("invitation_expiry_sweep", "/admin/invitations/sweep", timeout=30.0)


@celery_app.task
def evaluate_budget_alerts():
    return _post_admin("budget_alerts", "/admin/budgets/evaluate", timeout=120.0)
