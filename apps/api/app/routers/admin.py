from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.models.entities import Family
from app.services.access import require_family
from app.services.budget import emit_budget_alerts, evaluate_active_budgets, evaluate_affected_budgets
from app.services.invitations import sweep_expired
from app.services.notifications import NotificationEmitter, get_notification_emitter
from app.services.purge import purge_family

router = APIRouter(prefix="/v1/admin", tags=["admin"])


class LedgerEvent(BaseModel):
    user_id: int
    family_id: int | None = None
    category_id: int | None = None
    transaction_date: date


def _require_internal_token(x_internal_admin_token: str | None) -> None:
    if not x_internal_admin_token or x_internal_admin_token != settings.internal_admin_token:
        raise HTTPException(status_code=401, detail="invalid internal admin token")


@router.get("/families")
def list_families_admin(
    db: Session = Depends(get_db),
    x_internal_admin_token: str | None = Header(default=None, alias="X-Internal-Admin-Token"),
):
    _require_internal_token(x_internal_admin_token)
    families = db.execute(select(Family).order_by(Family.id.asc())).scalars().all()
    return {"items": [{"id": fam.id, "name": fam.name} for fam in families]}


@router.delete("/families/{family_id}", status_code=204)
def delete_family_admin(
    family_id: int,
    db: Session = Depends(get_db),
    x_internal_admin_token: str | None = Header(default=None, alias="X-Internal-Admin-Token"),
):
    _require_internal_token(x_internal_admin_token)

    family = require_family(db, family_id)
    purge_family(db, family.id)
    db.commit()


@router.post("/invitations/sweep")
def sweep_invitations_admin(
    db: Session = Depends(get_db),
    x_internal_admin_token: str | None = Header(default=None, alias="X-Internal-Admin-Token"),
):
    _require_internal_token(x_internal_admin_token)
    expired = sweep_expired(db)
    db.commit()
    return {"expired": expired}


@router.post("/budgets/evaluate")
def evaluate_budgets_admin(
    as_of: date | None = None,
    db: Session = Depends(get_db),
    sink: NotificationEmitter = Depends(get_notification_emitter),
    x_internal_admin_token: str | None = Header(default=None, alias="X-Internal-Admin-Token"),
):
    _require_internal_token(x_internal_admin_token)
    evaluations = evaluate_active_budgets(db, as_of or date.today())
    db.commit()
    alerts = [alert for evaluation in evaluations for alert in evaluation.alerts]
    return {"evaluated": len(evaluations), "alerts": emit_budget_alerts(alerts, sink=sink)}


@router.post("/ledger-events")
def ledger_event_admin(
    payload: LedgerEvent,
    db: Session = Depends(get_db),
    sink: NotificationEmitter = Depends(get_notification_emitter),
    x_internal_admin_token: str | None = Header(default=None, alias="X-Internal-Admin-Token"),
):
    _require_internal_token(x_internal_admin_token)
    evaluations = evaluate_affected_budgets(
        db,
        user_id=payload.user_id,
        family_id=payload.family_id,
        category_id=payload.category_id,
        as_of=payload.transaction_date,
    )
    db.commit()
    alerts = [alert for evaluation in evaluations for alert in evaluation.alerts]
    return {
        "evaluated": [evaluation.status.budget_id for evaluation in evaluations],
        "alerts": emit_budget_alerts(alerts, sink=sink),
    }
