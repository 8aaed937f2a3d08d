from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.config import settings
from app.core.db import get_db
from app.core.errors import NotFound
from app.models.entities import Budget, BudgetPeriodEnum, Category, RoleEnum, User
from app.schemas.budgets import (
    BudgetCreate,
    BudgetListResponse,
    BudgetResponse,
    BudgetStatusResponse,
    BudgetUpdate,
)
from app.services.access import require_family, require_family_role
from app.services.budget import (
    BudgetStatus,
    accessible_budgets,
    emit_budget_alerts,
    evaluate_budget,
    require_budget,
    require_budget_editor,
    require_budget_viewer,
)
from app.services.notifications import NotificationEmitter, get_notification_emitter

router = APIRouter(prefix="/v1/budgets", tags=["budgets"])


def _to_status_response(status: BudgetStatus, as_of: date) -> BudgetStatusResponse:
    return BudgetStatusResponse(
        budget_id=status.budget_id,
        as_of=as_of,
        window_start=status.window_start,
        window_end=status.window_end,
        amount=status.amount,
        currency=status.currency,
        spent_amount=status.spent_amount,
        remaining_amount=status.remaining_amount,
        spent_percentage=status.spent_percentage,
        alert_threshold=status.alert_threshold,
        is_over_budget=status.is_over_budget,
        is_near_limit=status.is_near_limit,
    )


def _to_budget_response(budget: Budget, status: BudgetStatus, as_of: date) -> BudgetResponse:
    return BudgetResponse(
        id=budget.id,
        name=budget.name,
        user_id=budget.user_id,
        family_id=budget.family_id,
        category_id=budget.category_id,
        amount=budget.amount,
        currency=budget.currency,
        period=budget.period.value,
        start_date=budget.start_date,
        end_date=budget.end_date,
        alert_threshold=budget.alert_threshold,
        is_active=budget.is_active,
        created_at=budget.created_at,
        status=_to_status_response(status, as_of),
    )


def _evaluate_and_respond(
    db: Session,
    budgets: list[Budget],
    as_of: date,
    sink: NotificationEmitter,
) -> list[BudgetResponse]:
    evaluations = [(budget, evaluate_budget(db, budget, as_of)) for budget in budgets]
    db.commit()
    emit_budget_alerts([alert for _, evaluation in evaluations for alert in evaluation.alerts], sink=sink)
    return [_to_budget_response(budget, evaluation.status, as_of) for budget, evaluation in evaluations]


def _require_category(db: Session, category_id: int | None) -> None:
    if category_id is not None and db.get(Category, category_id) is None:
        raise NotFound("category not found")


def _apply(budget: Budget, payload: BudgetCreate | BudgetUpdate, default_currency: str) -> None:
    period = BudgetPeriodEnum(payload.period)
    budget.name = payload.name
    budget.category_id = payload.category_id
    budget.amount = payload.amount
    budget.currency = payload.currency or default_currency
    budget.period = period
    budget.start_date = payload.start_date
    # Rolling periods derive their window end; only custom budgets keep one.
    budget.end_date = payload.end_date if period == BudgetPeriodEnum.custom else None
    budget.alert_threshold = (
        payload.alert_threshold if payload.alert_threshold is not None else settings.default_alert_threshold
    )


@router.get("", response_model=BudgetListResponse)
def list_budgets(
    family_id: int | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    as_of: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    target_date = as_of or date.today()
    budgets = accessible_budgets(db, user.id, family_id=family_id, include_inactive=include_inactive)
    return BudgetListResponse(items=_evaluate_and_respond(db, budgets, target_date, sink))


@router.post("", response_model=BudgetResponse, status_code=201)
def create_budget(
    payload: BudgetCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    if payload.family_id is not None:
        family = require_family(db, payload.family_id)
        require_family_role(db, family.id, user.id, RoleEnum.admin)
        budget = Budget(family_id=family.id, is_active=True)
        default_currency = family.currency
    else:
        budget = Budget(user_id=user.id, is_active=True)
        default_currency = user.default_currency
    _require_category(db, payload.category_id)
    _apply(budget, payload, default_currency)
    db.add(budget)
    db.flush()
    return _evaluate_and_respond(db, [budget], date.today(), sink)[0]


@router.get("/{budget_id}", response_model=BudgetResponse)
def get_budget(
    budget_id: int,
    as_of: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    budget = require_budget(db, budget_id)
    require_budget_viewer(db, budget, user.id)
    return _evaluate_and_respond(db, [budget], as_of or date.today(), sink)[0]


@router.get("/{budget_id}/status", response_model=BudgetStatusResponse)
def get_budget_status(
    budget_id: int,
    as_of: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    target_date = as_of or date.today()
    budget = require_budget(db, budget_id)
    require_budget_viewer(db, budget, user.id)
    evaluation = evaluate_budget(db, budget, target_date)
    db.commit()
    emit_budget_alerts(evaluation.alerts, sink=sink)
    return _to_status_response(evaluation.status, target_date)


@router.put("/{budget_id}", response_model=BudgetResponse)
def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    sink: NotificationEmitter = Depends(get_notification_emitter),
):
    budget = require_budget(db, budget_id)
    require_budget_editor(db, budget, user.id)
    _require_category(db, payload.category_id)
    if budget.family_id is not None:
        default_currency = require_family(db, budget.family_id).currency
    else:
        default_currency = user.default_currency
    _apply(budget, payload, default_currency)
    db.flush()
    return _evaluate_and_respond(db, [budget], date.today(), sink)[0]


@router.delete("/{budget_id}", status_code=204)
def deactivate_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    budget = require_budget(db, budget_id)
    require_budget_editor(db, budget, user.id)
    budget.is_active = False
    db.commit()
