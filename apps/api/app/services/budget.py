from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import InvalidPeriod, NotFound
from app.models.entities import AlertKindEnum, Budget, BudgetAlert, FamilyMember, RoleEnum
from app.services.access import require_family, require_family_member, require_family_role
from app.services.notifications import NotificationEmitter, Subjects, publish_event
from app.services.periods import Window, current_window
from app.services.spend import budget_spend, descendants_of

logger = logging.getLogger(__name__)

PERCENT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class BudgetStatus:
    budget_id: int
    window_start: date
    window_end: date | None
    amount: Decimal
    currency: str
    spent_amount: Decimal
    remaining_amount: Decimal
    spent_percentage: float
    alert_threshold: int
    is_over_budget: bool
    is_near_limit: bool


@dataclass(frozen=True)
class BudgetAlertEvent:
    budget_id: int
    family_id: int | None
    user_id: int | None
    kind: AlertKindEnum
    spent_percentage: float
    window_start: date

    def payload(self) -> dict[str, Any]:
        return {
            "budget_id": self.budget_id,
            "family_id": self.family_id,
            "user_id": self.user_id,
            "kind": self.kind.value,
            "spent_percentage": self.spent_percentage,
            "window_start": self.window_start.isoformat(),
        }


@dataclass
class BudgetEvaluation:
    status: BudgetStatus
    alerts: list[BudgetAlertEvent] = field(default_factory=list)


def spent_percentage(spent: Decimal, amount: Decimal) -> float:
    if amount == 0:
        return 0.0
    return float((spent / amount * 100).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP))


def claim_alert(db: Session, budget: Budget, window: Window, kind: AlertKindEnum, percentage: float) -> bool:
    """
    Record that ``kind`` fired for this budget window.

    Returns False when the key was already claimed, by an earlier evaluation or by a
    concurrent one that won the unique-constraint race.
    """
    existing = db.execute(
        select(BudgetAlert.id).where(
            BudgetAlert.budget_id == budget.id,
            BudgetAlert.window_start == window.start,
            BudgetAlert.kind == kind,
        )
    ).first()
    if existing is not None:
        return False

    try:
        with db.begin_nested():
            db.add(
                BudgetAlert(
                    budget_id=budget.id,
                    window_start=window.start,
                    kind=kind,
                    spent_percentage=percentage,
                )
            )
    except IntegrityError:
        return False
    return True


def evaluate_budget(db: Session, budget: Budget, as_of: date) -> BudgetEvaluation:
    window = current_window(budget.period, budget.start_date, as_of, budget.end_date)
    spent = budget_spend(db, budget, window, as_of)
    amount = Decimal(budget.amount)

    percentage = spent_percentage(spent, amount)
    is_over = spent > amount
    is_near = percentage >= budget.alert_threshold and not is_over

    status = BudgetStatus(
        budget_id=budget.id,
        window_start=window.start,
        window_end=window.end,
        amount=amount,
        currency=budget.currency,
        spent_amount=spent,
        remaining_amount=amount - spent,
        spent_percentage=percentage,
        alert_threshold=budget.alert_threshold,
        is_over_budget=is_over,
        is_near_limit=is_near,
    )

    evaluation = BudgetEvaluation(status=status)
    if not budget.is_active or not (is_over or is_near):
        return evaluation

    kind = AlertKindEnum.over_budget if is_over else AlertKindEnum.near_limit
    if claim_alert(db, budget, window, kind, percentage):
        logger.info("budget %s crossed %s at %.2f%% (window %s)", budget.id, kind.value, percentage, window.start)
        evaluation.alerts.append(
            BudgetAlertEvent(
                budget_id=budget.id,
                family_id=budget.family_id,
                user_id=budget.user_id,
                kind=kind,
                spent_percentage=percentage,
                window_start=window.start,
            )
        )
    return evaluation


def emit_budget_alerts(events: list[BudgetAlertEvent], sink: NotificationEmitter | None = None) -> int:
    """Hand committed alert events to the emitter. Returns how many were delivered."""
    return sum(1 for event in events if publish_event(Subjects.BUDGET_ALERT, event.payload(), sink=sink))


def evaluate_affected_budgets(
    db: Session,
    *,
    user_id: int,
    family_id: int | None,
    category_id: int | None,
    as_of: date,
) -> list[BudgetEvaluation]:
    """Re-evaluate the active budgets a ledger change on ``as_of`` can move."""
    query = select(Budget).where(Budget.is_active.is_(True))
    if family_id is not None:
        query = query.where(Budget.family_id == family_id)
    else:
        query = query.where(Budget.user_id == user_id)

    evaluations: list[BudgetEvaluation] = []
    for budget in db.execute(query.order_by(Budget.id.asc())).scalars().all():
        if budget.category_id is not None:
            if category_id is None or category_id not in descendants_of(db, budget.category_id):
                continue
        evaluations.append(evaluate_budget(db, budget, as_of))
    return evaluations


def evaluate_active_budgets(db: Session, as_of: date) -> list[BudgetEvaluation]:
    budgets = db.execute(select(Budget).where(Budget.is_active.is_(True)).order_by(Budget.id.asc())).scalars().all()
    evaluations: list[BudgetEvaluation] = []
    for budget in budgets:
        try:
            evaluations.append(evaluate_budget(db, budget, as_of))
        except InvalidPeriod:
            logger.warning("skipping budget %s with invalid period", budget.id)
    return evaluations


def require_budget(db: Session, budget_id: int) -> Budget:
    budget = db.get(Budget, budget_id)
    if budget is None:
        raise NotFound("budget not found")
    return budget


def require_budget_viewer(db: Session, budget: Budget, user_id: int) -> None:
    if budget.family_id is not None:
        require_family_member(db, budget.family_id, user_id)
    elif budget.user_id != user_id:
        # Personal budgets are invisible to everyone else.
        raise NotFound("budget not found")


def require_budget_editor(db: Session, budget: Budget, user_id: int) -> None:
    if budget.family_id is not None:
        require_family_role(db, budget.family_id, user_id, RoleEnum.admin)
    elif budget.user_id != user_id:
        raise NotFound("budget not found")


def accessible_budgets(
    db: Session,
    user_id: int,
    family_id: int | None = None,
    include_inactive: bool = False,
) -> list[Budget]:
    if family_id is not None:
        require_family(db, family_id)
        require_family_member(db, family_id, user_id)
        query = select(Budget).where(Budget.family_id == family_id)
    else:
        family_ids = select(FamilyMember.family_id).where(FamilyMember.user_id == user_id)
        query = select(Budget).where(or_(Budget.user_id == user_id, Budget.family_id.in_(family_ids)))
    if not include_inactive:
        query = query.where(Budget.is_active.is_(True))
    return list(db.execute(query.order_by(Budget.id.asc())).scalars().all())
