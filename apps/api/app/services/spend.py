from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.entities import Budget, Category, Transaction, TransactionTypeEnum
from app.services.periods import Window

ZERO = Decimal("0")


@dataclass(frozen=True)
class BudgetScope:
    """Exactly one of ``user_id`` / ``family_id`` is set."""

    user_id: int | None = None
    family_id: int | None = None

    @classmethod
    def of(cls, budget: Budget) -> "BudgetScope":
        return cls(user_id=budget.user_id, family_id=budget.family_id)


def descendants_of(db: Session, category_id: int) -> set[int]:
    """Return ``category_id`` plus every category below it in the tree."""
    seen = {category_id}
    frontier = [category_id]
    while frontier:
        children = db.execute(
            select(Category.id).where(Category.parent_id.in_(frontier))
        ).scalars().all()
        frontier = [child for child in children if child not in seen]
        seen.update(frontier)
    return seen


def sum_expenses(
    db: Session,
    scope: BudgetScope,
    category_ids: set[int] | None,
    currency: str,
    window: Window,
) -> Decimal:
    # Other currencies are excluded, not converted.
    query = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
        Transaction.type == TransactionTypeEnum.expense,
        Transaction.currency == currency,
        Transaction.transaction_date >= window.start,
    )
    if window.end is not None:
        query = query.where(Transaction.transaction_date < window.end)
    if scope.family_id is not None:
        query = query.where(Transaction.family_id == scope.family_id)
    else:
        query = query.where(Transaction.user_id == scope.user_id, Transaction.family_id.is_(None))
    if category_ids is not None:
        query = query.where(Transaction.category_id.in_(category_ids))

    total = db.execute(query).scalar_one()
    return Decimal(str(total)) if total is not None else ZERO


def budget_spend(db: Session, budget: Budget, window: Window, as_of: date) -> Decimal:
    if as_of < budget.start_date:
        return ZERO
    category_ids = descendants_of(db, budget.category_id) if budget.category_id is not None else None
    return sum_expenses(db, BudgetScope.of(budget), category_ids, budget.currency, window)
