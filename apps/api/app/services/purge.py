from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.models.entities import Budget, BudgetAlert, Family, FamilyMember, Invitation, Transaction


def purge_family(db: Session, family_id: int) -> None:
    """
    Hard-delete a family and all dependent records.

    Members and invitations belong to the family; family budgets and their alert keys
    go with it. Ledger rows are owned elsewhere, so family transactions are only detached.
    """
    budget_ids = [row[0] for row in db.execute(select(Budget.id).where(Budget.family_id == family_id)).all()]
    if budget_ids:
        db.execute(delete(BudgetAlert).where(BudgetAlert.budget_id.in_(budget_ids)))
        db.execute(delete(Budget).where(Budget.id.in_(budget_ids)))

    db.execute(update(Transaction).where(Transaction.family_id == family_id).values(family_id=None))
    db.execute(delete(Invitation).where(Invitation.family_id == family_id))
    db.execute(delete(FamilyMember).where(FamilyMember.family_id == family_id))
    db.execute(delete(Family).where(Family.id == family_id))
    db.expire_all()
