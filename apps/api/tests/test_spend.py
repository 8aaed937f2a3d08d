from datetime import date
from decimal import Decimal

from app.models.entities import Category, Family, FamilyMember, RoleEnum, Transaction, TransactionTypeEnum, User
from app.services.periods import Window
from app.services.spend import BudgetScope, descendants_of, sum_expenses

JANUARY = Window(start=date(2024, 1, 1), end=date(2024, 2, 1))


def _seed(db):
    user = User(email="spender@example.com", full_name="Spender", default_currency="VND")
    db.add(user)
    db.flush()
    family = Family(name="Spenders", currency="VND", created_by_user_id=user.id)
    db.add(family)
    db.flush()
    db.add(FamilyMember(family_id=family.id, user_id=user.id, role=RoleEnum.owner))

    food = Category(name="Food")
    db.add(food)
    db.flush()
    groceries = Category(name="Groceries", parent_id=food.id)
    db.add(groceries)
    db.flush()
    produce = Category(name="Produce", parent_id=groceries.id)
    transport = Category(name="Transport")
    db.add_all([produce, transport])
    db.flush()
    return user, family, food, groceries, produce, transport


def _tx(db, user, category, amount, day, *, family=None, currency="VND", type_=TransactionTypeEnum.expense):
    db.add(
        Transaction(
            user_id=user.id,
            family_id=family.id if family else None,
            category_id=category.id if category else None,
            type=type_,
            amount=Decimal(amount),
            currency=currency,
            transaction_date=day,
        )
    )


def test_descendants_include_whole_subtree(db_session):
    _, _, food, groceries, produce, transport = _seed(db_session)
    assert descendants_of(db_session, food.id) == {food.id, groceries.id, produce.id}
    assert descendants_of(db_session, transport.id) == {transport.id}


def test_sum_expenses_filters_scope_category_currency_and_window(db_session):
    user, family, food, groceries, produce, transport = _seed(db_session)
    _tx(db_session, user, groceries, "100000", date(2024, 1, 5))
    _tx(db_session, user, produce, "50000", date(2024, 1, 31))
    _tx(db_session, user, transport, "70000", date(2024, 1, 6))
    _tx(db_session, user, food, "1000", date(2024, 2, 1))  # outside window
    _tx(db_session, user, food, "10", date(2024, 1, 7), currency="USD")  # other currency
    _tx(db_session, user, food, "999", date(2024, 1, 8), type_=TransactionTypeEnum.income)
    _tx(db_session, user, food, "30000", date(2024, 1, 9), family=family)  # family scope
    db_session.commit()

    personal = BudgetScope(user_id=user.id)
    food_tree = descendants_of(db_session, food.id)
    assert sum_expenses(db_session, personal, food_tree, "VND", JANUARY) == Decimal("150000")
    assert sum_expenses(db_session, personal, None, "VND", JANUARY) == Decimal("220000")
    assert sum_expenses(db_session, personal, None, "USD", JANUARY) == Decimal("10")

    shared = BudgetScope(family_id=family.id)
    assert sum_expenses(db_session, shared, food_tree, "VND", JANUARY) == Decimal("30000")


def test_sum_expenses_is_zero_without_transactions(db_session):
    user, *_ = _seed(db_session)
    db_session.commit()
    total = sum_expenses(db_session, BudgetScope(user_id=user.id), None, "VND", JANUARY)
    assert total == Decimal("0")


def test_open_ended_window_has_no_upper_bound(db_session):
    user, _, food, *_ = _seed(db_session)
    _tx(db_session, user, food, "5", date(2090, 1, 1))
    db_session.commit()
    window = Window(start=date(2024, 1, 1), end=None)
    assert sum_expenses(db_session, BudgetScope(user_id=user.id), {food.id}, "VND", window) == Decimal("5")
