from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

PERIOD_PATTERN = "^(daily|weekly|monthly|yearly|custom)$"


class BudgetWrite(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    category_id: int | None = None
    amount: Decimal = Field(gt=0, max_digits=19, decimal_places=4)
    currency: str | None = Field(default=None, pattern="^[A-Z]{3}$")
    period: str = Field(default="monthly", pattern=PERIOD_PATTERN)
    start_date: date
    end_date: date | None = None
    alert_threshold: int | None = Field(default=None, ge=1, le=100)

    @model_validator(mode="after")
    def _check_custom_range(self):
        if self.period == "custom" and self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BudgetCreate(BudgetWrite):
    family_id: int | None = None


class BudgetUpdate(BudgetWrite):
    pass


class BudgetStatusResponse(BaseModel):
    budget_id: int
    as_of: date
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


class BudgetResponse(BaseModel):
    id: int
    name: str
    user_id: int | None
    family_id: int | None
    category_id: int | None
    amount: Decimal
    currency: str
    period: str
    start_date: date
    end_date: date | None
    alert_threshold: int
    is_active: bool
    created_at: datetime
    status: BudgetStatusResponse


class BudgetListResponse(BaseModel):
    items: list[BudgetResponse]
