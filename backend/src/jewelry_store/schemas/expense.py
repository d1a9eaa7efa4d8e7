"""Pydantic schemas for expenses and expense categories."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from jewelry_store.schemas.common import CamelModel, Pagination


class ExpenseCategoryCreate(CamelModel):
    """New category."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None


class ExpenseCategoryOut(CamelModel):
    """Category as returned by the API."""

    id: UUID
    name: str
    description: str | None
    is_active: bool


class ExpenseCreate(CamelModel):
    """Schema for recording an expense."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    amount: Decimal = Field(..., gt=0)
    category_id: UUID
    expense_date: datetime | None = None
    receipt: str | None = Field(default=None, max_length=500)
    tags: list[str] = Field(default_factory=list)


class ExpenseUpdate(CamelModel):
    """Schema for updating an expense (all fields optional)."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    category_id: UUID | None = None
    expense_date: datetime | None = None
    receipt: str | None = Field(default=None, max_length=500)
    tags: list[str] | None = None


class ExpenseOut(CamelModel):
    """Expense as returned by the API."""

    id: UUID
    title: str
    description: str | None
    amount: float
    category_id: UUID
    category: ExpenseCategoryOut | None = None
    expense_date: datetime
    receipt: str | None
    tags: list[str]
    created_at: datetime


class ExpenseList(CamelModel):
    """Paginated expense listing."""

    expenses: list[ExpenseOut]
    pagination: Pagination


class CategoryTotal(CamelModel):
    category: str
    amount: float
    count: int


class ExpenseStats(CamelModel):
    """Aggregate expense figures."""

    total_amount: float
    total_count: int
    this_month_amount: float
    by_category: list[CategoryTotal]
