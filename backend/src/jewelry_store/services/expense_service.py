"""Expense and expense category service."""
from datetime import datetime
from typing import Callable, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.exceptions import BadRequestError, ConflictError, NotFoundError
from jewelry_store.metrics import expenses_recorded_total
from jewelry_store.models.base import utcnow
from jewelry_store.models.expense import Expense, ExpenseCategory
from jewelry_store.schemas.expense import ExpenseCategoryCreate, ExpenseCreate, ExpenseUpdate
from jewelry_store.utils.currency import round_money

logger = structlog.get_logger(__name__)


class ExpenseService:
    """Service layer for expense operations."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        """Initialize expense service with database session."""
        self.db = db
        self.clock = clock

    # Categories

    async def list_categories(self, active_only: bool = True) -> Sequence[ExpenseCategory]:
        stmt = select(ExpenseCategory).order_by(ExpenseCategory.name)
        if active_only:
            stmt = stmt.where(ExpenseCategory.is_active.is_(True))
        return (await self.db.execute(stmt)).scalars().all()

    async def create_category(self, category_data: ExpenseCategoryCreate) -> ExpenseCategory:
        """
        Create an expense category.

        Raises:
            ConflictError: If the name is taken
        """
        name = category_data.name.strip()
        existing = await self.db.scalar(select(ExpenseCategory.id).where(func.lower(ExpenseCategory.name) == name.lower()))
        if existing:
            raise ConflictError(f"Expense category '{name}' already exists")

        category = ExpenseCategory(name=name, description=category_data.description)
        self.db.add(category)
        await self.db.flush()
        await self.db.refresh(category)
        return category

    # Expenses

    async def list_expenses(
        self,
        search: Optional[str] = None,
        category_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[Sequence[Expense], int]:
        """
        List expenses, most recent expense date first.

        Returns:
            Tuple of (expenses, total matching count)
        """
        page, limit = max(page, 1), max(1, min(limit, 100))
        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(Expense.title.ilike(pattern), Expense.description.ilike(pattern)))
        if category_id is not None:
            filters.append(Expense.category_id == category_id)
        if date_from is not None:
            filters.append(Expense.expense_date >= date_from)
        if date_to is not None:
            filters.append(Expense.expense_date <= date_to)

        total = await self.db.scalar(select(func.count(Expense.id)).where(*filters))
        result = await self.db.execute(
            select(Expense)
            .where(*filters)
            .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().unique().all(), int(total or 0)

    async def get_expense(self, expense_id: UUID) -> Expense:
        """
        Get expense by ID.

        Raises:
            NotFoundError: If the expense does not exist
        """
        expense = await self.db.get(Expense, expense_id)
        if expense is None:
            raise NotFoundError("Expense", expense_id)
        return expense

    async def create_expense(self, expense_data: ExpenseCreate, added_by: Optional[UUID] = None) -> Expense:
        """
        Record an expense.

        Raises:
            BadRequestError: If the category does not exist
        """
        await self._ensure_category(expense_data.category_id)

        data = expense_data.model_dump()
        data["expense_date"] = data["expense_date"] or self.clock()
        expense = Expense(**data, added_by=added_by)
        self.db.add(expense)
        await self.db.flush()
        await self.db.refresh(expense)

        expenses_recorded_total.inc()
        logger.info("expense_created", expense_id=str(expense.id), amount=float(expense.amount))
        return expense

    async def update_expense(self, expense_id: UUID, update_data: ExpenseUpdate) -> Expense:
        """Update only the provided fields."""
        expense = await self.get_expense(expense_id)
        changes = update_data.model_dump(exclude_unset=True)
        if changes.get("category_id") is not None:
            await self._ensure_category(changes["category_id"])

        for field, value in changes.items():
            if value is None and field in ("title", "amount", "category_id", "expense_date", "tags"):
                continue
            setattr(expense, field, value)

        await self.db.flush()
        await self.db.refresh(expense)
        logger.info("expense_updated", expense_id=str(expense_id), fields=sorted(changes))
        return expense

    async def delete_expense(self, expense_id: UUID) -> None:
        expense = await self.get_expense(expense_id)
        await self.db.delete(expense)
        await self.db.flush()
        logger.info("expense_deleted", expense_id=str(expense_id))

    async def get_expense_stats(self) -> dict:
        """Totals overall, for the current month and per category."""
        total_amount, total_count = (
            await self.db.execute(select(func.coalesce(func.sum(Expense.amount), 0), func.count(Expense.id)))
        ).one()

        month_start = self.clock().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        this_month = await self.db.scalar(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(Expense.expense_date >= month_start)
        )

        rows = await self.db.execute(
            select(ExpenseCategory.name, func.sum(Expense.amount), func.count(Expense.id))
            .join(Expense, Expense.category_id == ExpenseCategory.id)
            .group_by(ExpenseCategory.name)
            .order_by(func.sum(Expense.amount).desc())
        )
        return {
            "total_amount": round_money(total_amount),
            "total_count": int(total_count),
            "this_month_amount": round_money(this_month or 0),
            "by_category": [
                {"category": name, "amount": round_money(amount), "count": int(count)} for name, amount, count in rows
            ],
        }

    async def _ensure_category(self, category_id: UUID) -> None:
        category = await self.db.get(ExpenseCategory, category_id)
        if category is None or not category.is_active:
            raise BadRequestError(f"Expense category {category_id} does not exist")
