"""Expense API endpoints."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.api.deps import get_current_admin, get_db
from jewelry_store.models.admin import Admin
from jewelry_store.schemas.common import ApiResponse, Pagination
from jewelry_store.schemas.expense import (
    ExpenseCategoryCreate,
    ExpenseCategoryOut,
    ExpenseCreate,
    ExpenseList,
    ExpenseOut,
    ExpenseStats,
    ExpenseUpdate,
)
from jewelry_store.services.expense_service import ExpenseService

router = APIRouter(prefix="/admin/expenses", tags=["Expenses"])


@router.get("/categories", response_model=ApiResponse[list[ExpenseCategoryOut]])
async def list_categories(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[list[ExpenseCategoryOut]]:
    categories = await ExpenseService(db).list_categories()
    return ApiResponse(data=[ExpenseCategoryOut.model_validate(c) for c in categories])


@router.post("/categories", response_model=ApiResponse[ExpenseCategoryOut], status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: ExpenseCategoryCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ExpenseCategoryOut]:
    """Create a category. Names are unique regardless of case (409 otherwise)."""
    category = await ExpenseService(db).create_category(category_data)
    await db.commit()
    return ApiResponse(data=ExpenseCategoryOut.model_validate(category), message="Category created")


@router.get("/stats", response_model=ApiResponse[ExpenseStats])
async def get_expense_stats(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ExpenseStats]:
    stats = await ExpenseService(db).get_expense_stats()
    return ApiResponse(data=ExpenseStats(**stats))


@router.get("", response_model=ApiResponse[ExpenseList])
async def list_expenses(
    search: Optional[str] = Query(default=None, description="Matches title and description"),
    category_id: Optional[UUID] = Query(default=None, alias="categoryId"),
    date_from: Optional[datetime] = Query(default=None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(default=None, alias="dateTo"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ExpenseList]:
    """List expenses, most recent expense date first."""
    expenses, total = await ExpenseService(db).list_expenses(
        search=search,
        category_id=category_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=ExpenseList(
            expenses=[ExpenseOut.model_validate(e) for e in expenses],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.post("", response_model=ApiResponse[ExpenseOut], status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ExpenseOut]:
    """
    Record an expense.

    **expenseDate** defaults to now. The category must exist (400 otherwise).
    """
    expense = await ExpenseService(db).create_expense(expense_data, added_by=admin.id)
    await db.commit()
    return ApiResponse(data=ExpenseOut.model_validate(expense), message="Expense recorded")


@router.get("/{expense_id}", response_model=ApiResponse[ExpenseOut])
async def get_expense(
    expense_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ExpenseOut]:
    expense = await ExpenseService(db).get_expense(expense_id)
    return ApiResponse(data=ExpenseOut.model_validate(expense))


@router.put("/{expense_id}", response_model=ApiResponse[ExpenseOut])
async def update_expense(
    expense_id: UUID,
    update_data: ExpenseUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[ExpenseOut]:
    expense = await ExpenseService(db).update_expense(expense_id, update_data)
    await db.commit()
    return ApiResponse(data=ExpenseOut.model_validate(expense), message="Expense updated")


@router.delete("/{expense_id}", response_model=ApiResponse[None])
async def delete_expense(
    expense_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> ApiResponse[None]:
    await ExpenseService(db).delete_expense(expense_id)
    await db.commit()
    return ApiResponse(message="Expense deleted")
