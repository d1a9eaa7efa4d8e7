"""Expense tracking models."""
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from jewelry_store.models.base import Base, JSONType, utcnow


class ExpenseCategory(Base):
    """Grouping used by the expense breakdown metric."""

    __tablename__ = "expense_categories"

    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    expenses = relationship("Expense", back_populates="category")


class Expense(Base):
    """Business expense."""

    __tablename__ = "expenses"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    category_id = Column(Uuid(as_uuid=True), ForeignKey("expense_categories.id"), nullable=False, index=True)
    expense_date = Column(DateTime, nullable=False, default=utcnow, index=True)
    receipt = Column(String(500), nullable=True)
    added_by = Column(Uuid(as_uuid=True), ForeignKey("admins.id"), nullable=True)
    tags = Column(JSONType, nullable=False, default=list)

    category = relationship("ExpenseCategory", back_populates="expenses", lazy="joined")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Expense(id={self.id}, title={self.title}, amount={self.amount})>"
