"""SQLAlchemy ORM models for the jewelry store."""
# Import all models here so they are registered on the declarative metadata

from jewelry_store.models.base import Base, utcnow
from jewelry_store.models.admin import Admin
from jewelry_store.models.product import Product, ProductSpecification, ProductType, SpecificationType
from jewelry_store.models.order import REVENUE_STATUSES, Order, OrderItem, OrderStatus, OrderStatusHistory
from jewelry_store.models.expense import Expense, ExpenseCategory
from jewelry_store.models.analytics import (
    AnalyticsCacheEntry,
    AnalyticsHistory,
    AnalyticsMetadata,
    MetricType,
    RefreshStatus,
)

__all__ = [
    "Base",
    "utcnow",
    "Admin",
    "Product",
    "ProductSpecification",
    "ProductType",
    "SpecificationType",
    "REVENUE_STATUSES",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "Expense",
    "ExpenseCategory",
    "AnalyticsCacheEntry",
    "AnalyticsHistory",
    "AnalyticsMetadata",
    "MetricType",
    "RefreshStatus",
]
