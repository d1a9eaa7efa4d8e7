"""Test data factories using Faker for generating realistic test data."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_store.models.base import utcnow
from jewelry_store.models.expense import Expense, ExpenseCategory
from jewelry_store.models.order import Order, OrderItem, OrderStatus
from jewelry_store.models.product import Product, ProductSpecification, ProductType, SpecificationType

fake = Faker()


class ProductFactory:
    """Factory for catalog rows."""

    @staticmethod
    async def create_type(db: AsyncSession, **overrides: Any) -> ProductType:
        data = {
            "name": f"{fake.word()}-{fake.unique.random_int(1, 999999)}",
            "display_name": fake.word().title(),
            "specification_type": SpecificationType.SIZE,
        }
        data.update(overrides)
        product_type = ProductType(**data)
        db.add(product_type)
        await db.flush()
        return product_type

    @staticmethod
    async def create(
        db: AsyncSession,
        product_type: Optional[ProductType] = None,
        specifications: Optional[list[dict[str, Any]]] = None,
        **overrides: Any,
    ) -> Product:
        """
        Create a product (and a product type when none is given).

        Args:
            db: Database session
            product_type: Owning type
            specifications: Keyword dicts for ProductSpecification rows
            overrides: Product field overrides

        Returns:
            Product: Flushed product with specifications
        """
        product_type = product_type or await ProductFactory.create_type(db)
        data = {
            "name": f"{fake.color_name()} {fake.random_element(['Ring', 'Chain', 'Bangle', 'Pendant'])}",
            "product_code": f"PRD-{fake.unique.random_int(1000, 999999)}",
            "product_type_id": product_type.id,
            "base_price": Decimal(fake.random_int(500, 20000)),
            "discounted_price": None,
            "images": [],
        }
        data.update(overrides)
        product = Product(
            **data,
            specifications=[
                ProductSpecification(**{"spec_type": "size", "stock_quantity": 5, **spec}) for spec in specifications or []
            ],
        )
        db.add(product)
        await db.flush()
        return product


class ExpenseFactory:
    """Factory for expenses and categories."""

    @staticmethod
    async def create_category(db: AsyncSession, name: Optional[str] = None) -> ExpenseCategory:
        category = ExpenseCategory(name=name or f"{fake.word().title()} Costs {fake.unique.random_int(1, 999999)}")
        db.add(category)
        await db.flush()
        return category

    @staticmethod
    async def create(
        db: AsyncSession,
        category: ExpenseCategory,
        amount: Any = None,
        expense_date: Optional[datetime] = None,
        **overrides: Any,
    ) -> Expense:
        data = {
            "title": fake.sentence(nb_words=3),
            "amount": Decimal(str(amount)) if amount is not None else Decimal(fake.random_int(100, 5000)),
            "category_id": category.id,
            "expense_date": expense_date or utcnow(),
            "tags": [],
        }
        data.update(overrides)
        expense = Expense(**data)
        db.add(expense)
        await db.flush()
        return expense


class OrderFactory:
    """Factory for orders inserted directly, bypassing the order service."""

    @staticmethod
    async def create(
        db: AsyncSession,
        product: Product,
        quantity: int = 1,
        unit_price: Any = None,
        status: OrderStatus = OrderStatus.PAYMENT_PENDING,
        created_at: Optional[datetime] = None,
        **overrides: Any,
    ) -> Order:
        """
        Create an order with a single line item.

        Args:
            db: Database session
            product: Ordered product
            quantity: Line quantity
            unit_price: Defaults to the product's selling price
            status: Initial status
            created_at: Creation timestamp (defaults to now)
            overrides: Order field overrides

        Returns:
            Order: Flushed order with its item
        """
        price = Decimal(str(unit_price)) if unit_price is not None else Decimal(product.selling_price)
        created = created_at or utcnow()
        sequence = fake.unique.random_int(1, 99_999_999)
        data = {
            "order_number": f"ORD-{sequence:08d}",
            "order_code": f"ORD{sequence:03d}",
            "customer_name": fake.name(),
            "customer_email": fake.email(),
            "customer_phone": f"98{fake.numerify('########')}",
            "customer_address": fake.address().replace("\n", ", "),
            "total_amount": price * quantity,
            "status": status,
            "payment_received": status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            "created_at": created,
            "updated_at": created,
        }
        data.update(overrides)
        order = Order(
            **data,
            items=[
                OrderItem(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=price,
                    total_price=price * quantity,
                    product_snapshot={"id": str(product.id), "name": product.name, "productCode": product.product_code},
                )
            ],
        )
        db.add(order)
        await db.flush()
        return order
