#!/usr/bin/env python3
"""
Database seeding script.

Creates the schema from the ORM metadata and loads the baseline data the admin
dashboard expects: an admin account, product types, expense categories and a
few sample products.

Usage:
    # Create tables and insert seed data (idempotent)
    python seed.py --action seed

    # Custom admin credentials
    python seed.py --action seed --admin-email owner@example.com --admin-password 'S3cret!pass'

    # Drop every table, including the analytics cache
    python seed.py --action clear
"""

import argparse
import asyncio
import sys
from decimal import Decimal

import structlog
from sqlalchemy import select

from jewelry_store.database import AsyncSessionLocal, create_all, drop_all, engine
from jewelry_store.middleware.logging import setup_logging
from jewelry_store.models.admin import Admin
from jewelry_store.models.expense import ExpenseCategory
from jewelry_store.models.product import Product, ProductSpecification, ProductType, SpecificationType
from jewelry_store.services.auth_service import AuthService

setup_logging()
logger = structlog.get_logger("seed")

PRODUCT_TYPES = [
    ("ring", "Rings", SpecificationType.SIZE, "RG"),
    ("bangle", "Bangles", SpecificationType.SIZE, "BG"),
    ("necklace", "Necklaces", SpecificationType.LAYER, "NK"),
    ("earring", "Earrings", SpecificationType.SIZE, "ER"),
]

EXPENSE_CATEGORIES = [
    ("Raw Materials", "Gold, silver, stones and findings"),
    ("Packaging", "Boxes, pouches and shipping supplies"),
    ("Marketing", "Ads, photo shoots and promotions"),
    ("Shipping", "Courier and delivery charges"),
    ("Utilities", "Electricity, internet and phone"),
    ("Salaries", "Staff wages"),
]

SAMPLE_PRODUCTS = [
    {
        "name": "Classic Gold Ring",
        "product_code": "RG001",
        "type": "ring",
        "base_price": Decimal("4999.00"),
        "discounted_price": Decimal("4499.00"),
        "specs": [("size", str(size), f"Size {size}", Decimal("0")) for size in (6, 7, 8)],
    },
    {
        "name": "Kundan Bangle Set",
        "product_code": "BG001",
        "type": "bangle",
        "base_price": Decimal("2999.00"),
        "discounted_price": None,
        "specs": [("size", "2.4", "2.4 inch", Decimal("0")), ("size", "2.6", "2.6 inch", Decimal("150.00"))],
    },
    {
        "name": "Layered Pearl Necklace",
        "product_code": "NK001",
        "type": "necklace",
        "base_price": Decimal("6499.00"),
        "discounted_price": Decimal("5999.00"),
        "specs": [("layer", "1", "Single layer", Decimal("0")), ("layer", "3", "Triple layer", Decimal("1500.00"))],
    },
    {
        "name": "Jhumka Earrings",
        "product_code": "ER001",
        "type": "earring",
        "base_price": Decimal("1299.00"),
        "discounted_price": None,
        "specs": [],
    },
]


class DatabaseSeeder:
    """Creates the schema and inserts baseline rows that are missing."""

    def __init__(self, admin_email: str, admin_password: str, admin_name: str):
        self.admin_email = admin_email
        self.admin_password = admin_password
        self.admin_name = admin_name

    async def seed(self) -> None:
        logger.info("seed_started")
        await create_all()

        async with AsyncSessionLocal() as session:
            existing_admin = await session.scalar(select(Admin).where(Admin.email == self.admin_email.lower()))
            if existing_admin is None:
                await AuthService(session).create_admin(self.admin_email, self.admin_password, self.admin_name)
                logger.info("admin_seeded", email=self.admin_email)

            types = {t.name: t for t in (await session.execute(select(ProductType))).scalars()}
            for name, display_name, spec_type, code_prefix in PRODUCT_TYPES:
                if name not in types:
                    types[name] = ProductType(
                        name=name,
                        display_name=display_name,
                        specification_type=spec_type,
                        code_prefix=code_prefix,
                    )
                    session.add(types[name])
            await session.flush()

            categories = set((await session.execute(select(ExpenseCategory.name))).scalars())
            for name, description in EXPENSE_CATEGORIES:
                if name not in categories:
                    session.add(ExpenseCategory(name=name, description=description))

            codes = set((await session.execute(select(Product.product_code))).scalars())
            for sample in SAMPLE_PRODUCTS:
                if sample["product_code"] in codes:
                    continue
                session.add(
                    Product(
                        name=sample["name"],
                        product_code=sample["product_code"],
                        product_type_id=types[sample["type"]].id,
                        base_price=sample["base_price"],
                        discounted_price=sample["discounted_price"],
                        images=[],
                        specifications=[
                            ProductSpecification(
                                spec_type=spec_type,
                                spec_value=value,
                                display_name=label,
                                price_modifier=modifier,
                                stock_quantity=10,
                            )
                            for spec_type, value, label, modifier in sample["specs"]
                        ],
                    )
                )

            await session.commit()

        logger.info("seed_completed")

    async def clear(self) -> None:
        logger.warning("clear_started")
        await drop_all()
        logger.warning("clear_completed")


async def run(args: argparse.Namespace) -> int:
    seeder = DatabaseSeeder(args.admin_email, args.admin_password, args.admin_name)
    try:
        if args.action == "seed":
            await seeder.seed()
        elif args.action == "clear":
            await seeder.clear()
    except Exception:
        logger.exception("seed_failed", action=args.action)
        return 1
    finally:
        await engine.dispose()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed or clear the jewelry store database")
    parser.add_argument("--action", required=True, choices=["seed", "clear"], help="Action to perform")
    parser.add_argument("--admin-email", default="admin@jewelrystore.com", help="Seed admin email")
    parser.add_argument("--admin-password", default="admin123", help="Seed admin password")
    parser.add_argument("--admin-name", default="Store Admin", help="Seed admin display name")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
